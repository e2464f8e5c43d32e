# ociregistry

Building blocks for working with OCI registries as described by the OCI
distribution specification: registry errors and their JSON wire form, the
registry interface and its descriptors, and parsing of the HTTP requests the
distribution API uses.

## Modules

### `ociregistry.errors`

- `RegistryError(message, code, detail)`: an error carrying a spec error code
  and optional JSON detail. `str()` gives the code in lower case with
  underscores as spaces, then the message, e.g.
  `"blob unknown: blob unknown to registry"`. `to_dict()` returns its wire form.
- The standard errors: `ERR_BLOB_UNKNOWN`, `ERR_BLOB_UPLOAD_INVALID`,
  `ERR_BLOB_UPLOAD_UNKNOWN`, `ERR_DIGEST_INVALID`, `ERR_MANIFEST_BLOB_UNKNOWN`,
  `ERR_MANIFEST_INVALID`, `ERR_MANIFEST_UNKNOWN`, `ERR_NAME_INVALID`,
  `ERR_NAME_UNKNOWN`, `ERR_SIZE_INVALID`, `ERR_UNAUTHORIZED`, `ERR_DENIED`,
  `ERR_UNSUPPORTED`, `ERR_TOO_MANY_REQUESTS` and `ERR_RANGE_INVALID`.
  `ERROR_STATUSES` maps each code to its HTTP status.
- `RegistryErrors(errors)`: the body of an error response.
  `RegistryErrors.from_json(data)` decodes one and raises `ValueError` when it
  is malformed.
- `HTTPError(underlying, status_code, response, body)`: an error that came
  from an HTTP exchange; `str()` starts with the status, e.g.
  `"401 Unauthorized: ..."`.
- `marshal_error(err)` returns the JSON error body (bytes) and the HTTP status
  for any exception. The status comes from the error code when it is known,
  otherwise from a wrapped `HTTPError`, otherwise 500; errors without a
  registry code are sent with the code `UNKNOWN`.
- `write_error(handler, err)` sends that response through an
  `http.server.BaseHTTPRequestHandler`.
- `find_error(err, kind)` and `is_error(err, target)` look through chained
  exceptions (`__cause__`, `HTTPError.underlying`, `RegistryErrors.errors`).
  Registry errors match any error with the same code, and an `HTTPError` with
  status 416 matches `ERR_RANGE_INVALID`.

### `ociregistry.iteration`

Listing operations return plain iterators; an error ends the sequence by
being raised. `collect(seq)` gathers a sequence into a list, `slice_seq(xs)`
yields the items of an iterable, and `error_seq(err)` is a sequence with no
items that raises `err` when iterated.

### `ociregistry.interface`

- `Descriptor`: a dataclass with `media_type`, `digest`, `size`, `urls`,
  `annotations`, `data`, `platform` and `artifact_type`, converted to and from
  the OCI JSON form with `to_dict()` and `Descriptor.from_dict(data)`.
- `BlobReader(stream, descriptor)`: content with its descriptor; `read`,
  `close`, `descriptor()`, usable as a context manager.
- `BlobWriter`: the abstract handle for chunked uploads (`write`, `close`,
  `size`, `chunk_size`, `id`, `commit`, `cancel`); as a context manager it
  cancels on exit.
- `Registry`: the registry operations — `get_blob`, `get_blob_range`,
  `get_manifest`, `get_tag`, `resolve_blob`, `resolve_manifest`,
  `resolve_tag`, `push_blob`, `push_blob_chunked`,
  `push_blob_chunked_resume`, `mount_blob`, `push_manifest`, `delete_blob`,
  `delete_manifest`, `delete_tag`, `repositories`, `tags` and `referrers`.
  Every operation of the base class fails with an error matching
  `ERR_UNSUPPORTED`; subclasses override what they provide.

### `ociregistry.funcs`

`Funcs(**operations)` is a `Registry` whose operations are callables passed as
keyword arguments named after the operations. Operations without a callable
fail as unsupported, or with the error returned by an optional
`new_error(method_name, repo)`. Unknown operation names raise `TypeError`.

```python
from ociregistry.errors import ERR_UNSUPPORTED, is_error
from ociregistry.funcs import Funcs

reg = Funcs(tags=lambda repo, start_after: iter(["v1", "v2"]))
assert list(reg.tags("foo/bar", "")) == ["v1", "v2"]
try:
    reg.get_blob("foo/bar", "sha256:" + "0" * 64)
except Exception as e:
    assert is_error(e, ERR_UNSUPPORTED)
```

### `ociregistry.request`

- `parse(method, url)` turns an HTTP method and URL (a string or a
  `urllib.parse.SplitResult`) into a `Request`; it raises `ParseError`, whose
  `err` holds the reason (for example `ERR_NOT_FOUND`,
  `ERR_BADLY_FORMED_DIGEST`, `ERR_METHOD_NOT_ALLOWED` or a registry error such
  as `ERR_NAME_INVALID`).
- `Request` holds `kind` (a `RequestKind`), `repo`, `digest`, `tag`,
  `from_repo`, `upload_id`, `list_n` (-1 for "all") and `list_last`.
  `Request.construct()` returns the method and URL for it, raising
  `ValueError` if the result would not parse back. Upload IDs travel as
  unpadded URL-safe base64 in the path.
- `parse_range(s)` reads a `Content-Range` value like `"0-99"` into a start
  (inclusive) and end (exclusive) pair, raising `ValueError` when malformed;
  `range_string(start, end)` formats such a pair back.

## Example

```python
from ociregistry.errors import ERR_BLOB_UNKNOWN, marshal_error
from ociregistry.request import RequestKind, parse

req = parse("GET", "/v2/foo/bar/blobs/sha256:" + "0" * 64)
assert req.kind is RequestKind.BLOB_GET
assert req.repo == "foo/bar"

body, status = marshal_error(ERR_BLOB_UNKNOWN)
# status == 404
# body == b'{"errors":[{"code":"BLOB_UNKNOWN","message":"blob unknown to registry"}]}'
```

## What this package does not do

It defines the registry interface but holds no implementation that stores
content: there is no in-memory or on-disk registry, no HTTP client that talks
to a remote registry, no HTTP server that serves the distribution API, and no
command to run one. Those have to be built on top of `Registry`,
`parse` and `marshal_error`.

## Installing

```
pip install .
```

## Running the tests

```
pip install .[test]
pytest
```