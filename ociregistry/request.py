"""Parsing and building the HTTP requests of the OCI distribution protocol."""

from __future__ import annotations

import base64
import binascii
import enum
import json
import re
from dataclasses import dataclass
from typing import Dict, List, Tuple, Union
from urllib.parse import SplitResult, unquote, urlencode, urlsplit

from .errors import ERR_DIGEST_INVALID, ERR_NAME_INVALID, RegistryError


class RequestError(Exception):
    """A request could not be understood as an OCI registry request."""


ERR_NOT_FOUND = RequestError("page not found")
ERR_BADLY_FORMED_DIGEST = RequestError("badly formed digest")
ERR_METHOD_NOT_ALLOWED = RequestError("method not allowed")
ERR_BAD_REQUEST = RequestError("bad request")

_NAME_UNKNOWN = "NAME_UNKNOWN"


class ParseError(Exception):
    """A failure to parse a request; ``err`` holds the reason."""

    def __init__(self, err: BaseException) -> None:
        super().__init__(err)
        self.err = err
        self.__cause__ = err

    def __str__(self) -> str:
        return str(self.err)


class RequestKind(enum.IntEnum):
    """The endpoints of the distribution protocol."""

    PING = 0
    BLOB_GET = 1
    BLOB_HEAD = 2
    BLOB_DELETE = 3
    BLOB_START_UPLOAD = 4
    BLOB_UPLOAD_BLOB = 5
    BLOB_MOUNT = 6
    BLOB_UPLOAD_INFO = 7
    BLOB_UPLOAD_CHUNK = 8
    BLOB_COMPLETE_UPLOAD = 9
    MANIFEST_GET = 10
    MANIFEST_HEAD = 11
    MANIFEST_PUT = 12
    MANIFEST_DELETE = 13
    TAGS_LIST = 14
    REFERRERS_LIST = 15
    CATALOG_LIST = 16


_COMPONENT = r"[a-z0-9]+(?:(?:\.|_|__|-+)[a-z0-9]+)*"
_REPOSITORY_RE = re.compile(rf"{_COMPONENT}(?:/{_COMPONENT})*")
_TAG_RE = re.compile(r"[A-Za-z0-9_][A-Za-z0-9._-]{0,127}")
_DIGEST_RE = re.compile(r"([a-z0-9]+(?:[+._-][a-z0-9]+)*):([A-Za-z0-9=_-]+)")
_KNOWN_DIGEST_ENCODINGS = {
    "sha256": re.compile(r"[a-f0-9]{64}"),
    "sha512": re.compile(r"[a-f0-9]{128}"),
}
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_BASE64_RAW_URL_RE = re.compile(r"[A-Za-z0-9_-]*")
_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


def _is_valid_repository(name: str) -> bool:
    return _REPOSITORY_RE.fullmatch(name) is not None


def _is_valid_tag(name: str) -> bool:
    return _TAG_RE.fullmatch(name) is not None


def _is_valid_digest(digest: str) -> bool:
    m = _DIGEST_RE.fullmatch(digest)
    if m is None:
        return False
    encoding = _KNOWN_DIGEST_ENCODINGS.get(m.group(1))
    return encoding is None or encoding.fullmatch(m.group(2)) is not None


@dataclass
class Request:
    """A single OCI registry request.

    ``list_n`` is -1 when a listing should return all items.
    """

    kind: RequestKind = RequestKind.PING
    repo: str = ""
    digest: str = ""
    tag: str = ""
    from_repo: str = ""
    upload_id: str = ""
    list_n: int = 0
    list_last: str = ""

    def construct(self) -> Tuple[str, str]:
        """Return the HTTP method and URL for the request.

        Raises ValueError when the result would not parse back as a valid request.
        """
        method, target = self._construct_raw()
        try:
            parse(method, target)
        except (ParseError, ValueError) as e:
            raise ValueError(f"invalid OCI request: {e}") from e
        return method, target

    def _construct_raw(self) -> Tuple[str, str]:
        kind = self.kind
        blobs = f"/v2/{self.repo}/blobs/"
        manifests = f"/v2/{self.repo}/manifests/{self._tag_or_digest()}"
        if kind == RequestKind.PING:
            return "GET", "/v2/"
        if kind == RequestKind.BLOB_GET:
            return "GET", blobs + self.digest
        if kind == RequestKind.BLOB_HEAD:
            return "HEAD", blobs + self.digest
        if kind == RequestKind.BLOB_DELETE:
            return "DELETE", blobs + self.digest
        if kind == RequestKind.BLOB_START_UPLOAD:
            return "POST", blobs + "uploads/"
        if kind == RequestKind.BLOB_UPLOAD_BLOB:
            return "POST", f"{blobs}uploads/?digest={self.digest}"
        if kind == RequestKind.BLOB_MOUNT:
            return "POST", f"{blobs}uploads/?mount={self.digest}&from={self.from_repo}"
        if kind == RequestKind.BLOB_UPLOAD_INFO:
            return "GET", self._upload_path()
        if kind == RequestKind.BLOB_UPLOAD_CHUNK:
            return "PATCH", self._upload_path()
        if kind == RequestKind.BLOB_COMPLETE_UPLOAD:
            return "PUT", f"{self._upload_path()}?digest={self.digest}"
        if kind == RequestKind.MANIFEST_GET:
            return "GET", manifests
        if kind == RequestKind.MANIFEST_HEAD:
            return "HEAD", manifests
        if kind == RequestKind.MANIFEST_PUT:
            return "PUT", manifests
        if kind == RequestKind.MANIFEST_DELETE:
            return "DELETE", manifests
        if kind == RequestKind.TAGS_LIST:
            return "GET", f"/v2/{self.repo}/tags/list{self._list_params()}"
        if kind == RequestKind.REFERRERS_LIST:
            return "GET", f"/v2/{self.repo}/referrers/{self.digest}"
        if kind == RequestKind.CATALOG_LIST:
            return "GET", f"/v2/_catalog{self._list_params()}"
        raise ValueError("invalid request kind")

    def _upload_path(self) -> str:
        encoded = base64.urlsafe_b64encode(self.upload_id.encode("utf-8"))
        return f"/v2/{self.repo}/blobs/uploads/{encoded.rstrip(b'=').decode('ascii')}"

    def _list_params(self) -> str:
        params = []
        if self.list_n >= 0:
            params.append(("n", str(self.list_n)))
        if self.list_last:
            params.append(("last", self.list_last))
        if params:
            return "?" + urlencode(sorted(params))
        return ""

    def _tag_or_digest(self) -> str:
        return self.tag or self.digest


def _unescape(s: str, *, query: bool) -> str:
    m = _BAD_ESCAPE_RE.search(s)
    if m is not None:
        bad = s[m.start() : m.start() + 3]
        raise RequestError(f"invalid URL escape {json.dumps(bad)}")
    if query:
        s = s.replace("+", " ")
    return unquote(s)


def _parse_query(raw: str) -> Dict[str, List[str]]:
    values: Dict[str, List[str]] = {}
    for pair in raw.split("&") if raw else []:
        if ";" in pair:
            raise RequestError("invalid semicolon separator in query")
        if not pair:
            continue
        key, _, value = pair.partition("=")
        key = _unescape(key, query=True)
        value = _unescape(value, query=True)
        values.setdefault(key, []).append(value)
    return values


def _first(values: Dict[str, List[str]], key: str) -> str:
    found = values.get(key)
    return found[0] if found else ""


def _cut_last(s: str, sep: str) -> Tuple[str, str, bool]:
    i = s.rfind(sep)
    if i >= 0:
        return s[:i], s[i + len(sep) :], True
    return "", s, False


def _decode_upload_id(encoded: str) -> str:
    cannot_decode = RequestError(f"invalid upload ID {json.dumps(encoded)} (cannot decode)")
    if _BASE64_RAW_URL_RE.fullmatch(encoded) is None or len(encoded) % 4 == 1:
        raise ParseError(cannot_decode)
    try:
        raw = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4))
    except (binascii.Error, ValueError):
        raise ParseError(cannot_decode) from None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        raise ParseError(
            RequestError(f"upload ID {json.dumps(encoded)} decoded to invalid utf8")
        ) from None


def _set_list_params(req: Request, query: Dict[str, List[str]]) -> None:
    req.list_n = -1
    nstr = _first(query, "n")
    if nstr:
        if _INT_RE.fullmatch(nstr) is None:
            err = RequestError(f"n is not a valid integer: {ERR_BAD_REQUEST}")
            err.__cause__ = ERR_BAD_REQUEST
            raise ParseError(err)
        req.list_n = int(nstr)
    req.list_last = _first(query, "last")


def parse(method: str, url: Union[str, SplitResult]) -> Request:
    """Parse an HTTP method and URL as an OCI registry request.

    Raises ParseError, whose ``err`` holds the reason, when it is not one.
    """
    parts = urlsplit(url) if isinstance(url, str) else url
    try:
        path = _unescape(parts.path, query=False)
        query = _parse_query(parts.query)
    except RequestError as e:
        raise ParseError(e) from None

    req = Request()
    if path in ("/v2", "/v2/"):
        req.kind = RequestKind.PING
        return req
    if not path.startswith("/v2/"):
        raise ParseError(RegistryError("unknown URL path", _NAME_UNKNOWN, None))
    path = path[len("/v2/") :]

    if path == "_catalog":
        if method != "GET":
            raise ParseError(ERR_METHOD_NOT_ALLOWED)
        req.kind = RequestKind.CATALOG_LIST
        try:
            _set_list_params(req, query)
        except ParseError:
            pass  # an unusable page size is ignored when listing the catalog
        return req

    for suffix in ("/blobs/uploads/", "/blobs/uploads"):
        if path.endswith(suffix):
            return _parse_upload_start(req, method, path[: -len(suffix)], query)

    path, last, ok = _cut_last(path, "/")
    if not ok:
        raise ParseError(ERR_NOT_FOUND)
    path, last_but_one, ok = _cut_last(path, "/")
    if not ok:
        raise ParseError(ERR_NOT_FOUND)

    if last_but_one == "blobs":
        return _parse_blob(req, method, path, last)
    if last_but_one == "uploads":
        return _parse_upload(req, method, path, last, query)
    if last_but_one == "manifests":
        return _parse_manifest(req, method, path, last)
    if last_but_one == "tags":
        if last != "list":
            raise ParseError(ERR_NOT_FOUND)
        _set_list_params(req, query)
        if method != "GET":
            raise ParseError(ERR_METHOD_NOT_ALLOWED)
        req.repo = path
        if not _is_valid_repository(req.repo):
            raise ParseError(ERR_NAME_INVALID)
        req.kind = RequestKind.TAGS_LIST
        return req
    if last_but_one == "referrers":
        if not _is_valid_digest(last):
            raise ParseError(ERR_BADLY_FORMED_DIGEST)
        if method != "GET":
            raise ParseError(ERR_METHOD_NOT_ALLOWED)
        req.repo = path
        if not _is_valid_repository(req.repo):
            raise ParseError(ERR_NAME_INVALID)
        req.list_n = -1
        req.digest = last
        req.kind = RequestKind.REFERRERS_LIST
        return req
    raise ParseError(ERR_NOT_FOUND)


def _parse_upload_start(
    req: Request, method: str, repo: str, query: Dict[str, List[str]]
) -> Request:
    req.repo = repo
    if not _is_valid_repository(repo):
        raise ParseError(ERR_NAME_INVALID)
    if method != "POST":
        raise ParseError(ERR_METHOD_NOT_ALLOWED)
    mount = _first(query, "mount")
    if mount:
        if not _is_valid_digest(mount):
            raise ParseError(ERR_DIGEST_INVALID)
        from_repo = _first(query, "from")
        if not from_repo:
            # Without a source repository this is an ordinary upload.
            req.kind = RequestKind.BLOB_START_UPLOAD
            return req
        if not _is_valid_repository(from_repo):
            raise ParseError(ERR_NAME_INVALID)
        req.digest = mount
        req.from_repo = from_repo
        req.kind = RequestKind.BLOB_MOUNT
        return req
    digest = _first(query, "digest")
    if digest:
        if not _is_valid_digest(digest):
            raise ParseError(ERR_BADLY_FORMED_DIGEST)
        req.digest = digest
        req.kind = RequestKind.BLOB_UPLOAD_BLOB
        return req
    req.kind = RequestKind.BLOB_START_UPLOAD
    return req


def _parse_blob(req: Request, method: str, repo: str, digest: str) -> Request:
    req.repo = repo
    if not _is_valid_digest(digest):
        raise ParseError(ERR_BADLY_FORMED_DIGEST)
    if not _is_valid_repository(repo):
        raise ParseError(ERR_NAME_INVALID)
    req.digest = digest
    kinds = {
        "GET": RequestKind.BLOB_GET,
        "HEAD": RequestKind.BLOB_HEAD,
        "DELETE": RequestKind.BLOB_DELETE,
    }
    if method not in kinds:
        raise ParseError(ERR_METHOD_NOT_ALLOWED)
    req.kind = kinds[method]
    return req


def _parse_upload(
    req: Request, method: str, path: str, encoded_id: str, query: Dict[str, List[str]]
) -> Request:
    if not path.endswith("/blobs"):
        raise ParseError(ERR_NOT_FOUND)
    req.repo = path[: -len("/blobs")]
    if not _is_valid_repository(req.repo):
        raise ParseError(ERR_NAME_INVALID)
    if not encoded_id:
        raise ParseError(ERR_NOT_FOUND)
    req.upload_id = _decode_upload_id(encoded_id)
    if method == "GET":
        req.kind = RequestKind.BLOB_UPLOAD_INFO
    elif method == "PATCH":
        req.kind = RequestKind.BLOB_UPLOAD_CHUNK
    elif method == "PUT":
        req.kind = RequestKind.BLOB_COMPLETE_UPLOAD
        req.digest = _first(query, "digest")
        if not _is_valid_digest(req.digest):
            raise ParseError(ERR_BADLY_FORMED_DIGEST)
    else:
        raise ParseError(ERR_METHOD_NOT_ALLOWED)
    return req


def _parse_manifest(req: Request, method: str, repo: str, reference: str) -> Request:
    req.repo = repo
    if not _is_valid_repository(repo):
        raise ParseError(ERR_NAME_INVALID)
    if _is_valid_digest(reference):
        req.digest = reference
    elif _is_valid_tag(reference):
        req.tag = reference
    else:
        raise ParseError(ERR_NOT_FOUND)
    kinds = {
        "GET": RequestKind.MANIFEST_GET,
        "HEAD": RequestKind.MANIFEST_HEAD,
        "PUT": RequestKind.MANIFEST_PUT,
        "DELETE": RequestKind.MANIFEST_DELETE,
    }
    if method not in kinds:
        raise ParseError(ERR_METHOD_NOT_ALLOWED)
    req.kind = kinds[method]
    return req


def _parse_int64(s: str) -> int:
    if _INT_RE.fullmatch(s) is None:
        raise ValueError(f"invalid integer {s!r}")
    n = int(s)
    if not _INT64_MIN <= n <= _INT64_MAX:
        raise ValueError(f"integer {s!r} out of range")
    return n


def parse_range(s: str) -> Tuple[int, int]:
    """Return the start (inclusive) and end (exclusive) offsets of a Content-Range value.

    Raises ValueError when the value is not of the form "start-end".
    """
    first, sep, second = s.partition("-")
    if not sep:
        raise ValueError(f"invalid range {s!r}")
    try:
        start = _parse_int64(first)
        end = _parse_int64(second)
    except ValueError as e:
        raise ValueError(f"invalid range {s!r}") from e
    if end > 0:
        end += 1
    return start, end


def range_string(start: int, end: int) -> str:
    """Format start (inclusive) and end (exclusive) offsets as a Content-Range value."""
    end -= 1
    if end < 0:
        end = 0
    return f"{start}-{end}"