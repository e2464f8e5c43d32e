"""Registry errors, their JSON wire form and the HTTP statuses they map to."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any, Iterator, Optional, Tuple, Type, TypeVar, Union

E = TypeVar("E", bound=BaseException)

# Reason phrases as registries have traditionally sent them; newer Python
# releases renamed a few of these.
_STATUS_TEXT_OVERRIDES = {
    413: "Request Entity Too Large",
    414: "Request URI Too Long",
    416: "Requested Range Not Satisfiable",
    422: "Unprocessable Entity",
    425: "Too Early",
}


class RegistryError(Exception):
    """An OCI registry error carrying a spec error code and optional JSON detail.

    ``detail`` holds any JSON-compatible value, or None when there is none.
    """

    def __init__(self, message: str = "", code: str = "", detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.detail = detail

    def __str__(self) -> str:
        prefix = _error_code_prefix(self.code)
        if self.message:
            return f"{prefix}: {self.message}"
        return prefix

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"code={self.code!r}, detail={self.detail!r})"
        )

    def to_dict(self) -> dict:
        """Return the wire form of this error, omitting empty fields."""
        entry: dict = {"code": self.code}
        if self.message:
            entry["message"] = self.message
        if self.detail is not None:
            entry["detail"] = self.detail
        return entry


class RegistryErrors(Exception):
    """The body of an OCI error response: one or more registry errors."""

    def __init__(self, errors) -> None:
        self.errors = list(errors)
        super().__init__(*self.errors)

    def __str__(self) -> str:
        return "; ".join(str(e) for e in self.errors)

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "RegistryErrors":
        """Decode an error response body; raises ValueError if it is malformed."""
        doc = json.loads(data)
        if doc is None:
            return cls([])
        if not isinstance(doc, dict):
            raise ValueError("error response is not a JSON object")
        entries = doc.get("errors")
        if entries is None:
            return cls([])
        if not isinstance(entries, list):
            raise ValueError('"errors" field is not a JSON array')
        errors = []
        for entry in entries:
            if not isinstance(entry, dict):
                raise ValueError("error entry is not a JSON object")
            code = entry.get("code") or ""
            message = entry.get("message") or ""
            if not isinstance(code, str):
                raise ValueError('"code" field is not a string')
            if not isinstance(message, str):
                raise ValueError('"message" field is not a string')
            errors.append(RegistryError(message, code, entry.get("detail")))
        return cls(errors)


class HTTPError(Exception):
    """An error that originated from (or may be returned by) an HTTP exchange.

    The body is only kept when a response is given.
    """

    def __init__(
        self,
        underlying: Optional[BaseException],
        status_code: int,
        response: Any = None,
        body: Optional[bytes] = None,
    ) -> None:
        super().__init__(underlying, status_code)
        self.underlying = underlying
        self.status_code = status_code
        self.response = response
        self.body = body if response is not None else None

    def __str__(self) -> str:
        text = _http_status_prefix(self.status_code)
        if self.underlying is not None:
            text += f": {self.underlying}"
        return text


def _children(err: BaseException) -> Iterator[BaseException]:
    if isinstance(err, HTTPError) and err.underlying is not None:
        yield err.underlying
    if isinstance(err, RegistryErrors):
        yield from err.errors
    if err.__cause__ is not None:
        yield err.__cause__


def _walk(err: Optional[BaseException]) -> Iterator[BaseException]:
    """Yield err and everything it wraps, depth first."""
    if err is None:
        return
    seen = set()
    stack = [err]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        stack.extend(reversed(list(_children(current))))


def find_error(err: Optional[BaseException], kind: Type[E]) -> Optional[E]:
    """Return the first error of the given kind in err's chain, or None."""
    return next((e for e in _walk(err) if isinstance(e, kind)), None)


def _matches(candidate: BaseException, target: BaseException) -> bool:
    if isinstance(candidate, RegistryError):
        other = find_error(target, RegistryError)
        return other is not None and other.code == candidate.code
    if isinstance(candidate, HTTPError):
        return candidate.status_code == 416 and target is ERR_RANGE_INVALID
    return False


def is_error(err: Optional[BaseException], target: BaseException) -> bool:
    """Report whether err, or anything it wraps, is or matches target.

    Registry errors match any error carrying the same code; an HTTP 416
    error matches ERR_RANGE_INVALID.
    """
    return any(e is target or _matches(e, target) for e in _walk(err))


def marshal_error(err: BaseException) -> Tuple[bytes, int]:
    """Return the JSON error body for err and the HTTP status to send with it."""
    code = ""
    detail = None
    registry_err = find_error(err, RegistryError)
    if registry_err is not None:
        code = registry_err.code
        detail = registry_err.detail
    if not code:
        code = "UNKNOWN"
    status = ERROR_STATUSES.get(code)
    if status is None:
        http_err = find_error(err, HTTPError)
        status = http_err.status_code if http_err is not None else 500
    message = _trim_error_code_prefix(str(err), status, code)
    entry = RegistryError(message, code, detail).to_dict()
    data = json.dumps({"errors": [entry]}, separators=(",", ":"), ensure_ascii=False)
    return data.encode("utf-8"), status


def write_error(handler, err: BaseException) -> None:
    """Send err as a JSON error response through an http.server request handler."""
    data, status = marshal_error(err)
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json")
    handler.end_headers()
    handler.wfile.write(data)


def _status_text(status_code: int) -> str:
    if status_code in _STATUS_TEXT_OVERRIDES:
        return _STATUS_TEXT_OVERRIDES[status_code]
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def _http_status_prefix(status_code: int) -> str:
    return f"{status_code} {_status_text(status_code)}"


def _error_code_prefix(code: str) -> str:
    if not code:
        return "(no code)"
    return "".join(" " if c == "_" else c.lower() for c in code)


def _trim_error_code_prefix(msg: str, http_status: int, code: str) -> str:
    if http_status:
        msg = msg.removeprefix(f"{_http_status_prefix(http_status)}: ")
    if code:
        msg = msg.removeprefix(f"{_error_code_prefix(code)}: ")
    return msg


ERR_BLOB_UNKNOWN = RegistryError("blob unknown to registry", "BLOB_UNKNOWN")
ERR_BLOB_UPLOAD_INVALID = RegistryError("blob upload invalid", "BLOB_UPLOAD_INVALID")
ERR_BLOB_UPLOAD_UNKNOWN = RegistryError(
    "blob upload unknown to registry", "BLOB_UPLOAD_UNKNOWN"
)
ERR_DIGEST_INVALID = RegistryError(
    "provided digest did not match uploaded content", "DIGEST_INVALID"
)
ERR_MANIFEST_BLOB_UNKNOWN = RegistryError(
    "manifest references a manifest or blob unknown to registry",
    "MANIFEST_BLOB_UNKNOWN",
)
ERR_MANIFEST_INVALID = RegistryError("manifest invalid", "MANIFEST_INVALID")
ERR_MANIFEST_UNKNOWN = RegistryError("manifest unknown to registry", "MANIFEST_UNKNOWN")
ERR_NAME_INVALID = RegistryError("invalid repository name", "NAME_INVALID")
ERR_NAME_UNKNOWN = RegistryError("repository name not known to registry", "NAME_UNKNOWN")
ERR_SIZE_INVALID = RegistryError(
    "provided length did not match content length", "SIZE_INVALID"
)
ERR_UNAUTHORIZED = RegistryError("authentication required", "UNAUTHORIZED")
ERR_DENIED = RegistryError("requested access to the resource is denied", "DENIED")
ERR_UNSUPPORTED = RegistryError("the operation is unsupported", "UNSUPPORTED")
ERR_TOO_MANY_REQUESTS = RegistryError("too many requests", "TOOMANYREQUESTS")
# Not a spec error code: the spec only fixes the 416 status for invalid ranges.
ERR_RANGE_INVALID = RegistryError("invalid content range", "RANGE_INVALID")

ERROR_STATUSES = {
    ERR_BLOB_UNKNOWN.code: 404,
    ERR_BLOB_UPLOAD_INVALID.code: 416,
    ERR_BLOB_UPLOAD_UNKNOWN.code: 404,
    ERR_DIGEST_INVALID.code: 400,
    ERR_MANIFEST_BLOB_UNKNOWN.code: 404,
    ERR_MANIFEST_INVALID.code: 400,
    ERR_MANIFEST_UNKNOWN.code: 404,
    ERR_NAME_INVALID.code: 400,
    ERR_NAME_UNKNOWN.code: 404,
    ERR_SIZE_INVALID.code: 400,
    ERR_UNAUTHORIZED.code: 401,
    ERR_DENIED.code: 403,
    ERR_UNSUPPORTED.code: 400,
    ERR_TOO_MANY_REQUESTS.code: 429,
    ERR_RANGE_INVALID.code: 416,
}