import io
import json

import pytest

from ociregistry.errors import (
    ERR_BLOB_UNKNOWN,
    ERR_NAME_UNKNOWN,
    ERR_RANGE_INVALID,
    ERR_TOO_MANY_REQUESTS,
    HTTPError,
    RegistryError,
    RegistryErrors,
    find_error,
    is_error,
    marshal_error,
    write_error,
)


def _wrap(template, cause):
    err = RuntimeError(template.format(cause))
    err.__cause__ = cause
    return err


ERROR_CASES = [
    (
        "RegularError",
        Exception("unknown error"),
        "unknown error",
        {"errors": [{"code": "UNKNOWN", "message": "unknown error"}]},
        500,
    ),
    (
        "RegistryError",
        ERR_BLOB_UNKNOWN,
        "blob unknown: blob unknown to registry",
        {"errors": [{"code": "BLOB_UNKNOWN", "message": "blob unknown to registry"}]},
        404,
    ),
    (
        "WrappedRegistryErrorWithContextAtStart",
        _wrap("some context: {}", ERR_BLOB_UNKNOWN),
        "some context: blob unknown: blob unknown to registry",
        {
            "errors": [
                {
                    "code": "BLOB_UNKNOWN",
                    "message": "some context: blob unknown: blob unknown to registry",
                }
            ]
        },
        404,
    ),
    (
        "WrappedRegistryErrorWithContextAtEnd",
        _wrap("{}: some context", ERR_BLOB_UNKNOWN),
        "blob unknown: blob unknown to registry: some context",
        {
            "errors": [
                {
                    "code": "BLOB_UNKNOWN",
                    "message": "blob unknown to registry: some context",
                }
            ]
        },
        404,
    ),
    (
        "HTTPStatusIgnoredWithKnownCode",
        HTTPError(_wrap("{}: some context", ERR_BLOB_UNKNOWN), 401, None, None),
        "401 Unauthorized: blob unknown: blob unknown to registry: some context",
        {
            "errors": [
                {
                    "code": "BLOB_UNKNOWN",
                    "message": "401 Unauthorized: blob unknown: "
                    "blob unknown to registry: some context",
                }
            ]
        },
        404,
    ),
    (
        "HTTPStatusUsedWithUnknownCode",
        HTTPError(RegistryError("a message with a code", "SOME_CODE", None), 401, None, None),
        "401 Unauthorized: some code: a message with a code",
        {"errors": [{"code": "SOME_CODE", "message": "a message with a code"}]},
        401,
    ),
    (
        "ErrorWithDetail",
        RegistryError("a message with some detail", "SOME_CODE", {"foo": True}),
        "some code: a message with some detail",
        {
            "errors": [
                {
                    "code": "SOME_CODE",
                    "message": "a message with some detail",
                    "detail": {"foo": True},
                }
            ]
        },
        500,
    ),
]


@pytest.mark.parametrize(
    "err,want_msg,want_data,want_status",
    [case[1:] for case in ERROR_CASES],
    ids=[case[0] for case in ERROR_CASES],
)
def test_error(err, want_msg, want_data, want_status):
    assert str(err) == want_msg
    data, status = marshal_error(err)
    assert status == want_status
    assert json.loads(data) == want_data

    errs = RegistryErrors.from_json(data)
    assert len(errs.errors) == 1
    registry_err = find_error(err, RegistryError)
    if registry_err is not None:
        assert is_error(errs, RegistryError("something", registry_err.code, None))
    else:
        assert errs.errors[0].code == "UNKNOWN"


def test_error_without_code_has_placeholder_prefix():
    assert str(RegistryError("oops", "", None)) == "(no code): oops"


def test_error_without_message_is_prefix_only():
    assert str(RegistryError("", "NAME_UNKNOWN", None)) == "name unknown"


def test_registry_errors_join_messages():
    errs = RegistryErrors([ERR_BLOB_UNKNOWN, ERR_NAME_UNKNOWN])
    assert str(errs) == (
        "blob unknown: blob unknown to registry; "
        "name unknown: repository name not known to registry"
    )


def test_from_json_reads_fields():
    errs = RegistryErrors.from_json(
        b'{"errors":[{"code":"DENIED","message":"no","detail":[1,2]},{"code":"X"}]}'
    )
    assert [(e.code, e.message, e.detail) for e in errs.errors] == [
        ("DENIED", "no", [1, 2]),
        ("X", "", None),
    ]


@pytest.mark.parametrize(
    "data",
    [b"not json", b"[1]", b'{"errors": 3}', b'{"errors": [5]}', b'{"errors":[{"code":1}]}'],
)
def test_from_json_rejects_malformed(data):
    with pytest.raises(ValueError):
        RegistryErrors.from_json(data)


def test_is_error_matches_by_code():
    assert is_error(_wrap("ctx: {}", ERR_BLOB_UNKNOWN), RegistryError("x", "BLOB_UNKNOWN"))
    assert not is_error(ERR_BLOB_UNKNOWN, ERR_NAME_UNKNOWN)
    assert not is_error(Exception("plain"), ERR_BLOB_UNKNOWN)


def test_is_error_target_may_be_wrapped():
    target = HTTPError(ERR_BLOB_UNKNOWN, 500, None, None)
    assert is_error(ERR_BLOB_UNKNOWN, target)


def test_http_416_matches_range_invalid():
    err = HTTPError(None, 416, None, None)
    assert is_error(err, ERR_RANGE_INVALID)
    assert not is_error(HTTPError(None, 404, None, None), ERR_RANGE_INVALID)
    assert str(err) == "416 Requested Range Not Satisfiable"


def test_http_error_body_kept_only_with_response():
    assert HTTPError(None, 500, None, b"body").body is None
    response = object()
    err = HTTPError(None, 500, response, b"body")
    assert err.body == b"body"
    assert err.response is response
    assert err.status_code == 500


def test_find_error_locates_http_error():
    inner = HTTPError(Exception("x"), 503, None, None)
    outer = _wrap("outer: {}", inner)
    assert find_error(outer, HTTPError) is inner
    assert find_error(Exception("x"), HTTPError) is None


def test_marshal_uses_http_status_for_plain_error():
    data, status = marshal_error(HTTPError(Exception("boom"), 502, None, None))
    assert status == 502
    assert json.loads(data) == {"errors": [{"code": "UNKNOWN", "message": "boom"}]}


def test_marshal_too_many_requests():
    data, status = marshal_error(ERR_TOO_MANY_REQUESTS)
    assert status == 429
    assert json.loads(data)["errors"][0]["message"] == "too many requests"


class _FakeHandler:
    def __init__(self):
        self.calls = []
        self.wfile = io.BytesIO()

    def send_response(self, status):
        self.calls.append(("status", status))

    def send_header(self, name, value):
        self.calls.append(("header", name, value))

    def end_headers(self):
        self.calls.append(("end",))


def test_write_error():
    handler = _FakeHandler()
    write_error(handler, ERR_NAME_UNKNOWN)
    assert handler.calls == [
        ("status", 404),
        ("header", "Content-Type", "application/json"),
        ("end",),
    ]
    assert json.loads(handler.wfile.getvalue()) == {
        "errors": [
            {"code": "NAME_UNKNOWN", "message": "repository name not known to registry"}
        ]
    }