"""A registry whose operations are supplied as plain callables."""

from __future__ import annotations

from typing import Any, Callable, Iterator, Optional

from .interface import BlobReader, BlobWriter, Descriptor, Digest, Registry
from .iteration import error_seq

_OPERATIONS = frozenset(
    {
        "get_blob",
        "get_blob_range",
        "get_manifest",
        "get_tag",
        "resolve_blob",
        "resolve_manifest",
        "resolve_tag",
        "push_blob",
        "push_blob_chunked",
        "push_blob_chunked_resume",
        "mount_blob",
        "push_manifest",
        "delete_blob",
        "delete_manifest",
        "delete_tag",
        "repositories",
        "tags",
        "referrers",
    }
)


class Funcs(Registry):
    """A registry that calls the function given for each operation.

    Functions are passed as keyword arguments named after the operations and
    take the operation's arguments. An operation with no function fails with
    an error matching ERR_UNSUPPORTED, or with the error returned by
    ``new_error(method_name, repo)`` when that is given.
    """

    def __init__(
        self,
        *,
        new_error: Optional[Callable[[str, str], BaseException]] = None,
        **operations: Optional[Callable[..., Any]],
    ) -> None:
        unknown = sorted(set(operations) - _OPERATIONS)
        if unknown:
            raise TypeError(f"unknown registry operations: {', '.join(unknown)}")
        self._error_factory = new_error
        self._operations = {
            name: fn for name, fn in operations.items() if fn is not None
        }

    def _new_error(self, method_name: str, repo: str) -> BaseException:
        if self._error_factory is not None:
            return self._error_factory(method_name, repo)
        return super()._new_error(method_name, repo)

    def _call(self, name: str, error_repo: str, *args: Any, error_name: str = "") -> Any:
        fn = self._operations.get(name)
        if fn is None:
            raise self._new_error(error_name or name, error_repo)
        return fn(*args)

    def _call_seq(self, name: str, error_repo: str, *args: Any) -> Iterator[Any]:
        fn = self._operations.get(name)
        if fn is None:
            return error_seq(self._new_error(name, error_repo))
        return fn(*args)

    def get_blob(self, repo: str, digest: Digest) -> BlobReader:
        return self._call("get_blob", repo, repo, digest)

    def get_blob_range(
        self, repo: str, digest: Digest, offset0: int, offset1: int
    ) -> BlobReader:
        return self._call("get_blob_range", repo, repo, digest, offset0, offset1)

    def get_manifest(self, repo: str, digest: Digest) -> BlobReader:
        return self._call("get_manifest", repo, repo, digest)

    def get_tag(self, repo: str, tag_name: str) -> BlobReader:
        return self._call("get_tag", repo, repo, tag_name)

    def resolve_blob(self, repo: str, digest: Digest) -> Descriptor:
        return self._call("resolve_blob", repo, repo, digest)

    def resolve_manifest(self, repo: str, digest: Digest) -> Descriptor:
        return self._call("resolve_manifest", repo, repo, digest)

    def resolve_tag(self, repo: str, tag_name: str) -> Descriptor:
        return self._call("resolve_tag", repo, repo, tag_name)

    def push_blob(self, repo: str, desc: Descriptor, reader: Any) -> Descriptor:
        return self._call("push_blob", repo, repo, desc, reader)

    def push_blob_chunked(self, repo: str, chunk_size: int) -> BlobWriter:
        return self._call("push_blob_chunked", repo, repo, chunk_size)

    def push_blob_chunked_resume(
        self, repo: str, upload_id: str, offset: int, chunk_size: int
    ) -> BlobWriter:
        return self._call(
            "push_blob_chunked_resume",
            repo,
            repo,
            upload_id,
            offset,
            chunk_size,
            error_name="push_blob_chunked",
        )

    def mount_blob(self, from_repo: str, to_repo: str, digest: Digest) -> Descriptor:
        return self._call("mount_blob", to_repo, from_repo, to_repo, digest)

    def push_manifest(
        self, repo: str, tag: str, contents: bytes, media_type: str
    ) -> Descriptor:
        return self._call("push_manifest", repo, repo, tag, contents, media_type)

    def delete_blob(self, repo: str, digest: Digest) -> None:
        return self._call("delete_blob", repo, repo, digest)

    def delete_manifest(self, repo: str, digest: Digest) -> None:
        return self._call("delete_manifest", repo, repo, digest)

    def delete_tag(self, repo: str, name: str) -> None:
        return self._call("delete_tag", repo, repo, name)

    def repositories(self, start_after: str) -> Iterator[str]:
        return self._call_seq("repositories", "", start_after)

    def tags(self, repo: str, start_after: str) -> Iterator[str]:
        return self._call_seq("tags", repo, repo, start_after)

    def referrers(
        self, repo: str, digest: Digest, artifact_type: str
    ) -> Iterator[Descriptor]:
        return self._call_seq("referrers", repo, repo, digest, artifact_type)