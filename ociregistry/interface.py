"""The operations an OCI registry provides, and the values they exchange."""

from __future__ import annotations

import abc
import base64
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, Iterator, List, Optional

from .errors import ERR_UNSUPPORTED
from .iteration import error_seq

Digest = str
Manifest = Dict[str, Any]


@dataclass
class Descriptor:
    """Describes a blob or manifest: its media type, digest and size.

    ``data`` optionally embeds the content itself; ``urls`` may name other
    locations the content can be fetched from.
    """

    media_type: str = ""
    digest: Digest = ""
    size: int = 0
    urls: List[str] = field(default_factory=list)
    annotations: Dict[str, str] = field(default_factory=dict)
    data: Optional[bytes] = None
    platform: Optional[Dict[str, Any]] = None
    artifact_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Return the OCI JSON form of the descriptor, omitting empty optional fields."""
        out: Dict[str, Any] = {
            "mediaType": self.media_type,
            "digest": self.digest,
            "size": self.size,
        }
        if self.urls:
            out["urls"] = list(self.urls)
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        if self.data:
            out["data"] = base64.b64encode(self.data).decode("ascii")
        if self.platform is not None:
            out["platform"] = dict(self.platform)
        if self.artifact_type:
            out["artifactType"] = self.artifact_type
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Descriptor":
        """Build a descriptor from its OCI JSON form."""
        embedded = data.get("data")
        platform = data.get("platform")
        return cls(
            media_type=data.get("mediaType") or "",
            digest=data.get("digest") or "",
            size=int(data.get("size") or 0),
            urls=list(data.get("urls") or []),
            annotations=dict(data.get("annotations") or {}),
            data=base64.b64decode(embedded) if embedded else None,
            platform=dict(platform) if platform is not None else None,
            artifact_type=data.get("artifactType") or "",
        )


class BlobReader:
    """The contents of a blob or manifest, together with its descriptor."""

    def __init__(self, stream: BinaryIO, descriptor: Descriptor) -> None:
        self._stream = stream
        self._descriptor = descriptor

    def read(self, size: int = -1) -> bytes:
        """Read up to size bytes, or everything that remains when size is negative."""
        return self._stream.read(size)

    def close(self) -> None:
        """Release the underlying stream."""
        self._stream.close()

    def descriptor(self) -> Descriptor:
        """Return the descriptor of the content being read."""
        return self._descriptor

    def __enter__(self) -> "BlobReader":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class BlobWriter(abc.ABC):
    """A handle for uploading a blob to a registry in chunks.

    Used as a context manager, the upload is cancelled on exit; cancelling
    after a successful commit does nothing.
    """

    @abc.abstractmethod
    def write(self, data: bytes) -> int:
        """Append data to the blob; when resuming, data starts size() bytes in."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the writer without aborting; the upload can be resumed later."""

    @abc.abstractmethod
    def size(self) -> int:
        """Return the number of bytes written to the blob so far."""

    @abc.abstractmethod
    def chunk_size(self) -> int:
        """Return the largest number of bytes uploaded at a single time."""

    @abc.abstractmethod
    def id(self) -> str:
        """Return the opaque identifier that lets the upload be resumed."""

    @abc.abstractmethod
    def commit(self, digest: Digest) -> Descriptor:
        """Finish the upload, verify it against digest and return its descriptor."""

    @abc.abstractmethod
    def cancel(self) -> None:
        """Abandon the upload; safe to call repeatedly and after commit."""

    def __enter__(self) -> "BlobWriter":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cancel()


class _OperationError(Exception):
    """An operation failed; the reason is the error's cause."""


def _unsupported(method_name: str) -> Exception:
    err = _OperationError(f"{method_name}: {ERR_UNSUPPORTED}")
    err.__cause__ = ERR_UNSUPPORTED
    return err


class Registry:
    """A single OCI registry: reading, writing, deleting and listing content.

    Every operation of this base class fails with an error matching
    ERR_UNSUPPORTED; implementations override the operations they provide.
    Listing operations return iterators that raise when iterated.
    """

    def _new_error(self, method_name: str, repo: str) -> BaseException:
        return _unsupported(method_name)

    # Reading.

    def get_blob(self, repo: str, digest: Digest) -> BlobReader:
        """Return the content of the blob with the given digest."""
        raise self._new_error("get_blob", repo)

    def get_blob_range(
        self, repo: str, digest: Digest, offset0: int, offset1: int
    ) -> BlobReader:
        """Return bytes offset0 up to offset1 of a blob; a negative or
        too large offset1 reads to the end."""
        raise self._new_error("get_blob_range", repo)

    def get_manifest(self, repo: str, digest: Digest) -> BlobReader:
        """Return the contents of the manifest with the given digest."""
        raise self._new_error("get_manifest", repo)

    def get_tag(self, repo: str, tag_name: str) -> BlobReader:
        """Return the contents of the manifest with the given tag."""
        raise self._new_error("get_tag", repo)

    def resolve_blob(self, repo: str, digest: Digest) -> Descriptor:
        """Return the descriptor of a blob."""
        raise self._new_error("resolve_blob", repo)

    def resolve_manifest(self, repo: str, digest: Digest) -> Descriptor:
        """Return the descriptor of a manifest."""
        raise self._new_error("resolve_manifest", repo)

    def resolve_tag(self, repo: str, tag_name: str) -> Descriptor:
        """Return the descriptor of the manifest a tag points to."""
        raise self._new_error("resolve_tag", repo)

    # Writing.

    def push_blob(self, repo: str, desc: Descriptor, reader: BinaryIO) -> Descriptor:
        """Upload a blob read from reader, checked against desc's digest and size."""
        raise self._new_error("push_blob", repo)

    def push_blob_chunked(self, repo: str, chunk_size: int) -> BlobWriter:
        """Start a chunked blob upload; a chunk_size of zero picks a default."""
        raise self._new_error("push_blob_chunked", repo)

    def push_blob_chunked_resume(
        self, repo: str, upload_id: str, offset: int, chunk_size: int
    ) -> BlobWriter:
        """Resume a chunked upload; an offset of -1 continues where it left off."""
        raise self._new_error("push_blob_chunked", repo)

    def mount_blob(self, from_repo: str, to_repo: str, digest: Digest) -> Descriptor:
        """Make a blob in from_repo available in to_repo; the size may be zero."""
        raise self._new_error("mount_blob", to_repo)

    def push_manifest(
        self, repo: str, tag: str, contents: bytes, media_type: str
    ) -> Descriptor:
        """Upload a manifest, pointing tag at it when tag is non-empty."""
        raise self._new_error("push_manifest", repo)

    # Deleting.

    def delete_blob(self, repo: str, digest: Digest) -> None:
        """Delete the blob with the given digest."""
        raise self._new_error("delete_blob", repo)

    def delete_manifest(self, repo: str, digest: Digest) -> None:
        """Delete the manifest with the given digest."""
        raise self._new_error("delete_manifest", repo)

    def delete_tag(self, repo: str, name: str) -> None:
        """Delete the manifest with the given tag."""
        raise self._new_error("delete_tag", repo)

    # Listing.

    def repositories(self, start_after: str) -> Iterator[str]:
        """Iterate over repositories in lexical order, after start_after if given."""
        return error_seq(self._new_error("repositories", ""))

    def tags(self, repo: str, start_after: str) -> Iterator[str]:
        """Iterate over a repository's tags in lexical order, after start_after if given."""
        return error_seq(self._new_error("tags", repo))

    def referrers(
        self, repo: str, digest: Digest, artifact_type: str
    ) -> Iterator[Descriptor]:
        """Iterate over manifests whose subject is digest, optionally of one artifact type."""
        return error_seq(self._new_error("referrers", repo))