import io
import json

import pytest

from ociregistry.errors import ERR_UNSUPPORTED, is_error, marshal_error
from ociregistry.interface import BlobReader, BlobWriter, Descriptor, Registry
from ociregistry.iteration import collect

DIGEST = "sha256:2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


def test_descriptor_round_trip_all_fields():
    desc = Descriptor(
        media_type="application/vnd.oci.image.manifest.v1+json",
        digest=DIGEST,
        size=42,
        urls=["https://registry.example.com/blob"],
        annotations={"a": "b"},
        data=b"some data",
        platform={"architecture": "amd64", "os": "linux"},
        artifact_type="application/x-thing",
    )
    assert Descriptor.from_dict(desc.to_dict()) == desc


def test_descriptor_minimal_dict_has_required_fields_only():
    desc = Descriptor(media_type="application/octet-stream", digest=DIGEST, size=11)
    assert desc.to_dict() == {
        "mediaType": "application/octet-stream",
        "digest": DIGEST,
        "size": 11,
    }


def test_descriptor_data_is_base64():
    desc = Descriptor(digest=DIGEST, size=5, data=b"hello")
    d = desc.to_dict()
    assert d["data"] == "aGVsbG8="
    assert Descriptor.from_dict(d).data == b"hello"


def test_descriptor_json_names():
    d = Descriptor(artifact_type="x/y", urls=["u"]).to_dict()
    assert d["artifactType"] == "x/y"
    assert d["urls"] == ["u"]


def test_descriptor_from_empty_dict_gives_defaults():
    assert Descriptor.from_dict({}) == Descriptor()


def test_blob_reader_reads_and_closes():
    stream = io.BytesIO(b"hello world")
    desc = Descriptor(digest=DIGEST, size=11)
    reader = BlobReader(stream, desc)
    assert reader.read(5) == b"hello"
    assert reader.read() == b" world"
    assert reader.descriptor() == desc
    reader.close()
    assert stream.closed


def test_blob_reader_context_manager_closes():
    stream = io.BytesIO(b"abc")
    with BlobReader(stream, Descriptor()) as reader:
        assert reader.read() == b"abc"
    assert stream.closed


class _MemWriter(BlobWriter):
    def __init__(self):
        self.buf = bytearray()
        self.cancelled = 0
        self.committed = False

    def write(self, data):
        self.buf += data
        return len(data)

    def close(self):
        pass

    def size(self):
        return len(self.buf)

    def chunk_size(self):
        return 1024

    def id(self):
        return "upload-1"

    def commit(self, digest):
        self.committed = True
        return Descriptor(digest=digest, size=len(self.buf))

    def cancel(self):
        self.cancelled += 1


def test_blob_writer_is_abstract():
    with pytest.raises(TypeError):
        BlobWriter()


def test_blob_writer_context_manager_cancels_after_commit():
    with _MemWriter() as w:
        w.write(b"abc")
        desc = w.commit(DIGEST)
    assert desc == Descriptor(digest=DIGEST, size=3)
    assert w.cancelled == 1


def test_blob_writer_context_manager_cancels_on_error():
    w = _MemWriter()
    with pytest.raises(Exception) as excinfo:
        with w:
            w.write(b"abc")
            Registry().push_blob("foo", Descriptor(digest=DIGEST, size=3), io.BytesIO(b"abc"))
    assert is_error(excinfo.value, ERR_UNSUPPORTED)
    assert w.cancelled == 1
    assert not w.committed


@pytest.mark.parametrize(
    "call",
    [
        lambda r: r.get_blob("foo", DIGEST),
        lambda r: r.get_blob_range("foo", DIGEST, 0, -1),
        lambda r: r.get_manifest("foo", DIGEST),
        lambda r: r.get_tag("foo", "latest"),
        lambda r: r.resolve_blob("foo", DIGEST),
        lambda r: r.resolve_manifest("foo", DIGEST),
        lambda r: r.resolve_tag("foo", "latest"),
        lambda r: r.push_blob("foo", Descriptor(), io.BytesIO()),
        lambda r: r.push_blob_chunked("foo", 0),
        lambda r: r.push_blob_chunked_resume("foo", "id", -1, 0),
        lambda r: r.mount_blob("bar", "foo", DIGEST),
        lambda r: r.push_manifest("foo", "", b"{}", "application/json"),
        lambda r: r.delete_blob("foo", DIGEST),
        lambda r: r.delete_manifest("foo", DIGEST),
        lambda r: r.delete_tag("foo", "latest"),
    ],
)
def test_base_registry_operations_are_unsupported(call):
    with pytest.raises(Exception) as excinfo:
        call(Registry())
    assert is_error(excinfo.value, ERR_UNSUPPORTED)


def test_base_registry_error_message_names_method():
    with pytest.raises(Exception) as excinfo:
        Registry().get_blob("foo", DIGEST)
    assert str(excinfo.value) == "get_blob: unsupported: the operation is unsupported"
    data, status = marshal_error(excinfo.value)
    assert status == 400
    assert json.loads(data) == {
        "errors": [
            {
                "code": "UNSUPPORTED",
                "message": "get_blob: unsupported: the operation is unsupported",
            }
        ]
    }


def test_unsupported_error_marshals_to_unsupported_code():
    with pytest.raises(Exception) as excinfo:
        Registry().delete_tag("foo", "latest")
    _, status = marshal_error(excinfo.value)
    assert status == 400


@pytest.mark.parametrize(
    "call",
    [
        lambda r: r.repositories(""),
        lambda r: r.tags("foo", ""),
        lambda r: r.referrers("foo", DIGEST, ""),
    ],
)
def test_base_registry_listings_raise_when_iterated(call):
    seq = call(Registry())
    with pytest.raises(Exception) as excinfo:
        collect(seq)
    assert is_error(excinfo.value, ERR_UNSUPPORTED)