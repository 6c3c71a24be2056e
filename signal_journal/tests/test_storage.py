from datetime import datetime, timezone

import pytest

from signal_journal.app.errors import CodecError, DocumentNotFoundError, InputError
from signal_journal.app.schemas.packet import SignaturePacket
from signal_journal.app.storage.filesystem import FileSystemDocumentStore
from signal_journal.app.storage.memory import InMemoryDocumentStore


def make_packet() -> SignaturePacket:
    return SignaturePacket(
        signature="sig",
        public_key="key",
        original_hash="ab" * 32,
        signing_date=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        journal_id="journal-1",
    )


@pytest.fixture(params=["memory", "filesystem"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryDocumentStore()
    return FileSystemDocumentStore(tmp_path / "journals")


def test_save_and_load(store):
    store.save("journal-1", b"%PDF-signed", make_packet(), content=b"original")

    assert store.load_content("journal-1") == b"original"
    assert store.load_pdf("journal-1") == b"%PDF-signed"
    assert store.load_packet("journal-1") == make_packet()


def test_update_content(store):
    store.save("journal-1", b"%PDF-signed", make_packet(), content=b"original")
    store.update_content("journal-1", b"changed")

    assert store.load_content("journal-1") == b"changed"
    assert store.load_pdf("journal-1") == b"%PDF-signed"


def test_unknown_journal_raises_not_found(store):
    with pytest.raises(DocumentNotFoundError):
        store.load_content("missing")
    with pytest.raises(DocumentNotFoundError):
        store.load_pdf("missing")
    with pytest.raises(DocumentNotFoundError):
        store.load_packet("missing")
    with pytest.raises(DocumentNotFoundError):
        store.update_content("missing", b"x")


@pytest.mark.parametrize("bad_id", ["../escape", "a/b", "", "x" * 129])
def test_invalid_journal_ids_are_rejected_on_save(store, bad_id):
    with pytest.raises(InputError):
        store.save(bad_id, b"%PDF", make_packet(), content=b"c")


def test_filesystem_layout(tmp_path):
    store = FileSystemDocumentStore(tmp_path)
    store.save("journal-1", b"%PDF-signed", make_packet(), content=b"original")

    assert (tmp_path / "journal-1" / "content.bin").read_bytes() == b"original"
    assert (tmp_path / "journal-1" / "signed.pdf").read_bytes() == b"%PDF-signed"
    assert (tmp_path / "journal-1" / "packet.json").exists()
    assert not list(tmp_path.glob("journal-1/*.tmp"))


@pytest.mark.parametrize("payload", ["{not json", "[1, 2]", '{"signal_signature": "s"}'])
def test_filesystem_corrupt_packet_raises_codec_error(tmp_path, payload):
    store = FileSystemDocumentStore(tmp_path)
    store.save("journal-1", b"%PDF-signed", make_packet(), content=b"original")
    (tmp_path / "journal-1" / "packet.json").write_text(payload, "utf-8")

    with pytest.raises(CodecError):
        store.load_packet("journal-1")
