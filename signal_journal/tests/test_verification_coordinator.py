import pytest

from signal_journal.app.coordinator.verification import VerificationCoordinator
from signal_journal.app.errors import DocumentNotFoundError, InputError
from signal_journal.app.events import MemoryEventEmitter
from signal_journal.app.pdf import metadata_codec
from signal_journal.app.qr.payload import build_minimal_qr_payload, build_verification_url
from signal_journal.app.schemas.packet import SignaturePacket
from signal_journal.app.schemas.verdict import ContentSource, VerdictStatus
from signal_journal.app.services.signing import SigningService
from signal_journal.app.storage.filesystem import FileSystemDocumentStore
from signal_journal.app.storage.memory import InMemoryDocumentStore
from signal_journal.app.utils.hashing import compute_content_hash
from signal_journal.tests.fixtures.keys import signed
from signal_journal.tests.fixtures.pdf_factory import minimal_valid_pdf, pdf_with_info, truncated_pdf

TEXT = "This is a test document for signature verification."
JOURNAL_ID = "test-journal-123"


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def emitter():
    return MemoryEventEmitter()


@pytest.fixture
def coordinator(store, emitter):
    return VerificationCoordinator(store=store, emitter=emitter)


@pytest.fixture
def signed_journal(store):
    service = SigningService(store=store, max_content_bytes=1024 * 1024)
    signature, public_key = signed(TEXT)
    return service.sign_document(
        TEXT,
        signature=signature,
        public_key=public_key,
        author="Test Author",
        perihal="My Journal Title",
        journal_id=JOURNAL_ID,
    )


# ------------------------------------------------------------------
# verify_pdf
# ------------------------------------------------------------------

def test_unsigned_pdf(coordinator, emitter):
    verdict = coordinator.verify_pdf(minimal_valid_pdf())

    assert verdict.status is VerdictStatus.UNSIGNED
    assert verdict.packet is None
    assert emitter.event_types == ["verification_started", "packet_missing"]


def test_valid_pdf_verified_against_stored_content(coordinator, emitter, signed_journal):
    verdict = coordinator.verify_pdf(signed_journal.pdf_bytes)

    assert verdict.status is VerdictStatus.VALID
    assert verdict.verified
    assert verdict.journal_id == JOURNAL_ID
    assert verdict.packet == signed_journal.packet
    assert verdict.integrity.content_source is ContentSource.STORAGE
    assert verdict.integrity.matches is True
    assert emitter.event_types == [
        "verification_started",
        "packet_extracted",
        "content_resolved",
        "signature_checked",
        "verification_completed",
    ]


def test_valid_pdf_verified_against_provided_content(signed_journal):
    coordinator = VerificationCoordinator()

    verdict = coordinator.verify_pdf(signed_journal.pdf_bytes, content=TEXT)

    assert verdict.status is VerdictStatus.VALID
    assert verdict.integrity.content_source is ContentSource.PROVIDED


def test_pdf_without_store_falls_back_to_recorded_hash(signed_journal):
    coordinator = VerificationCoordinator()

    verdict = coordinator.verify_pdf(signed_journal.pdf_bytes)

    assert verdict.status is VerdictStatus.VALID
    assert verdict.integrity.content_source is ContentSource.RECORDED_HASH
    assert verdict.integrity.computed_hash is None
    assert verdict.integrity.matches is None


def test_tampered_stored_content_is_invalid(coordinator, emitter, store, signed_journal):
    store.update_content(JOURNAL_ID, b"This is a tampered document.")

    verdict = coordinator.verify_pdf(signed_journal.pdf_bytes)

    assert verdict.status is VerdictStatus.INVALID
    assert verdict.integrity.matches is False
    assert verdict.integrity.recorded_hash == compute_content_hash(TEXT)
    # The packet still describes the original content.
    assert verdict.packet.original_hash == compute_content_hash(TEXT)
    assert "integrity_mismatch" in emitter.event_types


def test_provided_content_mismatch_is_invalid(coordinator, signed_journal):
    verdict = coordinator.verify_pdf(signed_journal.pdf_bytes, content="something else")

    assert verdict.status is VerdictStatus.INVALID
    assert verdict.integrity.content_source is ContentSource.PROVIDED


def test_garbage_signature_in_pdf_is_invalid_not_error(coordinator):
    packet = SignaturePacket(
        signature="TESTSIGNATURE123456789abcdef",
        public_key="TESTPUBLICKEY123456789abcdef",
        original_hash=compute_content_hash(TEXT),
        journal_id=JOURNAL_ID,
    )
    pdf_bytes = metadata_codec.embed(TEXT, packet)

    verdict = coordinator.verify_pdf(pdf_bytes, content=TEXT)

    assert verdict.status is VerdictStatus.INVALID
    assert verdict.integrity.matches is True


@pytest.mark.parametrize("pdf_bytes", [truncated_pdf(), b"definitely not a pdf", b""])
def test_unreadable_pdf_is_malformed(coordinator, emitter, pdf_bytes):
    verdict = coordinator.verify_pdf(pdf_bytes)

    assert verdict.status is VerdictStatus.MALFORMED
    assert verdict.error
    assert emitter.event_types[-1] == "verification_malformed"


@pytest.mark.parametrize(
    "keywords",
    [
        "[" * 200_000 + "]" * 200_000,
        '{"a":' * 100_000 + "1" + "}" * 100_000,
    ],
)
def test_deeply_nested_keywords_do_not_crash_verification(coordinator, keywords):
    verdict = coordinator.verify_pdf(pdf_with_info({"Keywords": keywords}))

    assert verdict.status is VerdictStatus.UNSIGNED


def test_unexpected_extraction_failure_is_malformed(coordinator, emitter, monkeypatch):
    def explode(pdf_bytes):
        raise RecursionError("maximum recursion depth exceeded")

    monkeypatch.setattr(metadata_codec, "extract", explode)

    verdict = coordinator.verify_pdf(minimal_valid_pdf())

    assert verdict.status is VerdictStatus.MALFORMED
    assert "RecursionError" in verdict.error
    assert emitter.event_types[-1] == "verification_malformed"


def test_undecodable_comparison_content_is_malformed(coordinator, signed_journal):
    verdict = coordinator.verify_pdf(
        signed_journal.pdf_bytes,
        content="***",
        is_base64=True,
    )

    assert verdict.status is VerdictStatus.MALFORMED
    assert verdict.journal_id == JOURNAL_ID


def test_failing_emitter_does_not_change_verdict(store, signed_journal):
    class BrokenEmitter:
        def emit(self, event):
            raise RuntimeError("sink unavailable")

    coordinator = VerificationCoordinator(store=store, emitter=BrokenEmitter())

    assert coordinator.verify_pdf(signed_journal.pdf_bytes).status is VerdictStatus.VALID


# ------------------------------------------------------------------
# verify_stored / verify_qr
# ------------------------------------------------------------------

def test_verify_stored(coordinator, signed_journal):
    verdict = coordinator.verify_stored(JOURNAL_ID)

    assert verdict.status is VerdictStatus.VALID
    assert verdict.integrity.content_source is ContentSource.STORAGE


def test_verify_stored_after_tamper(coordinator, store, signed_journal):
    store.update_content(JOURNAL_ID, b"tampered")

    assert coordinator.verify_stored(JOURNAL_ID).status is VerdictStatus.INVALID


def test_verify_stored_uses_stored_packet_when_pdf_lost_metadata(coordinator, store, signed_journal):
    store.save(
        JOURNAL_ID,
        minimal_valid_pdf(),
        signed_journal.packet,
        content=TEXT.encode("utf-8"),
    )

    verdict = coordinator.verify_stored(JOURNAL_ID)

    assert verdict.status is VerdictStatus.VALID
    assert verdict.packet == signed_journal.packet


def test_verify_stored_unknown_journal_raises(coordinator):
    with pytest.raises(DocumentNotFoundError):
        coordinator.verify_stored("missing-journal")


def test_verify_stored_corrupt_packet_file_is_malformed(tmp_path):
    store = FileSystemDocumentStore(tmp_path)
    service = SigningService(store=store, max_content_bytes=1024 * 1024)
    signature, public_key = signed(TEXT)
    service.sign_document(
        TEXT,
        signature=signature,
        public_key=public_key,
        journal_id=JOURNAL_ID,
    )

    # PDF without metadata forces the stored packet to be read.
    (tmp_path / JOURNAL_ID / "signed.pdf").write_bytes(minimal_valid_pdf())
    (tmp_path / JOURNAL_ID / "packet.json").write_text("{not json", "utf-8")

    verdict = VerificationCoordinator(store=store).verify_stored(JOURNAL_ID)

    assert verdict.status is VerdictStatus.MALFORMED
    assert verdict.journal_id == JOURNAL_ID


def test_verify_stored_requires_store():
    with pytest.raises(RuntimeError):
        VerificationCoordinator().verify_stored(JOURNAL_ID)


def test_verify_qr_minimal_payload(coordinator, signed_journal):
    qr_data = build_minimal_qr_payload(
        JOURNAL_ID,
        content_hash=signed_journal.content_hash,
        title=signed_journal.packet.perihal,
    )

    verdict = coordinator.verify_qr(qr_data)

    assert verdict.status is VerdictStatus.VALID
    assert verdict.qr_hash_matches is True


def test_verify_qr_reports_hash_mismatch(coordinator, signed_journal):
    verdict = coordinator.verify_qr('{"id":"test-journal-123","h":"deadbeef","t":"My Journal Title"}')

    assert verdict.status is VerdictStatus.VALID
    assert verdict.qr_hash_matches is False


def test_verify_qr_url(coordinator, signed_journal):
    url = build_verification_url(JOURNAL_ID, base_url="https://signal.example.com")

    verdict = coordinator.verify_qr(url)

    assert verdict.status is VerdictStatus.VALID
    assert verdict.qr_hash_matches is None


def test_verify_qr_free_text_fallback(coordinator, signed_journal):
    verdict = coordinator.verify_qr(f"Signed journal\nDocument ID: {JOURNAL_ID}")

    assert verdict.status is VerdictStatus.VALID


def test_verify_qr_unrecognized_is_malformed(coordinator):
    verdict = coordinator.verify_qr("hello world")

    assert verdict.status is VerdictStatus.MALFORMED
    assert "unknown" in verdict.error


def test_verify_qr_unknown_journal_raises(coordinator):
    with pytest.raises(DocumentNotFoundError):
        coordinator.verify_qr('{"id": "missing-journal"}')


# ------------------------------------------------------------------
# verify_batch
# ------------------------------------------------------------------

def test_verify_batch_mixed_results(coordinator, signed_journal):
    results = coordinator.verify_batch([JOURNAL_ID, "missing-journal"])

    assert [item.journal_id for item in results] == [JOURNAL_ID, "missing-journal"]
    assert results[0].verdict.status is VerdictStatus.VALID
    assert results[1].verdict is None
    assert results[1].error


def test_verify_batch_is_bounded(store):
    coordinator = VerificationCoordinator(store=store, max_batch_size=3)

    with pytest.raises(InputError):
        coordinator.verify_batch(["a", "b", "c", "d"])

    assert coordinator.verify_batch([]) == []
