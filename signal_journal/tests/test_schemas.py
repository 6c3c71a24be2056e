from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from signal_journal.app.schemas.packet import METADATA_VERSION, SignaturePacket
from signal_journal.app.schemas.verdict import (
    ContentSource,
    IntegrityCheck,
    VerdictStatus,
    VerificationVerdict,
)

HASH = "ab" * 32


def make_packet(**overrides) -> SignaturePacket:
    values = dict(signature="sig", public_key="key", original_hash=HASH)
    values.update(overrides)
    return SignaturePacket(**values)


def test_packet_defaults():
    packet = make_packet()

    assert packet.author == "Unknown"
    assert packet.perihal == "Digital Signature"
    assert packet.journal_id is None
    assert packet.version == METADATA_VERSION
    assert packet.signing_date.tzinfo is not None


def test_naive_signing_date_is_utc():
    packet = make_packet(signing_date=datetime(2026, 5, 1, 12, 0, 0))
    assert packet.signing_date == datetime(2026, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_metadata_uses_on_document_field_names():
    metadata = make_packet(journal_id="j-1").to_metadata()

    assert set(metadata) == {
        "signal_signature",
        "signal_publicKey",
        "signal_documentHash",
        "signal_signingDate",
        "signal_author",
        "signal_perihal",
        "signal_id",
        "signal_version",
    }


def test_metadata_round_trip():
    packet = make_packet(journal_id="j-1")
    assert SignaturePacket.from_metadata(packet.to_metadata()) == packet


def test_from_metadata_ignores_unknown_keys_and_nulls():
    packet = make_packet(signing_date=datetime(2026, 5, 1, tzinfo=timezone.utc))
    metadata = {**packet.to_metadata(), "signal_future": "x", "signal_id": None}

    assert SignaturePacket.from_metadata(metadata) == packet


def test_packet_is_frozen_and_requires_signature():
    packet = make_packet()
    with pytest.raises(ValidationError):
        packet.signature = "other"
    with pytest.raises(ValidationError):
        make_packet(signature="")


def test_integrity_without_content_cannot_claim_match():
    with pytest.raises(ValidationError):
        IntegrityCheck(
            content_source=ContentSource.RECORDED_HASH,
            recorded_hash=HASH,
            matches=True,
        )
    with pytest.raises(ValidationError):
        IntegrityCheck(content_source=ContentSource.STORAGE, recorded_hash=HASH)


def test_verdict_invariants():
    integrity = IntegrityCheck(
        content_source=ContentSource.STORAGE,
        computed_hash=HASH,
        recorded_hash=HASH,
        matches=True,
    )

    valid = VerificationVerdict(
        status=VerdictStatus.VALID,
        packet=make_packet(),
        integrity=integrity,
    )
    assert valid.verified

    with pytest.raises(ValidationError):
        VerificationVerdict(status=VerdictStatus.VALID)
    with pytest.raises(ValidationError):
        VerificationVerdict(status=VerdictStatus.UNSIGNED, packet=make_packet())
    with pytest.raises(ValidationError):
        VerificationVerdict(status=VerdictStatus.MALFORMED)
