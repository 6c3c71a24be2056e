"""
Verification coordinator.

IMPORTANT:
Every call ends in exactly one verdict:

    start -> packet extracted? -> content hashed -> signature checked -> verdict

- No packet                         -> unsigned
- Signature verifies over content   -> valid
- Signature does not verify         -> invalid
- PDF or payload cannot be decoded  -> malformed

The signature is always checked against the content as it exists NOW
(caller-supplied or loaded from storage), never against the hash the
packet claims for itself. The packet's originalHash is consulted only for
the informational integrity cross-check, and only as a last resort when
no content is available at all.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple
from uuid import uuid4

from signal_journal.app.config import Settings
from signal_journal.app.crypto.ecdsa import (
    verify_signature,
    verify_signature_for_hash,
)
from signal_journal.app.errors import CodecError, DocumentNotFoundError, InputError
from signal_journal.app.pdf import metadata_codec
from signal_journal.app.qr.payload import extract_qr_data, resolve_journal_id
from signal_journal.app.schemas.packet import SignaturePacket
from signal_journal.app.schemas.verdict import (
    BatchVerificationItem,
    ContentSource,
    IntegrityCheck,
    VerdictStatus,
    VerificationVerdict,
)
from signal_journal.app.storage.base import DocumentStore
from signal_journal.app.utils.hashing import (
    Content,
    compute_content_hash,
    content_to_bytes,
    hashes_equal,
)

# Events (observational only)
from signal_journal.app.events import (
    NullEventEmitter,
    VerificationEvent,
    VerificationEventEmitter,
    VerificationEventType,
)

logger = logging.getLogger("signal_journal.coordinator")

MAX_BATCH_SIZE = 50


class VerificationCoordinator:
    """
    Drives codec extraction, hash recomputation and signature
    verification into a single VerificationVerdict.
    """

    def __init__(
        self,
        *,
        store: Optional[DocumentStore] = None,
        emitter: Optional[VerificationEventEmitter] = None,
        max_batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        """
        Direct constructor.

        Intended for tests and explicit wiring. Without a store only
        verify_pdf is available.
        """
        self._store = store
        self._emitter = emitter or NullEventEmitter()
        self._max_batch_size = max_batch_size

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        settings: Settings,
        *,
        store: DocumentStore,
        emitter: Optional[VerificationEventEmitter] = None,
    ) -> "VerificationCoordinator":
        return cls(
            store=store,
            emitter=emitter,
            max_batch_size=settings.max_batch_size,
        )

    # ------------------------------------------------------------------
    # Event emission (fail-safe)
    # ------------------------------------------------------------------

    def _emit(
        self,
        verification_id: str,
        event_type: VerificationEventType,
        **details,
    ) -> None:
        try:
            self._emitter.emit(
                VerificationEvent(
                    verification_id=verification_id,
                    event_type=event_type,
                    details=details or None,
                )
            )
        except Exception:
            # Observability must never change a verdict.
            logger.warning(
                "event_emission_failed",
                extra={"event_type": event_type.value},
            )

    # ------------------------------------------------------------------
    # Terminal verdicts
    # ------------------------------------------------------------------

    def _malformed(
        self,
        verification_id: str,
        error: str,
        *,
        journal_id: Optional[str] = None,
    ) -> VerificationVerdict:
        self._emit(
            verification_id,
            VerificationEventType.VERIFICATION_MALFORMED,
            error=error,
        )
        logger.info(
            "verification_completed",
            extra={
                "verification_id": verification_id,
                "status": VerdictStatus.MALFORMED.value,
                "journal_id": journal_id,
            },
        )
        return VerificationVerdict(
            verification_id=verification_id,
            status=VerdictStatus.MALFORMED,
            journal_id=journal_id,
            message="Document or payload could not be decoded",
            error=error,
        )

    def _unsigned(
        self,
        verification_id: str,
        *,
        journal_id: Optional[str] = None,
    ) -> VerificationVerdict:
        self._emit(verification_id, VerificationEventType.PACKET_MISSING)
        logger.info(
            "verification_completed",
            extra={
                "verification_id": verification_id,
                "status": VerdictStatus.UNSIGNED.value,
                "journal_id": journal_id,
            },
        )
        return VerificationVerdict(
            verification_id=verification_id,
            status=VerdictStatus.UNSIGNED,
            journal_id=journal_id,
            message="Document carries no signature metadata",
        )

    def _judge(
        self,
        verification_id: str,
        packet: SignaturePacket,
        content: Optional[bytes],
        source: ContentSource,
        *,
        journal_id: Optional[str],
        qr_hash: Optional[str] = None,
    ) -> VerificationVerdict:
        if content is not None:
            computed_hash = compute_content_hash(content)
            integrity = IntegrityCheck(
                content_source=source,
                computed_hash=computed_hash,
                recorded_hash=packet.original_hash,
                matches=hashes_equal(computed_hash, packet.original_hash),
            )
            verified = verify_signature(content, packet.signature, packet.public_key)
        else:
            integrity = IntegrityCheck(
                content_source=ContentSource.RECORDED_HASH,
                recorded_hash=packet.original_hash,
            )
            verified = verify_signature_for_hash(
                packet.original_hash,
                packet.signature,
                packet.public_key,
            )

        self._emit(
            verification_id,
            VerificationEventType.CONTENT_RESOLVED,
            content_source=integrity.content_source.value,
        )

        if integrity.mismatch:
            self._emit(
                verification_id,
                VerificationEventType.INTEGRITY_MISMATCH,
                computed_hash=integrity.computed_hash,
                recorded_hash=integrity.recorded_hash,
            )

        self._emit(
            verification_id,
            VerificationEventType.SIGNATURE_CHECKED,
            verified=verified,
        )

        status = VerdictStatus.VALID if verified else VerdictStatus.INVALID

        if verified:
            message = "Signature is valid"
        elif integrity.mismatch:
            message = "Signature is invalid: content changed after signing"
        else:
            message = "Signature is invalid"

        verdict = VerificationVerdict(
            verification_id=verification_id,
            status=status,
            journal_id=journal_id,
            packet=packet,
            integrity=integrity,
            qr_hash_matches=(
                hashes_equal(qr_hash, packet.original_hash)
                if qr_hash
                else None
            ),
            message=message,
        )

        self._emit(
            verification_id,
            VerificationEventType.VERIFICATION_COMPLETED,
            status=status.value,
        )
        logger.info(
            "verification_completed",
            extra={
                "verification_id": verification_id,
                "status": status.value,
                "journal_id": journal_id,
                "content_source": integrity.content_source.value,
                "integrity_mismatch": integrity.mismatch,
            },
        )
        return verdict

    # ------------------------------------------------------------------
    # Packet and content resolution
    # ------------------------------------------------------------------

    def _extract(
        self,
        verification_id: str,
        pdf_bytes: bytes,
    ) -> Tuple[Optional[SignaturePacket], Optional[str]]:
        """Return (packet, error). Extraction failures never escape."""
        try:
            packet = metadata_codec.extract(pdf_bytes)
        except CodecError as exc:
            cause = exc.__cause__
            detail = f"{exc}: {cause}" if cause is not None else str(exc)
            logger.warning(
                "packet_extraction_failed",
                extra={"verification_id": verification_id, "error": detail},
            )
            return None, detail
        except Exception as exc:
            # Hostile metadata must end in a verdict, not a crash.
            logger.warning(
                "packet_extraction_crashed",
                extra={
                    "verification_id": verification_id,
                    "error_type": type(exc).__name__,
                },
            )
            return None, f"Unable to decode signature metadata ({type(exc).__name__})"

        if packet is not None:
            self._emit(
                verification_id,
                VerificationEventType.PACKET_EXTRACTED,
                journal_id=packet.journal_id,
                version=packet.version,
            )
        return packet, None

    def _stored_content(self, journal_id: Optional[str]) -> Optional[bytes]:
        if self._store is None or not journal_id:
            return None
        try:
            return self._store.load_content(journal_id)
        except (DocumentNotFoundError, InputError):
            # Documents signed elsewhere are verified against their own
            # recorded hash.
            return None

    def _require_store(self) -> DocumentStore:
        if self._store is None:
            raise RuntimeError("VerificationCoordinator has no document store")
        return self._store

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def verify_pdf(
        self,
        pdf_bytes: bytes,
        *,
        content: Optional[Content] = None,
        is_base64: bool = False,
    ) -> VerificationVerdict:
        """
        Verify a signed PDF.

        Content used for the signature check, in order of preference:
        1. ``content`` supplied by the caller
        2. content stored under the packet's journal id
        3. the packet's recorded originalHash
        """
        verification_id = str(uuid4())
        self._emit(verification_id, VerificationEventType.VERIFICATION_STARTED)

        packet, error = self._extract(verification_id, pdf_bytes)
        if error is not None:
            return self._malformed(verification_id, error)
        if packet is None:
            return self._unsigned(verification_id)

        if content is not None:
            try:
                data = content_to_bytes(content, is_base64=is_base64)
            except (TypeError, ValueError) as exc:
                return self._malformed(
                    verification_id,
                    f"Unreadable comparison content: {exc}",
                    journal_id=packet.journal_id,
                )
            return self._judge(
                verification_id,
                packet,
                data,
                ContentSource.PROVIDED,
                journal_id=packet.journal_id,
            )

        stored = self._stored_content(packet.journal_id)
        return self._judge(
            verification_id,
            packet,
            stored,
            ContentSource.STORAGE if stored is not None else ContentSource.RECORDED_HASH,
            journal_id=packet.journal_id,
        )

    def verify_stored(
        self,
        journal_id: str,
        *,
        qr_hash: Optional[str] = None,
    ) -> VerificationVerdict:
        """
        Verify a persisted journal against its currently stored content.

        Raises:
            DocumentNotFoundError: if the journal is unknown to the store.
        """
        store = self._require_store()

        verification_id = str(uuid4())
        self._emit(
            verification_id,
            VerificationEventType.VERIFICATION_STARTED,
            journal_id=journal_id,
        )

        content = store.load_content(journal_id)

        try:
            pdf_bytes: Optional[bytes] = store.load_pdf(journal_id)
        except DocumentNotFoundError:
            pdf_bytes = None

        packet: Optional[SignaturePacket] = None
        if pdf_bytes is not None:
            packet, error = self._extract(verification_id, pdf_bytes)
            if error is not None:
                return self._malformed(verification_id, error, journal_id=journal_id)

        # Stored signature fields stand in for PDFs that lost their metadata.
        if packet is None:
            try:
                packet = store.load_packet(journal_id)
            except CodecError as exc:
                return self._malformed(verification_id, str(exc), journal_id=journal_id)
        if packet is None:
            return self._unsigned(verification_id, journal_id=journal_id)

        return self._judge(
            verification_id,
            packet,
            content,
            ContentSource.STORAGE,
            journal_id=journal_id,
            qr_hash=qr_hash,
        )

    def verify_qr(self, qr_data: str) -> VerificationVerdict:
        """
        Resolve a scanned QR payload to a stored journal and verify it.

        Unrecognized payloads yield a malformed verdict.

        Raises:
            DocumentNotFoundError: if the referenced journal is unknown.
        """
        payload = extract_qr_data(qr_data)
        resolved = resolve_journal_id(payload)

        if resolved is None or not resolved.get("id"):
            return self._malformed(
                str(uuid4()),
                payload.error or f"Unrecognized QR payload (type={payload.type.value})",
            )

        logger.debug(
            "qr_payload_resolved",
            extra={"qr_type": payload.type.value, "journal_id": resolved["id"]},
        )
        return self.verify_stored(resolved["id"], qr_hash=resolved.get("hash"))

    def verify_batch(self, journal_ids: Sequence[str]) -> List[BatchVerificationItem]:
        """
        Verify several stored journals, one full pipeline run each.

        Raises:
            InputError: if more than ``max_batch_size`` ids are given.
        """
        if len(journal_ids) > self._max_batch_size:
            raise InputError(
                f"Batch of {len(journal_ids)} exceeds maximum of "
                f"{self._max_batch_size} documents"
            )

        results: List[BatchVerificationItem] = []
        for journal_id in journal_ids:
            try:
                verdict = self.verify_stored(journal_id)
            except (DocumentNotFoundError, InputError) as exc:
                results.append(
                    BatchVerificationItem(journal_id=journal_id, error=str(exc))
                )
                continue
            results.append(BatchVerificationItem(journal_id=journal_id, verdict=verdict))

        logger.info(
            "batch_verification_completed",
            extra={
                "requested": len(journal_ids),
                "valid": sum(
                    1 for item in results
                    if item.verdict is not None and item.verdict.verified
                ),
            },
        )
        return results
