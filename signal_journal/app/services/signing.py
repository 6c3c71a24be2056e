"""
Journal signing service.

Stable abstraction boundary:
- Signatures are produced by the signer's own client; this service only
  checks them, embeds them, and persists the result.
- The embedded packet is the only mutation performed on the PDF.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

from signal_journal.app.config import Settings
from signal_journal.app.crypto.ecdsa import validate_public_key, verify_signature
from signal_journal.app.errors import InputError
from signal_journal.app.pdf import metadata_codec
from signal_journal.app.qr.payload import build_verification_url
from signal_journal.app.schemas.packet import DescriptiveMetadata, SignaturePacket
from signal_journal.app.storage.base import DocumentStore, validate_journal_id
from signal_journal.app.utils.hashing import Content, compute_content_hash, content_to_bytes

logger = logging.getLogger("signal_journal.signing")


class SignedDocument(BaseModel):
    """Result of one signing call."""

    journal_id: str
    content_hash: str
    packet: SignaturePacket
    pdf_bytes: bytes

    model_config = ConfigDict(frozen=True)


class SigningService:
    """
    hash -> check signature -> build packet -> embed -> persist
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        max_content_bytes: int,
        verification_base_url: Optional[str] = None,
        add_verification_page: bool = False,
    ) -> None:
        self._store = store
        self._max_content_bytes = max_content_bytes
        self._verification_base_url = verification_base_url
        self._add_verification_page = add_verification_page

    @classmethod
    def from_settings(cls, settings: Settings, *, store: DocumentStore) -> "SigningService":
        return cls(
            store=store,
            max_content_bytes=settings.max_content_bytes,
            verification_base_url=settings.base_url,
            add_verification_page=settings.add_verification_page,
        )

    # ------------------------------------------------------------------
    # Input validation
    # ------------------------------------------------------------------

    def _materialize(self, content: Content, *, is_base64: bool) -> bytes:
        try:
            data = content_to_bytes(content, is_base64=is_base64)
        except (TypeError, ValueError) as exc:
            raise InputError(f"Unreadable document content: {exc}") from exc

        if not data:
            raise InputError("Document content is empty")

        if len(data) > self._max_content_bytes:
            raise InputError(
                f"Document exceeds maximum size of {self._max_content_bytes} bytes"
            )
        return data

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def sign_document(
        self,
        content: Content,
        *,
        signature: str,
        public_key: str,
        author: str = "Unknown",
        perihal: str = "Digital Signature",
        journal_id: Optional[str] = None,
        signing_date: Optional[datetime] = None,
        is_base64: bool = False,
        metadata: Optional[DescriptiveMetadata] = None,
    ) -> SignedDocument:
        """
        Embed a client-produced signature into the document and persist it.

        ``content`` is either PDF bytes or text. Text is rendered into a
        fresh PDF. The signature must verify over ``content`` before
        anything is written.

        Raises:
            InputError:
                Empty, oversized or undecodable content, an invalid public
                key, or a signature that does not match the content.
            CodecError:
                If the PDF cannot be parsed or re-serialized.
        """
        data = self._materialize(content, is_base64=is_base64)

        if not signature or not public_key:
            raise InputError("Signature and public key are required")

        if not validate_public_key(public_key):
            raise InputError("Public key is not a valid P-256 key")

        if not verify_signature(data, signature, public_key):
            raise InputError("Signature does not match document content")

        journal_id = validate_journal_id(journal_id) if journal_id else str(uuid4())
        content_hash = compute_content_hash(data)

        packet = SignaturePacket(
            signature=signature,
            public_key=public_key,
            original_hash=content_hash,
            signing_date=signing_date or datetime.now(timezone.utc),
            author=author or "Unknown",
            perihal=perihal or "Digital Signature",
            journal_id=journal_id,
        )

        verification_url = (
            build_verification_url(journal_id, base_url=self._verification_base_url)
            if self._verification_base_url
            else None
        )

        # Text input is signed as text; the PDF is only its carrier.
        document = content if isinstance(content, str) and not is_base64 else data

        pdf_bytes = metadata_codec.embed(
            document,
            packet,
            metadata=metadata,
            add_verification_page=self._add_verification_page,
            verification_url=verification_url,
        )

        self._store.save(journal_id, pdf_bytes, packet, content=data)

        logger.info(
            "document_signed",
            extra={
                "journal_id": journal_id,
                "content_hash": content_hash,
                "signature_prefix": signature[:8],
                "pdf_bytes": len(pdf_bytes),
            },
        )

        return SignedDocument(
            journal_id=journal_id,
            content_hash=content_hash,
            packet=packet,
            pdf_bytes=pdf_bytes,
        )
