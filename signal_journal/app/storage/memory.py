from __future__ import annotations

import threading
from typing import Dict, Optional

from signal_journal.app.errors import DocumentNotFoundError
from signal_journal.app.schemas.packet import SignaturePacket
from signal_journal.app.storage.base import StoredDocument, validate_journal_id


class InMemoryDocumentStore:
    """
    Process-local document store.

    Used for development and tests. Contents are lost on restart.
    """

    def __init__(self) -> None:
        self._documents: Dict[str, StoredDocument] = {}
        self._lock = threading.Lock()

    def _get(self, journal_id: str) -> StoredDocument:
        with self._lock:
            document = self._documents.get(journal_id)
        if document is None:
            raise DocumentNotFoundError(f"Journal not found: {journal_id}")
        return document

    def load_content(self, journal_id: str) -> bytes:
        return self._get(journal_id).content

    def load_pdf(self, journal_id: str) -> bytes:
        document = self._get(journal_id)
        if document.pdf is None:
            raise DocumentNotFoundError(f"Journal has no signed PDF: {journal_id}")
        return document.pdf

    def load_packet(self, journal_id: str) -> Optional[SignaturePacket]:
        return self._get(journal_id).packet

    def save(
        self,
        journal_id: str,
        pdf_bytes: bytes,
        packet: SignaturePacket,
        *,
        content: bytes,
    ) -> None:
        validate_journal_id(journal_id)
        with self._lock:
            self._documents[journal_id] = StoredDocument(
                journal_id=journal_id,
                content=bytes(content),
                pdf=bytes(pdf_bytes),
                packet=packet,
            )

    def update_content(self, journal_id: str, content: bytes) -> None:
        document = self._get(journal_id)
        with self._lock:
            self._documents[journal_id] = document.model_copy(
                update={"content": bytes(content)}
            )
