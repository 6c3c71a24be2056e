"""
Storage collaborator interface.

The signing core never talks to a database. It reads and writes opaque
byte blobs and packet fields through this interface, keyed by journal id.
"""

from __future__ import annotations

import re
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict

from signal_journal.app.errors import InputError
from signal_journal.app.schemas.packet import SignaturePacket

JOURNAL_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def validate_journal_id(journal_id: str) -> str:
    if not isinstance(journal_id, str) or not JOURNAL_ID_PATTERN.match(journal_id):
        raise InputError(f"Invalid journal id: {journal_id!r}")
    return journal_id


class StoredDocument(BaseModel):
    """A persisted journal: original content, signed PDF, and packet."""

    journal_id: str
    content: bytes
    pdf: Optional[bytes] = None
    packet: Optional[SignaturePacket] = None

    model_config = ConfigDict(frozen=True)


class DocumentStore(Protocol):
    """
    Implementations raise DocumentNotFoundError for unknown journal ids.
    """

    def load_content(self, journal_id: str) -> bytes:
        ...

    def load_pdf(self, journal_id: str) -> bytes:
        ...

    def load_packet(self, journal_id: str) -> Optional[SignaturePacket]:
        ...

    def save(
        self,
        journal_id: str,
        pdf_bytes: bytes,
        packet: SignaturePacket,
        *,
        content: bytes,
    ) -> None:
        ...

    def update_content(self, journal_id: str, content: bytes) -> None:
        ...
