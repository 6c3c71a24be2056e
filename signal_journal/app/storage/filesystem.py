"""
Filesystem document store.

Layout, one directory per journal:

    <root>/<journal_id>/content.bin
    <root>/<journal_id>/signed.pdf
    <root>/<journal_id>/packet.json

Writes go through a temporary file and an atomic rename.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from signal_journal.app.errors import CodecError, DocumentNotFoundError
from signal_journal.app.schemas.packet import SignaturePacket
from signal_journal.app.storage.base import validate_journal_id

logger = logging.getLogger("signal_journal.storage")

CONTENT_FILE = "content.bin"
PDF_FILE = "signed.pdf"
PACKET_FILE = "packet.json"


def _atomic_write(path: Path, data: bytes) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


class FileSystemDocumentStore:
    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    def _dir(self, journal_id: str) -> Path:
        return self._root / validate_journal_id(journal_id)

    def _read(self, journal_id: str, name: str) -> bytes:
        path = self._dir(journal_id) / name
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise DocumentNotFoundError(
                f"Journal not found: {journal_id}"
            ) from exc

    def load_content(self, journal_id: str) -> bytes:
        return self._read(journal_id, CONTENT_FILE)

    def load_pdf(self, journal_id: str) -> bytes:
        return self._read(journal_id, PDF_FILE)

    def load_packet(self, journal_id: str) -> Optional[SignaturePacket]:
        path = self._dir(journal_id) / PACKET_FILE
        if not path.exists():
            if not self._dir(journal_id).exists():
                raise DocumentNotFoundError(f"Journal not found: {journal_id}")
            return None
        try:
            fields = json.loads(path.read_text("utf-8"))
            if not isinstance(fields, dict):
                raise ValueError("packet file does not hold a JSON object")
            return SignaturePacket.from_metadata(fields)
        except (ValueError, RecursionError) as exc:
            logger.warning(
                "stored_packet_unreadable",
                extra={"journal_id": journal_id, "error_type": type(exc).__name__},
            )
            raise CodecError(f"Stored packet for {journal_id} is unreadable") from exc

    def save(
        self,
        journal_id: str,
        pdf_bytes: bytes,
        packet: SignaturePacket,
        *,
        content: bytes,
    ) -> None:
        directory = self._dir(journal_id)
        directory.mkdir(parents=True, exist_ok=True)

        _atomic_write(directory / CONTENT_FILE, bytes(content))
        _atomic_write(directory / PDF_FILE, bytes(pdf_bytes))
        _atomic_write(
            directory / PACKET_FILE,
            json.dumps(packet.to_metadata(), sort_keys=True, indent=2).encode("utf-8"),
        )

        logger.info(
            "document_saved",
            extra={"journal_id": journal_id, "pdf_bytes": len(pdf_bytes)},
        )

    def update_content(self, journal_id: str, content: bytes) -> None:
        directory = self._dir(journal_id)
        if not directory.exists():
            raise DocumentNotFoundError(f"Journal not found: {journal_id}")
        _atomic_write(directory / CONTENT_FILE, bytes(content))
