"""
Verification QR payload contract.

A decoded QR string is one of:
- a verification URL carrying an ``id`` query parameter
- a JSON object with at least an ``id`` field; minimal payloads are
  ``{"id", "h", "t"}`` (hash and a title truncated to 20 characters)
- anything else, which is passed through the free-text identifier
  fallback

QR image rendering and scanning happen outside this service.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from pydantic import BaseModel, ConfigDict, Field

from signal_journal.app.crypto.ecdsa import extract_signature_info

logger = logging.getLogger("signal_journal.qr")

MINIMAL_TITLE_LENGTH = 20
VERIFICATION_PATH = "/verify"


class QrDataType(str, Enum):
    URL = "url"
    JSON = "json"
    UNKNOWN = "unknown"
    ERROR = "error"


class QrPayload(BaseModel):
    """Classified QR payload."""

    type: QrDataType

    data: Optional[Dict[str, Any]] = Field(
        None,
        description="Decoded payload; always carries 'id' for url/json",
    )

    raw: Optional[str] = None

    error: Optional[str] = None

    @property
    def journal_id(self) -> Optional[str]:
        if self.data is None:
            return None
        value = self.data.get("id")
        return str(value) if value is not None else None

    @property
    def content_hash(self) -> Optional[str]:
        if self.data is None:
            return None
        value = self.data.get("h")
        return value if isinstance(value, str) and value else None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Producers
# ---------------------------------------------------------------------------

def build_verification_url(journal_id: str, *, base_url: str) -> str:
    """Return the URL a verification QR code points at."""
    if not journal_id:
        raise ValueError("journal_id is required")
    return f"{base_url.rstrip('/')}{VERIFICATION_PATH}?{urlencode({'id': journal_id})}"


def build_minimal_qr_payload(
    journal_id: str,
    *,
    content_hash: Optional[str] = None,
    title: str = "",
) -> str:
    """Return the compact ``{id, h, t}`` JSON payload."""
    if not journal_id:
        raise ValueError("journal_id is required")
    return json.dumps(
        {
            "id": journal_id,
            "h": content_hash or None,
            "t": (title or "")[:MINIMAL_TITLE_LENGTH],
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def _from_url(text: str) -> Optional[QrPayload]:
    parts = urlsplit(text)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None

    ids = parse_qs(parts.query).get("id")
    if not ids or not ids[0]:
        return None

    return QrPayload(type=QrDataType.URL, data={"id": ids[0]}, raw=text)


def _from_json(text: str) -> Optional[QrPayload]:
    try:
        data = json.loads(text)
    except ValueError:
        return None

    if not isinstance(data, dict) or not data.get("id"):
        return None
    return QrPayload(type=QrDataType.JSON, data=data, raw=text)


def extract_qr_data(qr_data: Any) -> QrPayload:
    """
    Classify a decoded QR string.

    Never raises; a non-string input is reported as type ``error``.
    """
    if not isinstance(qr_data, str):
        return QrPayload(
            type=QrDataType.ERROR,
            error=f"QR data must be text, got {type(qr_data).__name__}",
        )

    text = qr_data.strip()

    if text.lower().startswith("http"):
        payload = _from_url(text)
        if payload is not None:
            return payload

    payload = _from_json(text)
    if payload is not None:
        return payload

    logger.debug("qr_payload_unrecognized", extra={"length": len(text)})
    return QrPayload(type=QrDataType.UNKNOWN, raw=text)


def resolve_journal_id(payload: QrPayload) -> Optional[Dict[str, Optional[str]]]:
    """
    Return ``{"id", "hash"}`` for a classified payload.

    Unknown payloads go through the free-text identifier fallback.
    """
    if payload.type in (QrDataType.URL, QrDataType.JSON):
        return {"id": payload.journal_id, "hash": payload.content_hash}

    if payload.type is QrDataType.UNKNOWN and payload.raw:
        info = extract_signature_info(payload.raw)
        if info is not None:
            return {"id": info["verification_id"], "hash": info["document_hash"]}

    return None
