"""HTTP request and response bodies."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class QrVerificationRequest(BaseModel):
    qr_data: str = Field(..., min_length=1, description="Decoded QR payload")

    model_config = ConfigDict(frozen=True, extra="forbid")


class SignatureCheckRequest(BaseModel):
    content: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    public_key: str = Field(..., min_length=1)
    is_base64: bool = Field(
        False,
        description="Treat content as base64-encoded bytes",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


class SignatureCheckResponse(BaseModel):
    valid: bool
    public_key_valid: bool


class QrPayloadResponse(BaseModel):
    journal_id: str
    verification_url: str
    minimal_payload: str
    content_hash: Optional[str] = None


