"""
SignaturePacket schema.

The packet is the unit of signature metadata embedded into, and recovered
from, a signed PDF. Field aliases are the on-document key names; they are
shared by every embedding path (Keywords JSON, info-dictionary JSON, catalog
properties, individual info entries) and MUST NOT change without bumping
METADATA_VERSION.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


METADATA_VERSION = "1.2"


# ---------------------------------------------------------------------------
# On-document field names (FROZEN CONTRACT)
# ---------------------------------------------------------------------------

class MetadataField:
    SIGNATURE = "signal_signature"
    PUBLIC_KEY = "signal_publicKey"
    DOCUMENT_HASH = "signal_documentHash"
    SIGNING_DATE = "signal_signingDate"
    AUTHOR = "signal_author"
    PERIHAL = "signal_perihal"
    ID = "signal_id"
    VERSION = "signal_version"

    ALL = (
        SIGNATURE,
        PUBLIC_KEY,
        DOCUMENT_HASH,
        SIGNING_DATE,
        AUTHOR,
        PERIHAL,
        ID,
        VERSION,
    )


# ---------------------------------------------------------------------------
# Packet
# ---------------------------------------------------------------------------

class SignaturePacket(BaseModel):
    """
    Signature metadata for one signed journal document.

    Round-trip contract: a packet extracted from a PDF compares equal to the
    packet that was embedded, field for field.
    """

    signature: str = Field(
        ...,
        min_length=1,
        alias=MetadataField.SIGNATURE,
        description="Base64 ECDSA P-256 signature over the content hash",
    )

    public_key: str = Field(
        ...,
        min_length=1,
        alias=MetadataField.PUBLIC_KEY,
        description="Base64 uncompressed SEC1 public key of the signer",
    )

    original_hash: str = Field(
        ...,
        min_length=1,
        alias=MetadataField.DOCUMENT_HASH,
        description="SHA-256 hex hash of the content at signing time",
    )

    signing_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias=MetadataField.SIGNING_DATE,
        description="Signing timestamp (ISO-8601, UTC when naive)",
    )

    author: str = Field(
        "Unknown",
        alias=MetadataField.AUTHOR,
    )

    perihal: str = Field(
        "Digital Signature",
        alias=MetadataField.PERIHAL,
        description="Subject / title of the signed journal",
    )

    journal_id: Optional[str] = Field(
        None,
        alias=MetadataField.ID,
    )

    version: str = Field(
        METADATA_VERSION,
        alias=MetadataField.VERSION,
        description="Packet schema version",
    )

    @field_validator("signing_date")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    # ------------------------------------------------------------------
    # Wire form
    # ------------------------------------------------------------------

    def to_metadata(self) -> Dict[str, Optional[str]]:
        """Serialize to on-document field names with JSON-safe values."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_metadata(cls, fields: Dict[str, object]) -> "SignaturePacket":
        """
        Rebuild a packet from on-document fields.

        Unknown keys are dropped so that packets written by newer versions
        remain readable.
        """
        known = {
            key: value
            for key, value in fields.items()
            if key in MetadataField.ALL and value is not None
        }
        return cls.model_validate(known)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
    )


class DescriptiveMetadata(BaseModel):
    """
    Standard document-information entries written alongside the packet.

    All fields are optional; missing values are derived from the packet.
    """

    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")
