"""
VerificationVerdict schema.

A verdict is produced fresh for every verification call and is never
persisted by the core. It carries the terminal classification, the packet
that was found (if any), and an informational integrity cross-check.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from signal_journal.app.schemas.packet import SignaturePacket


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------

class VerdictStatus(str, Enum):
    """Terminal classification of a verification attempt."""

    UNSIGNED = "unsigned"
    VALID = "valid"
    INVALID = "invalid"
    MALFORMED = "malformed"


class ContentSource(str, Enum):
    """Where the content that was hashed for verification came from."""

    PROVIDED = "provided"
    STORAGE = "storage"
    RECORDED_HASH = "recorded_hash"


# ---------------------------------------------------------------------------
# Integrity cross-check (INFORMATIONAL)
# ---------------------------------------------------------------------------

class IntegrityCheck(BaseModel):
    """
    Comparison of the recomputed content hash with the packet's recorded
    originalHash.

    A mismatch is reported but never flips the verdict on its own; the
    signature check over the current content is the criterion.
    """

    content_source: ContentSource

    computed_hash: Optional[str] = Field(
        None,
        description="Hash of the content that was verified",
    )

    recorded_hash: Optional[str] = Field(
        None,
        description="originalHash recorded in the embedded packet",
    )

    matches: Optional[bool] = Field(
        None,
        description="None when no independent content was available",
    )

    @model_validator(mode="after")
    def enforce_integrity_invariants(self):
        if self.content_source is ContentSource.RECORDED_HASH:
            if self.computed_hash is not None or self.matches is not None:
                raise ValueError(
                    "computed_hash and matches must be None when only the "
                    "recorded hash is available"
                )
        elif self.computed_hash is None:
            raise ValueError(
                "computed_hash is required when content was hashed"
            )
        return self

    @property
    def mismatch(self) -> bool:
        return self.matches is False

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Verdict (PUBLIC CONTRACT)
# ---------------------------------------------------------------------------

class VerificationVerdict(BaseModel):
    """Structured result of a single verification call."""

    verification_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier of this verification call",
    )

    status: VerdictStatus

    journal_id: Optional[str] = Field(
        None,
        description="Journal the verified document belongs to, if known",
    )

    packet: Optional[SignaturePacket] = None

    integrity: Optional[IntegrityCheck] = None

    qr_hash_matches: Optional[bool] = Field(
        None,
        description="Whether the hash carried in a QR payload matches",
    )

    message: str = ""

    error: Optional[str] = Field(
        None,
        description="Decoding error detail for malformed input",
    )

    verified_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @model_validator(mode="after")
    def enforce_verdict_invariants(self):
        """
        - valid / invalid: a packet and an integrity check MUST be present
        - unsigned: no packet may be present
        - malformed: an error description MUST be present
        """
        if self.status in (VerdictStatus.VALID, VerdictStatus.INVALID):
            if self.packet is None or self.integrity is None:
                raise ValueError(
                    f"{self.status.value} verdict requires a packet and an "
                    "integrity check"
                )
        elif self.status is VerdictStatus.UNSIGNED:
            if self.packet is not None:
                raise ValueError("unsigned verdict must not carry a packet")
        elif self.status is VerdictStatus.MALFORMED:
            if not self.error:
                raise ValueError("malformed verdict requires an error")
        return self

    @property
    def verified(self) -> bool:
        return self.status is VerdictStatus.VALID

    model_config = ConfigDict(frozen=True, extra="forbid")


class BatchVerificationItem(BaseModel):
    """One entry of a batch verification result."""

    journal_id: str
    verdict: Optional[VerificationVerdict] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one_outcome(self):
        if (self.verdict is None) == (self.error is None):
            raise ValueError("exactly one of verdict or error must be set")
        return self

    model_config = ConfigDict(frozen=True, extra="forbid")
