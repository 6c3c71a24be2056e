from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event Types (Finite and Versioned)
# ----------------------------------------------------------------------
class VerificationEventType(str, Enum):
    """
    Progression events emitted during one verification call.

    NOTE:
    This enum is finite and versioned.
    New entries must preserve observational semantics.
    """

    VERIFICATION_STARTED = "verification_started"
    PACKET_EXTRACTED = "packet_extracted"
    PACKET_MISSING = "packet_missing"
    CONTENT_RESOLVED = "content_resolved"
    INTEGRITY_MISMATCH = "integrity_mismatch"
    SIGNATURE_CHECKED = "signature_checked"
    VERIFICATION_COMPLETED = "verification_completed"
    VERIFICATION_MALFORMED = "verification_malformed"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class VerificationEvent(BaseModel):
    """
    An immutable observation of a state transition within one
    verification call.

    Events are observational only and never influence the verdict.
    """

    event_id: UUID = Field(default_factory=uuid4)
    verification_id: str = Field(..., description="The verification call identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: VerificationEventType

    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
