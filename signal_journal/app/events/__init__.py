from .models import VerificationEvent, VerificationEventType
from .emitter import (
    LoggingEventEmitter,
    MemoryEventEmitter,
    NullEventEmitter,
    VerificationEventEmitter,
)

__all__ = [
    "VerificationEvent",
    "VerificationEventType",
    "VerificationEventEmitter",
    "NullEventEmitter",
    "LoggingEventEmitter",
    "MemoryEventEmitter",
]
