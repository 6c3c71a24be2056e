from __future__ import annotations

import logging
from typing import List, Protocol

from signal_journal.app.events.models import VerificationEvent


class VerificationEventEmitter(Protocol):
    """
    Interface for reporting verification progress.

    Passed explicitly to the coordinator and configured once at startup.
    Implementations must be fail-safe: emission failures must not change
    or crash a verification.
    """

    def emit(self, event: VerificationEvent) -> None:
        ...


class NullEventEmitter:
    """
    A safe no-op emitter.

    Used when event reporting is disabled and in tests that do not care
    about events.
    """

    def emit(self, event: VerificationEvent) -> None:
        return


class LoggingEventEmitter:
    """Forwards events to a standard-library logger at DEBUG level."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("signal_journal.events")

    def emit(self, event: VerificationEvent) -> None:
        self._logger.debug(
            event.event_type.value,
            extra={
                "verification_id": event.verification_id,
                "details": event.details or {},
            },
        )


class MemoryEventEmitter:
    """Collects events in order. Intended for tests and diagnostics."""

    def __init__(self) -> None:
        self.events: List[VerificationEvent] = []

    def emit(self, event: VerificationEvent) -> None:
        self.events.append(event)

    @property
    def event_types(self) -> List[str]:
        return [event.event_type.value for event in self.events]
