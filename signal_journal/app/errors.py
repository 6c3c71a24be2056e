"""
Error taxonomy for the journal signing core.

Only structural failures are exceptions. A signature that does not verify
or a recorded hash that differs from the recomputed one are outcomes, and
are reported through VerificationVerdict rather than raised.
"""


class SignalJournalError(Exception):
    """Base class for all service-level errors."""


class InputError(SignalJournalError, ValueError):
    """
    Raised when caller-supplied content is missing, oversized, or of the
    wrong type. Rejected before any cryptographic work is attempted.
    """


class CodecError(SignalJournalError, RuntimeError):
    """
    Raised when PDF bytes cannot be parsed or re-serialized.

    Distinct from the unsigned case: an unsigned PDF loads fine and simply
    carries no packet.
    """


class DocumentNotFoundError(SignalJournalError, LookupError):
    """Raised by storage collaborators when a journal id is unknown."""
