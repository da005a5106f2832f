"""File-scoped errors raised while reconciling one uploaded file.

None of these abort a batch: the controller records a failure for the file
and moves on to the next one.
"""

from intake.extraction.base import ExtractionFailureReason

INVOICE_NUMBER_NOT_RECOGNIZED = "Invoice number not recognized"


class IntakeError(Exception):
    """Base class; ``str(error)`` is the message shown to operators."""


class ReadError(IntakeError):
    """The file payload could not be loaded."""


class ExtractionError(IntakeError):
    """The extraction gateway failed or returned malformed output."""

    def __init__(self, message: str, reason: ExtractionFailureReason = "transport_error") -> None:
        super().__init__(message)
        self.reason = reason


class ValidationError(IntakeError):
    """Extraction succeeded but the invoice number is missing or unknown."""


class PersistError(IntakeError):
    """The ledger store rejected a write."""
