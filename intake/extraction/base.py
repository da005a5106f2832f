"""Abstract base class for extraction providers.

Enables switching between vision-model providers (any OpenAI-compatible API,
self-hosted Ollama) while keeping a single capability interface for the
batch reconciliation controller.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

from abc import ABC, abstractmethod
from typing import Literal

from pydantic import BaseModel

from intake.extraction.schema import ExtractedInvoice
from intake.shared.config import Settings

ExtractionFailureReason = Literal[
    "safety_blocked",
    "quota_exceeded",
    "unparseable_response",
    "transport_error",
]

SAFETY_BLOCKED_MESSAGE = "Document was blocked by the provider safety policy, try a clearer scan"
QUOTA_EXCEEDED_MESSAGE = "Extraction API quota exhausted, try again later"


class ExtractionResult(BaseModel):
    """Result of extraction operation.

    Attributes:
        invoice: Extracted invoice or None if extraction failed
        success: Whether operation succeeded
        error: Error message if operation failed
        reason: Failure category if operation failed
        provider: Name of provider that performed extraction (e.g., 'openai', 'ollama')
    """

    invoice: ExtractedInvoice | None
    success: bool
    error: str | None = None
    reason: ExtractionFailureReason | None = None
    provider: str

    @classmethod
    def failed(
        cls, provider: str, error: str, reason: ExtractionFailureReason
    ) -> "ExtractionResult":
        return cls(invoice=None, success=False, error=error, reason=reason, provider=provider)


def classify_provider_error(message: str) -> tuple[ExtractionFailureReason, str]:
    """Map a provider error message onto a failure reason and operator message.

    Args:
        message: Error text reported by the provider SDK or HTTP API

    Returns:
        Tuple of (reason, message to surface)
    """
    lowered = message.lower()
    if "safety" in lowered or "content_filter" in lowered or "content filter" in lowered:
        return "safety_blocked", SAFETY_BLOCKED_MESSAGE
    if "quota" in lowered:
        return "quota_exceeded", QUOTA_EXCEEDED_MESSAGE
    return "transport_error", message


class ExtractionProvider(ABC):
    """Abstract base class for invoice extraction providers.

    All extraction providers must implement this interface. Providers report
    failures through ExtractionResult instead of raising.

    Example implementations:
    - OpenAIExtractionProvider: OpenAI-compatible chat completions API
    - OllamaExtractionProvider: Self-hosted Ollama server
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def extract_invoice(self, document: bytes, mime_type: str) -> ExtractionResult:
        """Extract a structured invoice from a scanned document.

        Args:
            document: Raw document bytes (image or PDF)
            mime_type: MIME type of the document

        Returns:
            ExtractionResult with the extracted invoice or error
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is available/configured.

        Returns:
            True if provider can be used, False otherwise
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier (e.g., 'openai', 'ollama')
        """
        pass
