"""Extraction provider selection.

Providers are looked up by the name in ``APP_EXTRACTION_PROVIDER``. Extra
providers can be registered at runtime, e.g. by a deployment that wraps a
vendor SDK.
"""

import logging

from intake.extraction.base import ExtractionProvider
from intake.extraction.ollama_provider import OllamaExtractionProvider
from intake.extraction.openai_provider import OpenAIExtractionProvider
from intake.shared.config import Settings

logger = logging.getLogger(__name__)


class ProviderUnavailableError(RuntimeError):
    """Raised when a provider is required up front but cannot serve requests."""


class ProviderRegistry:
    """Provider name -> implementation class."""

    _providers: dict[str, type[ExtractionProvider]] = {
        "openai": OpenAIExtractionProvider,
        "ollama": OllamaExtractionProvider,
    }

    @classmethod
    def register(cls, name: str, provider_class: type[ExtractionProvider]) -> None:
        cls._providers[name] = provider_class
        logger.info(f"Registered extraction provider: {name}")

    @classmethod
    def get_provider_class(cls, name: str) -> type[ExtractionProvider]:
        """Get provider class by name.

        Raises:
            ValueError: If provider not found in registry
        """
        if name not in cls._providers:
            available = ", ".join(cls._providers)
            raise ValueError(
                f"Unknown extraction provider: '{name}'. Available providers: {available}"
            )
        return cls._providers[name]

    @classmethod
    def list_providers(cls) -> list[str]:
        return list(cls._providers)


def describe_target(settings: Settings) -> str:
    """Human-readable model and endpoint the configured provider talks to.

    Example: ``"qwen2.5vl:7b @ http://localhost:11434"``.
    """
    if settings.extraction_provider == "ollama":
        return f"{settings.ollama_model} @ {settings.ollama_base_url}"
    if settings.extraction_provider == "openai":
        endpoint = settings.openai_base_url or "api.openai.com"
        return f"{settings.openai_model} @ {endpoint}"
    return settings.extraction_provider


def create_extraction_service(
    settings: Settings, require_available: bool = False
) -> ExtractionProvider:
    """Create the extraction provider named by settings.extraction_provider.

    A provider that is not available (missing API key, Ollama server down or
    model not pulled) would fail every file of a batch. Long-running workers
    only warn, since the server may come up later; one-shot callers pass
    ``require_available=True`` to stop before any file is processed.

    Args:
        settings: Application settings
        require_available: Raise instead of warning when the provider is unavailable

    Returns:
        Configured extraction provider instance

    Raises:
        ValueError: If configured provider is unknown
        ProviderUnavailableError: If ``require_available`` and the provider is unavailable
    """
    provider_name = settings.extraction_provider
    provider = ProviderRegistry.get_provider_class(provider_name)(settings)
    target = describe_target(settings)

    if not provider.is_available():
        message = (
            f"Extraction provider '{provider_name}' ({target}) is not available. "
            f"Check API key, server URL and model name."
        )
        if require_available:
            raise ProviderUnavailableError(message)
        logger.warning(message)

    logger.info(f"Created extraction provider: {provider_name} ({target})")
    return provider
