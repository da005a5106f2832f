"""Unit tests for extraction provider factory.

Tests cover:
- Provider registry lookups
- Factory function provider creation
- Error handling for unknown providers
"""

import logging
from unittest.mock import patch

import pytest

from intake.extraction.base import ExtractionProvider
from intake.extraction.factory import (
    ProviderRegistry,
    ProviderUnavailableError,
    create_extraction_service,
    describe_target,
)
from intake.extraction.ollama_provider import OllamaExtractionProvider
from intake.extraction.openai_provider import OpenAIExtractionProvider
from intake.shared.config import Settings


def test_provider_registry_default_providers() -> None:
    """Test that registry contains default providers."""
    providers = ProviderRegistry.list_providers()

    assert "openai" in providers
    assert "ollama" in providers


def test_provider_registry_get_classes() -> None:
    """Test getting providers from registry."""
    assert ProviderRegistry.get_provider_class("openai") == OpenAIExtractionProvider
    assert ProviderRegistry.get_provider_class("ollama") == OllamaExtractionProvider


def test_provider_registry_unknown_provider() -> None:
    """Test that unknown provider raises ValueError listing the known ones."""
    with pytest.raises(ValueError, match="Available providers: .*openai"):
        ProviderRegistry.get_provider_class("nonexistent")


def test_provider_registry_register_new_provider() -> None:
    """Test registering a new provider."""

    class TestProvider(ExtractionProvider):
        def extract_invoice(self, document: bytes, mime_type: str):  # type: ignore
            pass

        def is_available(self) -> bool:
            return True

        @property
        def provider_name(self) -> str:
            return "test"

    ProviderRegistry.register("test_provider", TestProvider)
    try:
        assert ProviderRegistry.get_provider_class("test_provider") == TestProvider
    finally:
        ProviderRegistry._providers.pop("test_provider", None)


def test_create_extraction_service_openai() -> None:
    """Test factory creates the OpenAI-compatible provider by default."""
    with patch.dict("os.environ", {"OPENAI_API_KEY": "test-key"}):
        provider = create_extraction_service(Settings(extraction_provider="openai"))

    assert isinstance(provider, OpenAIExtractionProvider)
    assert provider.provider_name == "openai"


def test_create_extraction_service_warns_when_unavailable(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test factory logs a warning when the provider is not configured."""
    with patch.dict("os.environ", {}, clear=True), caplog.at_level(logging.WARNING):
        provider = create_extraction_service(Settings(extraction_provider="openai"))

    assert isinstance(provider, OpenAIExtractionProvider)
    assert "is not available" in caplog.text
    assert "gpt-4o-mini @ api.openai.com" in caplog.text


def test_create_extraction_service_require_available() -> None:
    """Test one-shot callers can refuse an unavailable provider."""
    with patch.dict("os.environ", {}, clear=True):
        with pytest.raises(ProviderUnavailableError, match="'openai'"):
            create_extraction_service(
                Settings(extraction_provider="openai"), require_available=True
            )


@pytest.mark.parametrize(
    "settings,expected",
    [
        (Settings(extraction_provider="ollama"), "qwen2.5vl:7b @ http://localhost:11434"),
        (Settings(extraction_provider="openai"), "gpt-4o-mini @ api.openai.com"),
        (
            Settings(
                extraction_provider="openai",
                openai_base_url="https://api.siliconflow.cn/v1",
                openai_model="Qwen/Qwen2.5-VL-72B-Instruct",
            ),
            "Qwen/Qwen2.5-VL-72B-Instruct @ https://api.siliconflow.cn/v1",
        ),
    ],
)
def test_describe_target(settings: Settings, expected: str) -> None:
    """Test the model and endpoint shown in logs."""
    assert describe_target(settings) == expected
