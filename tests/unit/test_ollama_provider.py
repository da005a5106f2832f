"""Unit tests for OllamaExtractionProvider.

Tests the Ollama-based extraction provider with mocked HTTP calls.
"""

import base64
import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from intake.extraction.ollama_provider import OllamaExtractionProvider
from intake.extraction.prompts import SYSTEM_PROMPT
from intake.shared.config import Settings


@pytest.fixture
def settings() -> Settings:
    """Create test settings with Ollama provider."""
    return Settings(
        extraction_provider="ollama",
        ollama_base_url="http://localhost:11434",
        ollama_model="qwen2.5vl:7b",
    )


@pytest.fixture
def provider(settings: Settings) -> OllamaExtractionProvider:
    """Create Ollama provider instance."""
    return OllamaExtractionProvider(settings)


def ollama_reply(text: str) -> MagicMock:
    response = MagicMock()
    response.status_code = 200
    response.raise_for_status = MagicMock()
    response.json.return_value = {"response": text}
    return response


class TestOllamaExtractionProviderProperties:
    """Test provider properties and availability."""

    def test_provider_name(self, provider: OllamaExtractionProvider) -> None:
        """Provider name should be 'ollama'."""
        assert provider.provider_name == "ollama"

    def test_is_available_when_server_running(self, provider: OllamaExtractionProvider) -> None:
        """Should return True when Ollama server responds with model."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {"models": [{"name": "qwen2.5vl:7b"}]}

        with patch.object(provider._client, "get", return_value=mock_response):
            assert provider.is_available() is True

    def test_is_available_when_server_down(self, provider: OllamaExtractionProvider) -> None:
        """Should return False when Ollama server is unreachable."""
        with patch.object(
            provider._client, "get", side_effect=httpx.ConnectError("Connection refused")
        ):
            assert provider.is_available() is False

    def test_is_available_when_model_not_found(self, provider: OllamaExtractionProvider) -> None:
        """Should return False when configured model is not available."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {"models": [{"name": "llava:13b"}]}

        with patch.object(provider._client, "get", return_value=mock_response):
            assert provider.is_available() is False


class TestOllamaExtraction:
    """Test invoice extraction functionality."""

    def test_extract_empty_document_returns_error(
        self, provider: OllamaExtractionProvider
    ) -> None:
        """Should return error for an empty payload."""
        result = provider.extract_invoice(b"", "image/png")
        assert result.success is False
        assert result.error == "Empty document provided"
        assert result.provider == "ollama"

    def test_extract_successful_response(self, provider: OllamaExtractionProvider) -> None:
        """Should parse valid JSON response from Ollama."""
        reply = ollama_reply(
            json.dumps(
                {
                    "invoiceType": "增值税专用发票",
                    "invoiceNumber": "04403190",
                    "seller": {"name": "Acme Paper", "taxId": "91440300"},
                    "items": [{"itemName": "A4 paper", "amount": 100, "taxAmount": 13}],
                }
            )
        )

        with patch.object(provider._client, "post", return_value=reply) as mock_post:
            result = provider.extract_invoice(b"png-bytes", "image/png")

        assert result.success is True
        assert result.provider == "ollama"
        assert result.invoice is not None
        assert result.invoice.invoice_number == "04403190"
        assert result.invoice.seller.name == "Acme Paper"
        assert result.invoice.items[0].tax_amount == 13.0

        body = mock_post.call_args.kwargs["json"]
        assert body["model"] == "qwen2.5vl:7b"
        assert body["system"] == SYSTEM_PROMPT
        assert body["images"] == [base64.b64encode(b"png-bytes").decode("ascii")]
        assert body["format"] == "json"
        assert body["stream"] is False

    def test_extract_json_in_markdown_block(self, provider: OllamaExtractionProvider) -> None:
        """Should parse JSON wrapped in markdown code block."""
        reply = ollama_reply('```json\n{"invoiceNumber": "67890"}\n```')

        with patch.object(provider._client, "post", return_value=reply):
            result = provider.extract_invoice(b"png-bytes", "image/png")

        assert result.success is True
        assert result.invoice is not None
        assert result.invoice.invoice_number == "67890"

    def test_extract_invalid_json_returns_error(self, provider: OllamaExtractionProvider) -> None:
        """Should return unparseable_response when Ollama returns prose."""
        with patch.object(provider._client, "post", return_value=ollama_reply("No invoice here")):
            result = provider.extract_invoice(b"png-bytes", "image/png")

        assert result.success is False
        assert result.reason == "unparseable_response"

    def test_extract_http_error_returns_error(self, provider: OllamaExtractionProvider) -> None:
        """Should return transport_error when HTTP request keeps failing."""
        with patch.object(
            provider._client,
            "post",
            side_effect=httpx.HTTPStatusError(
                "Server error", request=MagicMock(), response=MagicMock()
            ),
        ) as mock_post:
            result = provider.extract_invoice(b"png-bytes", "image/png")

        assert result.success is False
        assert result.reason == "transport_error"
        assert "Extraction failed" in str(result.error)
        assert mock_post.call_count == 3

    def test_extract_pdf_is_rendered_first(self, provider: OllamaExtractionProvider) -> None:
        """PDF payloads are converted to an image before upload."""
        with (
            patch(
                "intake.extraction.ollama_provider.prepare_image_payload",
                return_value=(b"jpeg-bytes", "image/jpeg"),
            ) as mock_prepare,
            patch.object(
                provider._client, "post", return_value=ollama_reply('{"invoiceNumber": "1"}')
            ) as mock_post,
        ):
            result = provider.extract_invoice(b"%PDF-1.7", "application/pdf")

        assert result.success is True
        mock_prepare.assert_called_once_with(b"%PDF-1.7", "application/pdf", 2.5)
        assert mock_post.call_args.kwargs["json"]["images"] == [
            base64.b64encode(b"jpeg-bytes").decode("ascii")
        ]
