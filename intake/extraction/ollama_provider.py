"""Ollama-based extraction provider for self-hosted vision models.

Sends the invoice image to a local Ollama server (e.g. qwen2.5vl, llava) so
scans never leave the premises.

Requires Ollama server running on localhost:11434.
See: https://ollama.ai/
"""

import base64
import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from intake.extraction.base import ExtractionProvider, ExtractionResult, classify_provider_error
from intake.extraction.documents import DocumentConversionError, prepare_image_payload
from intake.extraction.prompts import SYSTEM_PROMPT, USER_INSTRUCTION
from intake.extraction.response import (
    ResponseParseError,
    normalize_extraction,
    parse_model_response,
)
from intake.shared.config import Settings

logger = logging.getLogger(__name__)


class OllamaExtractionProvider(ExtractionProvider):
    """Extraction provider for a self-hosted Ollama server."""

    def __init__(self, settings: Settings) -> None:
        """Initialize Ollama extraction provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._base_url = settings.ollama_base_url
        self._model = settings.ollama_model
        self._client = httpx.Client(timeout=300.0)  # vision models are slow on CPU

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'ollama'
        """
        return "ollama"

    def is_available(self) -> bool:
        """Check if Ollama server is running and model is available.

        Returns:
            True if Ollama server responds and model is loaded
        """
        try:
            response = self._client.get(f"{self._base_url}/api/tags")
            if response.status_code != 200:
                return False
            models = response.json().get("models", [])
            model_names = [m.get("name", "").split(":")[0] for m in models]
            return self._model.split(":")[0] in model_names
        except Exception:
            return False

    def extract_invoice(self, document: bytes, mime_type: str) -> ExtractionResult:
        """Extract a structured invoice from a scan using Ollama.

        Args:
            document: Raw image or PDF bytes
            mime_type: MIME type of the document

        Returns:
            ExtractionResult with the extracted invoice or error
        """
        if not document:
            return ExtractionResult.failed(
                self.provider_name, "Empty document provided", "transport_error"
            )

        try:
            image, _ = prepare_image_payload(document, mime_type, self.settings.pdf_render_scale)
            response_text = self._call_ollama_with_retry(base64.b64encode(image).decode("ascii"))
            invoice = normalize_extraction(parse_model_response(response_text))

            return ExtractionResult(
                invoice=invoice,
                success=True,
                provider=self.provider_name,
            )

        except DocumentConversionError as e:
            return ExtractionResult.failed(self.provider_name, str(e), "transport_error")
        except ResponseParseError as e:
            logger.warning(f"Failed to parse JSON from Ollama response: {e}")
            return ExtractionResult.failed(self.provider_name, str(e), "unparseable_response")
        except Exception as e:
            logger.error(f"Ollama extraction failed: {e}")
            reason, message = classify_provider_error(str(e))
            if reason == "transport_error":
                message = f"Extraction failed: {message}"
            return ExtractionResult.failed(self.provider_name, message, reason)

    @retry(
        retry=retry_if_exception_type((httpx.HTTPError, httpx.TimeoutException)),
        wait=wait_exponential_jitter(initial=1, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _call_ollama_with_retry(self, image_b64: str) -> str:
        """Call Ollama API with retry logic for transient errors.

        Args:
            image_b64: Base64-encoded image

        Returns:
            Raw response text from Ollama

        Raises:
            httpx.HTTPError: After all retry attempts exhausted
        """
        response = self._client.post(
            f"{self._base_url}/api/generate",
            json={
                "model": self._model,
                "system": SYSTEM_PROMPT,
                "prompt": USER_INSTRUCTION,
                "images": [image_b64],
                "format": "json",
                "stream": False,
                "options": {"temperature": self.settings.extraction_temperature},
            },
        )
        response.raise_for_status()
        result: str = response.json().get("response", "")
        return result
