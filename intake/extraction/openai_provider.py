"""OpenAI-compatible extraction provider for invoice scans.

Sends the invoice image to a vision-capable chat completions model and parses
the JSON it returns. Works against api.openai.com or any OpenAI-compatible
endpoint (Zhipu, SiliconFlow, vLLM, ...) via ``openai_base_url``.

Includes retry logic with exponential backoff for transient API errors.
"""

import base64
import logging
import os
from typing import Any

import openai
from openai import OpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from intake.extraction.base import (
    SAFETY_BLOCKED_MESSAGE,
    ExtractionProvider,
    ExtractionResult,
    classify_provider_error,
)
from intake.extraction.documents import DocumentConversionError, prepare_image_payload
from intake.extraction.prompts import SYSTEM_PROMPT, USER_INSTRUCTION
from intake.extraction.response import (
    ResponseParseError,
    normalize_extraction,
    parse_model_response,
)
from intake.shared.config import Settings

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.InternalServerError,
)


class OpenAIExtractionProvider(ExtractionProvider):
    """Extraction provider for OpenAI-compatible vision chat models.

    Requires OPENAI_API_KEY environment variable.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize OpenAI extraction provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._client: OpenAI | None = None

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'openai'
        """
        return "openai"

    def is_available(self) -> bool:
        """Check if OpenAI API key is configured.

        Returns:
            True if OPENAI_API_KEY environment variable is set
        """
        return os.getenv("OPENAI_API_KEY") is not None

    def extract_invoice(self, document: bytes, mime_type: str) -> ExtractionResult:
        """Extract a structured invoice from a scan using the chat completions API.

        Args:
            document: Raw image or PDF bytes
            mime_type: MIME type of the document

        Returns:
            ExtractionResult with the extracted invoice or error, provider='openai'
        """
        if not self.is_available():
            return ExtractionResult.failed(
                self.provider_name,
                "OPENAI_API_KEY environment variable not set",
                "transport_error",
            )

        if not document:
            return ExtractionResult.failed(
                self.provider_name, "Empty document provided", "transport_error"
            )

        try:
            image, image_mime = prepare_image_payload(
                document, mime_type, self.settings.pdf_render_scale
            )
        except DocumentConversionError as e:
            return ExtractionResult.failed(self.provider_name, str(e), "transport_error")

        try:
            api_key = os.getenv("OPENAI_API_KEY")
            if self._client is None or self._client.api_key != api_key:
                self._client = OpenAI(api_key=api_key, base_url=self.settings.openai_base_url)

            response = self._call_openai_with_retry(self._build_messages(image, image_mime))

            choice = response.choices[0]
            if choice.finish_reason == "content_filter":
                return ExtractionResult.failed(
                    self.provider_name, SAFETY_BLOCKED_MESSAGE, "safety_blocked"
                )

            raw = parse_model_response(choice.message.content)
            return ExtractionResult(
                invoice=normalize_extraction(raw),
                success=True,
                provider=self.provider_name,
            )

        except ResponseParseError as e:
            logger.warning(f"Unparseable response from {self.settings.openai_model}: {e}")
            return ExtractionResult.failed(self.provider_name, str(e), "unparseable_response")
        except Exception as e:
            logger.error(f"OpenAI extraction failed: {e}")
            reason, message = classify_provider_error(str(e))
            if reason == "transport_error":
                message = f"Extraction failed: {message}"
            return ExtractionResult.failed(self.provider_name, message, reason)

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        wait=wait_exponential_jitter(initial=1, max=60),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _call_openai_with_retry(self, messages: list[dict[str, Any]]) -> Any:
        """Call the chat completions API, retrying connection and 5xx errors.

        Args:
            messages: Chat messages including the image part

        Returns:
            Chat completion response

        Raises:
            openai.OpenAIError: After all retry attempts are exhausted
        """
        if self._client is None:
            raise RuntimeError("OpenAI client not initialized")

        return self._client.chat.completions.create(  # type: ignore[call-overload]
            model=self.settings.openai_model,
            messages=messages,
            temperature=self.settings.extraction_temperature,
        )

    @staticmethod
    def _build_messages(image: bytes, mime_type: str) -> list[dict[str, Any]]:
        encoded = base64.b64encode(image).decode("ascii")
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": USER_INSTRUCTION},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                    },
                ],
            },
        ]
