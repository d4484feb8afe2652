"""Gemini API client using API key authentication."""

import structlog

from bytefeed.config.constants import COMPONENT_EXTRACTION, PROVIDER_TIMEOUT_SECONDS
from bytefeed.extraction.errors import LlmApiError
from bytefeed.extraction.providers.http import post_json


logger = structlog.get_logger()

_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiClient:
    """Client for the Gemini ``generateContent`` endpoint.

    Uses an ``x-goog-api-key`` header. The free tier makes this the first
    provider in the chain.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Gemini API key.
            model: Gemini model identifier.
            timeout: Per-request timeout in seconds.
        """
        self._api_key = api_key
        self.model = model
        self._timeout = timeout
        self._log = logger.bind(component=COMPONENT_EXTRACTION, subcomponent="gemini")

    def generate_content(
        self,
        prompt: str,
        system_instruction: str | None = None,
    ) -> str:
        """Send a generate content request to the Gemini API.

        Args:
            prompt: User prompt text.
            system_instruction: Optional system instruction.

        Returns:
            Generated text from the model response.

        Raises:
            LlmApiError: If the API call fails after all retries.
        """
        request_body: dict[str, object] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if system_instruction:
            request_body["systemInstruction"] = {
                "parts": [{"text": system_instruction}]
            }

        data = post_json(
            f"{_BASE_URL}/{self.model}:generateContent",
            headers={
                "x-goog-api-key": self._api_key,
                "Content-Type": "application/json",
            },
            body=request_body,
            timeout=self._timeout,
            provider=self.name,
            log=self._log,
        )

        candidates = data.get("candidates") or []
        if not candidates:
            msg = "No candidates in Gemini API response"
            raise LlmApiError(msg, provider=self.name)

        parts = candidates[0].get("content", {}).get("parts", [])
        if not parts:
            msg = "No parts in first candidate"
            raise LlmApiError(msg, provider=self.name)

        text = "".join(str(part.get("text", "")) for part in parts)
        if not text.strip():
            msg = "Empty text in response"
            raise LlmApiError(msg, provider=self.name)
        return text
