"""Anthropic Messages API client."""

import structlog

from bytefeed.config.constants import COMPONENT_EXTRACTION, PROVIDER_TIMEOUT_SECONDS
from bytefeed.extraction.errors import LlmApiError
from bytefeed.extraction.providers.http import post_json


logger = structlog.get_logger()

_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
_API_VERSION = "2023-06-01"


class AnthropicClient:
    """Client for the Messages API; the premium last resort in the chain."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        max_tokens: int = 4096,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Anthropic API key.
            model: Model identifier.
            timeout: Per-request timeout in seconds.
            max_tokens: Output token ceiling.
        """
        self._api_key = api_key
        self.model = model
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._log = logger.bind(component=COMPONENT_EXTRACTION, subcomponent="anthropic")

    def generate_content(
        self,
        prompt: str,
        system_instruction: str | None = None,
    ) -> str:
        """Send a Messages API request.

        Raises:
            LlmApiError: If the API call fails or returns no text blocks.
        """
        body: dict[str, object] = {
            "model": self.model,
            "max_tokens": self._max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_instruction:
            body["system"] = system_instruction

        data = post_json(
            _MESSAGES_URL,
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": _API_VERSION,
                "Content-Type": "application/json",
            },
            body=body,
            timeout=self._timeout,
            provider=self.name,
            log=self._log,
        )

        blocks = data.get("content") or []
        text = "".join(
            str(block.get("text", ""))
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )
        if not text.strip():
            msg = "No text content in Anthropic API response"
            raise LlmApiError(msg, provider=self.name)
        return text
