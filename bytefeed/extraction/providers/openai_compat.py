"""Chat-completions client for OpenAI-compatible APIs (DeepSeek by default)."""

import structlog

from bytefeed.config.constants import COMPONENT_EXTRACTION, PROVIDER_TIMEOUT_SECONDS
from bytefeed.extraction.errors import LlmApiError
from bytefeed.extraction.providers.http import post_json


logger = structlog.get_logger()


class OpenAICompatibleClient:
    """Client for any ``/chat/completions`` endpoint with bearer auth.

    The low-cost second provider in the chain.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "deepseek-chat",
        base_url: str = "https://api.deepseek.com/v1",
        name: str = "deepseek",
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        temperature: float = 0.3,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Bearer token.
            model: Model identifier.
            base_url: API base URL without the ``/chat/completions`` suffix.
            name: Provider name used in logs and results.
            timeout: Per-request timeout in seconds.
            temperature: Sampling temperature.
        """
        self._api_key = api_key
        self.model = model
        self.name = name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._temperature = temperature
        self._log = logger.bind(component=COMPONENT_EXTRACTION, subcomponent=name)

    def generate_content(
        self,
        prompt: str,
        system_instruction: str | None = None,
    ) -> str:
        """Send a chat completion request.

        Raises:
            LlmApiError: If the API call fails or returns no message text.
        """
        messages: list[dict[str, str]] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})

        data = post_json(
            f"{self._base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            body={
                "model": self.model,
                "messages": messages,
                "temperature": self._temperature,
            },
            timeout=self._timeout,
            provider=self.name,
            log=self._log,
        )

        choices = data.get("choices") or []
        if not choices:
            msg = f"No choices in {self.name} API response"
            raise LlmApiError(msg, provider=self.name)

        text = choices[0].get("message", {}).get("content") or ""
        if not str(text).strip():
            msg = "Empty text in response"
            raise LlmApiError(msg, provider=self.name)
        return str(text)
