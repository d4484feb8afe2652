"""Factory for the ordered provider chain."""

import structlog

from bytefeed.config.constants import COMPONENT_EXTRACTION
from bytefeed.extraction.errors import LlmAuthError
from bytefeed.extraction.protocols import LlmClient
from bytefeed.settings import AppSettings


logger = structlog.get_logger()


def build_provider_chain(settings: AppSettings) -> list[LlmClient]:
    """Create provider clients for every configured API key.

    Order: Gemini (free tier) > DeepSeek (low cost) > Anthropic (premium).

    Args:
        settings: Application settings.

    Returns:
        Clients in fallback order.

    Raises:
        LlmAuthError: If no provider credentials are configured.
    """
    log = logger.bind(component=COMPONENT_EXTRACTION, subcomponent="factory")
    chain: list[LlmClient] = []

    if settings.gemini_api_key:
        from bytefeed.extraction.providers.gemini import GeminiClient

        chain.append(
            GeminiClient(
                api_key=settings.gemini_api_key,
                model=settings.gemini_model,
                timeout=settings.provider_timeout_seconds,
            )
        )

    if settings.deepseek_api_key:
        from bytefeed.extraction.providers.openai_compat import OpenAICompatibleClient

        chain.append(
            OpenAICompatibleClient(
                api_key=settings.deepseek_api_key,
                model=settings.deepseek_model,
                base_url=settings.deepseek_base_url,
                timeout=settings.provider_timeout_seconds,
            )
        )

    if settings.anthropic_api_key:
        from bytefeed.extraction.providers.anthropic import AnthropicClient

        chain.append(
            AnthropicClient(
                api_key=settings.anthropic_api_key,
                model=settings.anthropic_model,
                timeout=settings.provider_timeout_seconds,
            )
        )

    if not chain:
        msg = (
            "No extraction providers configured "
            "(need GEMINI_API_KEY, DEEPSEEK_API_KEY or ANTHROPIC_API_KEY)"
        )
        raise LlmAuthError(msg)

    log.info("provider_chain_created", providers=[c.name for c in chain])
    return chain
