"""Provider clients for the extraction chain."""

from bytefeed.extraction.providers.anthropic import AnthropicClient
from bytefeed.extraction.providers.gemini import GeminiClient
from bytefeed.extraction.providers.openai_compat import OpenAICompatibleClient


__all__ = ["AnthropicClient", "GeminiClient", "OpenAICompatibleClient"]
