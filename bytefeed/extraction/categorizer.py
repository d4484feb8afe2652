"""Best-effort categorization of newly seen sources."""

from collections.abc import Sequence

import structlog

from bytefeed.config.constants import (
    CATEGORIZATION_SAMPLE_CHARS,
    COMPONENT_EXTRACTION,
    MAX_SOURCE_TAGS,
)
from bytefeed.extraction.json_utils import parse_ai_response
from bytefeed.extraction.models import SourceCategorization
from bytefeed.extraction.prompts import (
    CATEGORIZATION_SYSTEM_INSTRUCTION,
    build_categorization_prompt,
)
from bytefeed.extraction.protocols import LlmClient
from bytefeed.store.models import ByteCategory


logger = structlog.get_logger()


class SourceCategorizer:
    """Describes a new source using the provider chain.

    Never raises: when no provider yields a usable answer the default
    categorization (general, no tags) is returned.
    """

    def __init__(self, providers: Sequence[LlmClient]) -> None:
        self._providers = list(providers)
        self._log = logger.bind(component=COMPONENT_EXTRACTION, subcomponent="categorizer")

    def categorize(self, name: str, sample: str) -> SourceCategorization:
        """Categorize a source from its name and a text sample.

        Args:
            name: Source display name.
            sample: Body text sample (truncated to the categorization bound).

        Returns:
            The categorization, or the default on failure.
        """
        prompt = build_categorization_prompt(name, sample[:CATEGORIZATION_SAMPLE_CHARS])

        for provider in self._providers:
            try:
                raw = provider.generate_content(
                    prompt=prompt,
                    system_instruction=CATEGORIZATION_SYSTEM_INSTRUCTION,
                )
            except Exception as exc:
                self._log.warning(
                    "categorization_provider_failed",
                    provider=provider.name,
                    error=str(exc),
                )
                continue

            parsed = parse_ai_response(raw)
            if isinstance(parsed, dict):
                return self._to_categorization(parsed)
            self._log.warning("categorization_unparseable", provider=provider.name)

        return SourceCategorization()

    @staticmethod
    def _to_categorization(data: dict[str, object]) -> SourceCategorization:
        description = data.get("description")
        raw_category = data.get("category")
        try:
            category = ByteCategory(str(raw_category).strip().lower())
        except ValueError:
            category = ByteCategory.GENERAL

        raw_tags = data.get("tags")
        tags: list[str] = []
        if isinstance(raw_tags, list):
            tags = [str(t).strip().lower() for t in raw_tags if str(t).strip()]

        return SourceCategorization(
            description=description.strip()
            if isinstance(description, str) and description.strip()
            else None,
            category=category,
            tags=tuple(tags[:MAX_SOURCE_TAGS]),
        )
