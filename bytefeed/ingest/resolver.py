"""Source resolution by sender identity."""

from typing import Protocol

import structlog

from bytefeed.config.constants import CATEGORIZATION_SAMPLE_CHARS, COMPONENT_INGEST
from bytefeed.extraction.models import SourceCategorization
from bytefeed.ingest.text import sender_domain
from bytefeed.store.models import ByteCategory, Source
from bytefeed.store.protocols import Repository


logger = structlog.get_logger()


class Categorizer(Protocol):
    """Anything that can describe a new source from a sample of its text."""

    def categorize(self, name: str, sample: str) -> SourceCategorization: ...


class SourceResolver:
    """Maps a sender identity to a durable Source.

    Unknown senders get a new Source categorized on a best-effort basis;
    categorization failures fall back to the general category.
    """

    def __init__(
        self, repository: Repository, categorizer: Categorizer | None = None
    ) -> None:
        """Initialize the resolver.

        Args:
            repository: Persistence collaborator.
            categorizer: Optional categorizer for new sources.
        """
        self._repo = repository
        self._categorizer = categorizer
        self._log = logger.bind(component=COMPONENT_INGEST, subcomponent="resolver")

    def resolve(
        self,
        sender_email: str,
        sender_name: str | None = None,
        sample_text: str = "",
    ) -> Source:
        """Find or create the Source for a sender.

        Args:
            sender_email: Sender identity.
            sender_name: Display name used when creating a Source.
            sample_text: Body text used to categorize a new Source.

        Returns:
            The existing or newly created Source.
        """
        existing = self._repo.get_source_by_sender(sender_email)
        if existing is not None:
            return existing

        name = (sender_name or "").strip() or sender_email.split("@")[0]
        categorization = self._categorize(name, sample_text)

        source = self._repo.create_source(
            name=name,
            sender_email=sender_email,
            sender_domain=sender_domain(sender_email),
            category=categorization.category,
            tags=categorization.tags,
            description=categorization.description,
        )
        self._log.info(
            "source_resolved",
            source_id=source.id,
            sender=sender_email,
            category=source.category.value,
        )
        return source

    def _categorize(self, name: str, sample_text: str) -> SourceCategorization:
        if self._categorizer is None:
            return SourceCategorization()
        try:
            return self._categorizer.categorize(
                name, sample_text[:CATEGORIZATION_SAMPLE_CHARS]
            )
        except Exception as e:
            self._log.warning(
                "source_categorization_failed",
                source_name=name,
                error=str(e),
                category=ByteCategory.GENERAL.value,
            )
            return SourceCategorization()
