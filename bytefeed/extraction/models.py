"""Data models for extraction requests and results."""

from dataclasses import dataclass, field

from bytefeed.store.models import ByteCategory, ContentByteDraft


@dataclass(frozen=True)
class SourceInfo:
    """Public identity of a source discovered during extraction.

    Attributes:
        name: Human-readable publication name.
        website: Subscription URL.
    """

    name: str | None = None
    website: str | None = None


@dataclass(frozen=True)
class SourceCategorization:
    """Best-effort description of a newly seen source.

    Attributes:
        description: One-sentence description.
        category: Primary topic category.
        tags: Up to five short tags.
    """

    description: str | None = None
    category: ByteCategory = ByteCategory.GENERAL
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of extracting one edition.

    Attributes:
        bytes: Validated content bytes (possibly empty).
        summary: Short edition summary.
        read_time_minutes: Estimated read time of the edition.
        source_info: Source identity, when requested and present.
        model_used: Name of the provider that produced the result.
    """

    bytes: list[ContentByteDraft] = field(default_factory=list)
    summary: str | None = None
    read_time_minutes: int = 1
    source_info: SourceInfo | None = None
    model_used: str = ""
