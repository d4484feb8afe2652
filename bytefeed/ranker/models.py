"""Data models for the feed ranker."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bytefeed.store.models import ContentByte, FeedCandidate


class FeedMode(str, Enum):
    """Feed orderings offered to users."""

    PERSONALIZED = "personalized"
    POPULAR = "popular"
    TRENDING = "trending"
    SUBSCRIBED = "subscribed"
    NEW = "new"


@dataclass(frozen=True)
class ScoreWeights:
    """Weights of the personalized score terms."""

    quality: float
    engagement: float
    preference: float
    recency: float
    random: float


@dataclass(frozen=True)
class ScoreComponents:
    """Breakdown of a personalized score into weighted terms.

    Attributes:
        quality_score: Weighted quality contribution.
        engagement_score: Weighted normalized engagement contribution.
        preference_score: Weighted category preference contribution.
        recency_score: Weighted recency decay contribution.
        random_score: Weighted random contribution.
        total_score: Sum of all components.
    """

    quality_score: float
    engagement_score: float
    preference_score: float
    recency_score: float
    random_score: float
    total_score: float

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary for serialization.

        Returns:
            Dictionary of component name to value.
        """
        return {
            "quality_score": self.quality_score,
            "engagement_score": self.engagement_score,
            "preference_score": self.preference_score,
            "recency_score": self.recency_score,
            "random_score": self.random_score,
            "total_score": self.total_score,
        }


@dataclass
class ScoredCandidate:
    """A feed candidate with its personalized score.

    Attributes:
        candidate: The candidate row.
        components: Score breakdown.
        position: Index of the candidate in candidate order.
    """

    candidate: FeedCandidate
    components: ScoreComponents
    position: int

    @property
    def source_id(self) -> str:
        return self.candidate.byte.source_id

    @property
    def author(self) -> str | None:
        return self.candidate.byte.author


@dataclass(frozen=True)
class SourceView:
    """Compact source fields rendered with a feed item."""

    id: str
    name: str
    is_verified: bool = False
    website: str | None = None


@dataclass(frozen=True)
class FeedItem:
    """One item of a feed page.

    Attributes:
        byte: The content byte.
        source: Compact view of the owning source.
        score: Score breakdown (personalized ordering only).
    """

    byte: ContentByte
    source: SourceView
    score: ScoreComponents | None = None

    @classmethod
    def from_candidate(
        cls, candidate: FeedCandidate, score: ScoreComponents | None = None
    ) -> "FeedItem":
        """Build an item from a store candidate row."""
        return cls(
            byte=candidate.byte,
            source=SourceView(
                id=candidate.byte.source_id,
                name=candidate.source_name,
                is_verified=candidate.source_is_verified,
                website=candidate.source_website,
            ),
            score=score,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "byte": self.byte.model_dump(mode="json"),
            "source": {
                "id": self.source.id,
                "name": self.source.name,
                "is_verified": self.source.is_verified,
                "website": self.source.website,
            },
            "score": self.score.to_dict() if self.score else None,
        }


@dataclass
class FeedPage:
    """A page of feed items.

    Attributes:
        items: Items in display order.
        next_cursor: Opaque cursor for the next page, or None.
        has_more: More eligible items exist past this page.
    """

    items: list[FeedItem] = field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "items": [item.to_dict() for item in self.items],
            "next_cursor": self.next_cursor,
            "has_more": self.has_more,
        }


@dataclass(frozen=True)
class NextItem:
    """Result of serving a single item.

    Attributes:
        item: The served item, or None when nothing is eligible.
        queue_size: Eligible unshown items remaining after this one.
    """

    item: FeedItem | None
    queue_size: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "item": self.item.to_dict() if self.item else None,
            "queue_size": self.queue_size,
        }
