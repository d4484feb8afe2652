"""Data models for the state store."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProcessingStatus(str, Enum):
    """Processing state of an edition.

    - pending: Waiting for a queue batch (new, or retrying)
    - processing: Claimed by a batch run, extraction in flight
    - completed: Bytes extracted and stored
    - failed: Attempts exhausted; only an explicit reset re-queues it
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ByteType(str, Enum):
    """Kind of insight a content byte carries."""

    QUOTE = "quote"
    INSIGHT = "insight"
    STATISTIC = "statistic"
    ACTION = "action"
    TAKEAWAY = "takeaway"
    MENTAL_MODEL = "mental_model"
    COUNTERINTUITIVE = "counterintuitive"


class ByteCategory(str, Enum):
    """Topic category shared by sources, bytes, and user preferences."""

    WISDOM = "wisdom"
    PRODUCTIVITY = "productivity"
    BUSINESS = "business"
    TECH = "tech"
    LIFE = "life"
    CREATIVITY = "creativity"
    LEADERSHIP = "leadership"
    FINANCE = "finance"
    HEALTH = "health"
    GENERAL = "general"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Source(BaseModel):
    """Origin of ingested documents, keyed by sender identity."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[str, Field(min_length=1)]
    name: Annotated[str, Field(min_length=1)]
    sender_email: Annotated[str, Field(min_length=1, description="Sender identity")]
    sender_domain: str = ""
    description: str | None = None
    category: ByteCategory = ByteCategory.GENERAL
    tags: list[str] = Field(default_factory=list)
    website: str | None = Field(default=None, description="Subscription URL")
    is_curated: bool = False
    is_verified: bool = False
    subscriber_count: Annotated[int, Field(ge=0)] = 0
    total_engagement: Annotated[int, Field(ge=0)] = 0
    avg_engagement_score: float = 0.0
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v: Any) -> ByteCategory:
        """Coerce unknown categories to GENERAL."""
        if isinstance(v, ByteCategory):
            return v
        try:
            return ByteCategory(str(v).lower())
        except ValueError:
            return ByteCategory.GENERAL


class Edition(BaseModel):
    """One ingested document instance belonging to a source."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[str, Field(min_length=1)]
    source_id: Annotated[str, Field(min_length=1)]
    subject: str
    raw_content: str = ""
    text_content: str
    fingerprint: Annotated[str, Field(min_length=1)]
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    process_attempts: Annotated[int, Field(ge=0)] = 0
    received_at: datetime = Field(default_factory=_utcnow)
    processing_started_at: datetime | None = None
    processed_at: datetime | None = None
    summary: str | None = None
    read_time_minutes: int | None = None
    processed_by_model: str | None = None
    processing_error: str | None = None


class ContentByte(BaseModel):
    """One extracted insight unit shown to users."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[str, Field(min_length=1)]
    edition_id: Annotated[str, Field(min_length=1)]
    source_id: Annotated[str, Field(min_length=1)]
    content: Annotated[str, Field(min_length=1)]
    byte_type: ByteType = ByteType.INSIGHT
    author: str | None = None
    context: str | None = None
    category: ByteCategory = ByteCategory.GENERAL
    quality_score: Annotated[float, Field(ge=0.0, le=1.0)]
    upvotes: Annotated[int, Field(ge=0)] = 0
    downvotes: Annotated[int, Field(ge=0)] = 0
    view_count: Annotated[int, Field(ge=0)] = 0
    save_count: Annotated[int, Field(ge=0)] = 0
    share_count: Annotated[int, Field(ge=0)] = 0
    engagement_score: float = 0.0
    trending_score: float = 0.0
    is_sponsored: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class ContentByteDraft(BaseModel):
    """A validated byte waiting to be attached to an edition."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    content: Annotated[str, Field(min_length=1)]
    byte_type: ByteType = ByteType.INSIGHT
    author: str | None = None
    context: str | None = None
    category: ByteCategory = ByteCategory.GENERAL
    quality_score: Annotated[float, Field(ge=0.0, le=1.0)]
    is_sponsored: bool = False


class UserEngagement(BaseModel):
    """Interaction record for one (user, byte) pair."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: Annotated[str, Field(min_length=1)]
    byte_id: Annotated[str, Field(min_length=1)]
    vote: Annotated[int, Field(ge=-1, le=1)] = 0
    is_saved: bool = False
    saved_at: datetime | None = None
    view_count: Annotated[int, Field(ge=0)] = 0
    total_dwell_time_ms: Annotated[int, Field(ge=0)] = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class UserPreference(BaseModel):
    """Per-category weight learned from a user's votes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: Annotated[str, Field(min_length=1)]
    category: ByteCategory
    weight: Annotated[float, Field(ge=0.0, le=1.0)]
    updated_at: datetime = Field(default_factory=_utcnow)


class ContentHistory(BaseModel):
    """Exposure marker for one (user, byte) pair."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: Annotated[str, Field(min_length=1)]
    byte_id: Annotated[str, Field(min_length=1)]
    shown_at: datetime = Field(default_factory=_utcnow)
    is_read: bool = False
    dwell_time_ms: int | None = None


class Subscription(BaseModel):
    """A user's link to a source."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: Annotated[str, Field(min_length=1)]
    source_id: Annotated[str, Field(min_length=1)]
    is_active: bool = True
    discovery_method: str = "search"
    created_at: datetime = Field(default_factory=_utcnow)


class UserProfile(BaseModel):
    """Feed-relevant user flags."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: Annotated[str, Field(min_length=1)]
    enable_recommendations: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class CandidateOrder(str, Enum):
    """Sort orders supported by feed candidate queries (all descending).

    - POPULAR: blended quality and normalized engagement
    - TRENDING: time-decayed engagement
    - RECENT: creation time
    - QUALITY: quality, then engagement, then creation time
    """

    POPULAR = "popular"
    TRENDING = "trending"
    RECENT = "recent"
    QUALITY = "quality"


@dataclass(frozen=True)
class CandidateQuery:
    """Parameters for a keyset-paginated feed candidate query.

    Attributes:
        user_id: Requesting user; drives the exclusion rule.
        order: Sort order.
        limit: Maximum rows to return.
        after: Sort key of the last row already consumed (exclusive).
        include_sponsored: Whether sponsored bytes are eligible.
        created_after: Only bytes created at or after this time.
        source_ids: Restrict to these sources (None means all).
        exclude_shown: Also exclude bytes with any history record.
    """

    user_id: str
    order: CandidateOrder
    limit: int
    after: tuple[Any, ...] | None = None
    include_sponsored: bool = False
    created_after: datetime | None = None
    source_ids: tuple[str, ...] | None = None
    exclude_shown: bool = False


@dataclass(frozen=True)
class FeedCandidate:
    """A content byte with the source fields the feed renders.

    Attributes:
        byte: The content byte.
        source_name: Display name of the owning source.
        source_is_verified: Verification flag of the owning source.
        source_website: Subscription URL of the owning source.
        sort_key: Values of the query's sort columns, ending with the id.
    """

    byte: ContentByte
    source_name: str
    source_is_verified: bool = False
    source_website: str | None = None
    sort_key: tuple[Any, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PendingEdition:
    """An edition fetched for processing together with its source."""

    edition: Edition
    source: Source
