"""Repository interface consumed by ingestion, queue, ranker, and engagement.

Abstracts the storage layer so services can be exercised against
alternative implementations. ``StateStore`` is the SQLite implementation.
"""

from collections.abc import Sequence
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from bytefeed.store.metrics import TransactionContext
from bytefeed.store.models import (
    ByteCategory,
    CandidateQuery,
    ContentByte,
    ContentByteDraft,
    ContentHistory,
    Edition,
    FeedCandidate,
    PendingEdition,
    ProcessingStatus,
    Source,
    Subscription,
    UserEngagement,
    UserProfile,
)


class Repository(Protocol):
    """Persistence operations the core services depend on."""

    def transaction(self, operation: str) -> AbstractContextManager[TransactionContext]:
        """Run a block atomically; nested calls join the outer transaction."""
        ...

    # Users
    def get_user_profile(self, user_id: str) -> UserProfile | None: ...

    # Sources
    def get_source(self, source_id: str) -> Source | None: ...

    def get_source_by_sender(self, sender_email: str) -> Source | None: ...

    def create_source(
        self,
        *,
        name: str,
        sender_email: str,
        sender_domain: str = "",
        category: ByteCategory = ByteCategory.GENERAL,
        tags: Sequence[str] = (),
        description: str | None = None,
        website: str | None = None,
        now: datetime | None = None,
    ) -> Source:
        """Create a source, or return the existing one for the sender."""
        ...

    def update_source_identity(
        self,
        source_id: str,
        *,
        name: str | None = None,
        website: str | None = None,
        description: str | None = None,
    ) -> Source: ...

    def increment_source_engagement(self, source_id: str, amount: int) -> None: ...

    def refresh_source_engagement_score(self, source_id: str) -> float: ...

    def adjust_subscriber_count(self, source_id: str, delta: int) -> None: ...

    # Subscriptions
    def get_subscription(self, user_id: str, source_id: str) -> Subscription | None: ...

    def upsert_subscription(
        self,
        user_id: str,
        source_id: str,
        *,
        is_active: bool,
        discovery_method: str = "search",
        now: datetime | None = None,
    ) -> Subscription: ...

    def list_active_subscription_source_ids(self, user_id: str) -> list[str]: ...

    # Editions
    def get_edition(self, edition_id: str) -> Edition | None: ...

    def get_edition_by_fingerprint(self, fingerprint: str) -> Edition | None: ...

    def create_edition(
        self,
        *,
        source_id: str,
        subject: str,
        text_content: str,
        fingerprint: str,
        raw_content: str = "",
        received_at: datetime | None = None,
    ) -> Edition:
        """Insert a pending edition; raises DuplicateFingerprintError on collision."""
        ...

    def count_editions_by_status(self) -> dict[ProcessingStatus, int]: ...

    def recover_stale_editions(self, cutoff: datetime, max_attempts: int) -> int: ...

    def fetch_pending_editions(
        self, limit: int, max_attempts: int
    ) -> list[PendingEdition]: ...

    def claim_edition(self, edition_id: str, now: datetime) -> Edition | None:
        """Conditionally move pending to processing; None if not pending."""
        ...

    def complete_edition(
        self,
        edition_id: str,
        drafts: Sequence[ContentByteDraft],
        *,
        summary: str | None,
        read_time_minutes: int,
        model_used: str,
        now: datetime,
        claimed_at: datetime | None = None,
    ) -> list[ContentByte]: ...

    def update_edition_status(
        self,
        edition_id: str,
        status: ProcessingStatus,
        *,
        error: str | None = None,
        reset_attempts: bool = False,
        claimed_at: datetime | None = None,
    ) -> Edition: ...

    def reset_failed_editions(self) -> int: ...

    # Content bytes
    def get_content_byte(self, byte_id: str) -> ContentByte | None: ...

    def adjust_byte_counters(
        self,
        byte_id: str,
        *,
        upvotes: int = 0,
        downvotes: int = 0,
        views: int = 0,
        saves: int = 0,
        shares: int = 0,
    ) -> None: ...

    def update_byte_scores(
        self, byte_id: str, *, engagement_score: float, trending_score: float
    ) -> None: ...

    # Feed candidates
    def query_feed_candidates(self, query: CandidateQuery) -> list[FeedCandidate]: ...

    def count_feed_candidates(self, query: CandidateQuery) -> int: ...

    # Engagement
    def get_engagement(self, user_id: str, byte_id: str) -> UserEngagement | None: ...

    def upsert_engagement(self, engagement: UserEngagement) -> None: ...

    def list_saved_bytes(
        self, user_id: str, limit: int, after: tuple[str, str] | None = None
    ) -> list[FeedCandidate]: ...

    # Preferences
    def get_preferences(self, user_id: str) -> dict[ByteCategory, float]: ...

    def upsert_preference(
        self,
        user_id: str,
        category: ByteCategory,
        weight: float,
        now: datetime | None = None,
    ) -> None: ...

    # History
    def get_history(self, user_id: str, byte_id: str) -> ContentHistory | None: ...

    def mark_shown(self, user_id: str, byte_id: str, now: datetime) -> None: ...

    def mark_read(
        self,
        user_id: str,
        byte_id: str,
        now: datetime,
        dwell_time_ms: int | None = None,
    ) -> None: ...
