"""User feedback: votes, views and saves.

Each operation runs inside a single repository transaction so counters,
engagement records and derived scores change together.
"""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from bytefeed.config.constants import (
    COMPONENT_ENGAGEMENT,
    DEFAULT_PAGE_SIZE,
    DOWNVOTE_PREFERENCE_STEP,
    NEUTRAL_PREFERENCE_WEIGHT,
    UPVOTE_PREFERENCE_STEP,
)
from bytefeed.engagement.scores import byte_engagement_score, trending_score
from bytefeed.ranker.cursor import decode_cursor, encode_cursor
from bytefeed.ranker.feed import clamp_page_size
from bytefeed.ranker.models import FeedItem, FeedPage
from bytefeed.store import (
    ContentByte,
    ContentByteNotFoundError,
    Repository,
    UserEngagement,
)


logger = structlog.get_logger()

SAVED_LISTING = "saved"
VALID_VOTES = frozenset({-1, 0, 1})


class InvalidVoteError(ValueError):
    """Raised when a vote is not -1, 0 or 1."""

    def __init__(self, vote: object) -> None:
        self.vote = vote
        super().__init__(f"Invalid vote {vote!r}; expected -1, 0 or 1")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _vote_deltas(previous: int, current: int) -> tuple[int, int]:
    """Upvote and downvote counter deltas for a vote change."""
    up = int(current == 1) - int(previous == 1)
    down = int(current == -1) - int(previous == -1)
    return up, down


class EngagementService:
    """Applies user feedback to counters, preferences and scores."""

    def __init__(
        self,
        repository: Repository,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the service.

        Args:
            repository: Persistence collaborator.
            clock: Returns the current UTC time.
        """
        self._repository = repository
        self._clock = clock
        self._log = logger.bind(component=COMPONENT_ENGAGEMENT, subcomponent="feedback")

    def _require_byte(self, byte_id: str) -> ContentByte:
        byte = self._repository.get_content_byte(byte_id)
        if byte is None:
            raise ContentByteNotFoundError(byte_id)
        return byte

    def _engagement(self, user_id: str, byte_id: str, now: datetime) -> UserEngagement:
        existing = self._repository.get_engagement(user_id, byte_id)
        if existing is not None:
            return existing
        return UserEngagement(
            user_id=user_id, byte_id=byte_id, created_at=now, updated_at=now
        )

    def record_vote(self, user_id: str, byte_id: str, vote: int) -> ContentByte:
        """Set a user's vote on a byte.

        Only the difference from the previous vote reaches the byte's
        counters, so repeating a vote never double-counts. A non-zero vote
        nudges the user's weight for the byte's category.

        Args:
            user_id: User identifier.
            byte_id: Content byte identifier.
            vote: -1, 0 or 1.

        Returns:
            The byte with updated counters and scores.

        Raises:
            InvalidVoteError: If the vote is out of range.
            ContentByteNotFoundError: If the byte does not exist.
        """
        if isinstance(vote, bool) or vote not in VALID_VOTES:
            raise InvalidVoteError(vote)

        now = self._clock()
        with self._repository.transaction("record_vote"):
            byte = self._require_byte(byte_id)
            engagement = self._engagement(user_id, byte_id, now)
            previous = engagement.vote

            up, down = _vote_deltas(previous, vote)
            if up or down:
                self._repository.adjust_byte_counters(
                    byte_id, upvotes=up, downvotes=down
                )
            self._repository.upsert_engagement(
                engagement.model_copy(update={"vote": vote, "updated_at": now})
            )
            if vote != 0:
                self._nudge_preference(user_id, byte, vote, now)
            updated = self._recompute_scores(byte_id, now)

        self._log.info(
            "vote_recorded",
            user_id=user_id,
            byte_id=byte_id,
            previous_vote=previous,
            vote=vote,
            upvotes=updated.upvotes,
            downvotes=updated.downvotes,
        )
        return updated

    def record_view(
        self,
        user_id: str,
        byte_id: str,
        dwell_time_ms: int = 0,
        is_read: bool = False,
    ) -> ContentByte:
        """Record that a user viewed a byte.

        The history read flag only ever moves from unread to read.

        Args:
            user_id: User identifier.
            byte_id: Content byte identifier.
            dwell_time_ms: Time spent on the byte.
            is_read: Whether the view counts as a read.

        Returns:
            The byte with its updated view counter.

        Raises:
            ContentByteNotFoundError: If the byte does not exist.
        """
        dwell = max(0, dwell_time_ms)
        now = self._clock()
        with self._repository.transaction("record_view"):
            self._require_byte(byte_id)
            engagement = self._engagement(user_id, byte_id, now)
            self._repository.upsert_engagement(
                engagement.model_copy(
                    update={
                        "view_count": engagement.view_count + 1,
                        "total_dwell_time_ms": engagement.total_dwell_time_ms + dwell,
                        "updated_at": now,
                    }
                )
            )
            self._repository.adjust_byte_counters(byte_id, views=1)
            if is_read:
                self._repository.mark_read(
                    user_id, byte_id, now, dwell_time_ms=dwell or None
                )
            else:
                self._repository.mark_shown(user_id, byte_id, now)
            updated = self._require_byte(byte_id)

        self._log.debug(
            "view_recorded",
            user_id=user_id,
            byte_id=byte_id,
            dwell_time_ms=dwell,
            is_read=is_read,
        )
        return updated

    def toggle_save(self, user_id: str, byte_id: str) -> bool:
        """Flip a user's saved flag on a byte.

        Returns:
            True if the byte is now saved.

        Raises:
            ContentByteNotFoundError: If the byte does not exist.
        """
        now = self._clock()
        with self._repository.transaction("toggle_save"):
            self._require_byte(byte_id)
            engagement = self._engagement(user_id, byte_id, now)
            saved = not engagement.is_saved
            self._repository.upsert_engagement(
                engagement.model_copy(
                    update={
                        "is_saved": saved,
                        "saved_at": now if saved else None,
                        "updated_at": now,
                    }
                )
            )
            self._repository.adjust_byte_counters(byte_id, saves=1 if saved else -1)
            self._recompute_scores(byte_id, now)

        self._log.info("save_toggled", user_id=user_id, byte_id=byte_id, saved=saved)
        return saved

    def list_saved(
        self,
        user_id: str,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> FeedPage:
        """List a user's saved bytes, most recently saved first.

        Args:
            user_id: User identifier.
            limit: Items wanted, clamped to [1, 50].
            cursor: Cursor returned by the previous page.

        Returns:
            A page of saved bytes.

        Raises:
            InvalidCursorError: If the cursor is malformed.
        """
        size = clamp_page_size(limit)
        after = decode_cursor(cursor, SAVED_LISTING, 2) if cursor else None
        rows = self._repository.list_saved_bytes(
            user_id, size + 1, after=(after[0], after[1]) if after else None
        )
        has_more = len(rows) > size
        rows = rows[:size]
        return FeedPage(
            items=[FeedItem.from_candidate(row) for row in rows],
            next_cursor=encode_cursor(SAVED_LISTING, rows[-1].sort_key)
            if has_more
            else None,
            has_more=has_more,
        )

    def _nudge_preference(
        self, user_id: str, byte: ContentByte, vote: int, now: datetime
    ) -> None:
        step = UPVOTE_PREFERENCE_STEP if vote > 0 else DOWNVOTE_PREFERENCE_STEP
        current = self._repository.get_preferences(user_id).get(
            byte.category, NEUTRAL_PREFERENCE_WEIGHT
        )
        weight = min(1.0, max(0.0, current + step))
        self._repository.upsert_preference(user_id, byte.category, weight, now)

    def _recompute_scores(self, byte_id: str, now: datetime) -> ContentByte:
        byte = self._require_byte(byte_id)
        engagement = byte_engagement_score(byte)
        self._repository.update_byte_scores(
            byte_id,
            engagement_score=engagement,
            trending_score=trending_score(engagement, byte.created_at, now),
        )
        self._repository.refresh_source_engagement_score(byte.source_id)
        return self._require_byte(byte_id)
