"""Feed ranking engine.

Serves pages of content bytes in one of several orderings, and single
"next" items for minimal clients. Every ordering excludes bytes the user
has already read, voted on, or saved.
"""

import random
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import structlog

from bytefeed.config.constants import (
    CANDIDATE_MULTIPLIER,
    COMPONENT_RANKER,
    DEFAULT_PAGE_SIZE,
    DIVERSITY_CAP,
    MAX_PAGE_SIZE,
    TRENDING_WINDOW_HOURS,
)
from bytefeed.ranker.constants import NEXT_ITEM_CANDIDATES
from bytefeed.ranker.cursor import (
    CursorState,
    decode_cursor,
    decode_cursor_state,
    encode_cursor,
)
from bytefeed.ranker.diversity import select_diverse
from bytefeed.ranker.models import (
    FeedItem,
    FeedMode,
    FeedPage,
    NextItem,
    ScoredCandidate,
)
from bytefeed.ranker.scorer import PersonalizedScorer
from bytefeed.store import CandidateOrder, CandidateQuery, FeedCandidate, Repository


logger = structlog.get_logger()

_MODE_ORDER: dict[FeedMode, CandidateOrder] = {
    FeedMode.PERSONALIZED: CandidateOrder.QUALITY,
    FeedMode.POPULAR: CandidateOrder.POPULAR,
    FeedMode.TRENDING: CandidateOrder.TRENDING,
    FeedMode.SUBSCRIBED: CandidateOrder.RECENT,
    FeedMode.NEW: CandidateOrder.RECENT,
}

_KEY_LENGTH: dict[CandidateOrder, int] = {
    CandidateOrder.POPULAR: 2,
    CandidateOrder.TRENDING: 2,
    CandidateOrder.RECENT: 2,
    CandidateOrder.QUALITY: 4,
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def clamp_page_size(page_size: int) -> int:
    """Clamp a requested page size into the allowed range."""
    return max(1, min(page_size, MAX_PAGE_SIZE))


class FeedRanker:
    """Builds feed pages for users."""

    def __init__(
        self,
        repository: Repository,
        *,
        diversity_cap: int = DIVERSITY_CAP,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the ranker.

        Args:
            repository: Persistence collaborator.
            diversity_cap: Maximum appearances per source and per author
                on a personalized page.
            rng: Random source for the personalized random term.
            clock: Returns the current UTC time.
        """
        self._repository = repository
        self._diversity_cap = diversity_cap
        self._rng = rng or random.Random()  # noqa: S311
        self._clock = clock
        self._log = logger.bind(component=COMPONENT_RANKER, subcomponent="feed")

    def _include_sponsored(self, user_id: str) -> bool:
        profile = self._repository.get_user_profile(user_id)
        return profile.enable_recommendations if profile else False

    def _scorer(self, user_id: str, now: datetime) -> PersonalizedScorer:
        return PersonalizedScorer(
            self._repository.get_preferences(user_id), self._rng, now
        )

    def get_feed_page(
        self,
        user_id: str,
        mode: FeedMode | str = FeedMode.PERSONALIZED,
        page_size: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> FeedPage:
        """Get one page of a user's feed.

        Args:
            user_id: User identifier.
            mode: Feed ordering.
            page_size: Items wanted, clamped to [1, 50].
            cursor: Cursor returned by the previous page.

        Returns:
            The feed page.

        Raises:
            InvalidCursorError: If the cursor is malformed or belongs to
                another mode.
            ValueError: If the mode is unknown.
        """
        mode = FeedMode(mode)
        size = clamp_page_size(page_size)
        order = _MODE_ORDER[mode]
        if not cursor:
            state = CursorState(after=None)
        elif mode == FeedMode.PERSONALIZED:
            state = decode_cursor_state(cursor, mode, _KEY_LENGTH[order])
        else:
            state = CursorState(after=decode_cursor(cursor, mode, _KEY_LENGTH[order]))
        now = self._clock()

        created_after: datetime | None = None
        source_ids: tuple[str, ...] | None = None
        if mode == FeedMode.TRENDING:
            created_after = now - timedelta(hours=TRENDING_WINDOW_HOURS)
        elif mode == FeedMode.SUBSCRIBED:
            source_ids = tuple(
                self._repository.list_active_subscription_source_ids(user_id)
            )
            if not source_ids:
                self._log.debug("feed_no_subscriptions", user_id=user_id)
                return FeedPage()

        query = CandidateQuery(
            user_id=user_id,
            order=order,
            limit=size + 1,
            after=state.after,
            include_sponsored=self._include_sponsored(user_id),
            created_after=created_after,
            source_ids=source_ids,
        )

        if mode == FeedMode.PERSONALIZED:
            page = self._personalized_page(query, state.served, size, now)
        else:
            page = self._ordered_page(mode, query, size)

        self._log.info(
            "feed_page_served",
            user_id=user_id,
            mode=mode.value,
            page_size=size,
            items=len(page.items),
            has_more=page.has_more,
        )
        return page

    def _ordered_page(
        self, mode: FeedMode, query: CandidateQuery, size: int
    ) -> FeedPage:
        rows = self._repository.query_feed_candidates(query)
        has_more = len(rows) > size
        rows = rows[:size]
        return FeedPage(
            items=[FeedItem.from_candidate(row) for row in rows],
            next_cursor=encode_cursor(mode, rows[-1].sort_key) if has_more else None,
            has_more=has_more,
        )

    def _personalized_page(
        self, query: CandidateQuery, served: frozenset[str], size: int, now: datetime
    ) -> FeedPage:
        window = size * CANDIDATE_MULTIPLIER
        query = replace(query, limit=window + 1)
        rows = self._repository.query_feed_candidates(query)
        more_beyond_window = len(rows) > window
        rows = rows[:window]
        candidates = [
            (i, row) for i, row in enumerate(rows) if row.byte.id not in served
        ]
        if not candidates:
            if not more_beyond_window:
                return FeedPage()
            return FeedPage(
                next_cursor=encode_cursor(FeedMode.PERSONALIZED, rows[-1].sort_key),
                has_more=True,
            )

        scorer = self._scorer(query.user_id, now)
        scored = [
            ScoredCandidate(candidate=c, components=scorer.score(c.byte), position=i)
            for i, c in candidates
        ]
        scored.sort(key=lambda s: (-s.components.total_score, s.position))
        selected = select_diverse(scored, size, self._diversity_cap)

        # Resume just before the first candidate not yet served. Served
        # ids past that point ride along in the cursor so they are skipped.
        done = served | {s.candidate.byte.id for s in selected}
        first_open = next(
            (i for i, row in enumerate(rows) if row.byte.id not in done), None
        )
        if first_open is None:
            has_more = more_beyond_window
            resume_key = rows[-1].sort_key
            carried: list[str] = []
        else:
            has_more = True
            resume_key = rows[first_open - 1].sort_key if first_open else query.after
            carried = [row.byte.id for row in rows[first_open:] if row.byte.id in done]
        next_cursor = (
            encode_cursor(FeedMode.PERSONALIZED, resume_key, carried)
            if has_more
            else None
        )
        return FeedPage(
            items=[FeedItem.from_candidate(s.candidate, s.components) for s in selected],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    def get_next_item(self, user_id: str) -> NextItem:
        """Serve one item and record that it was shown.

        Picks the best-scored byte the user has never been shown. When
        every eligible byte has been shown, falls back to the popular
        ordering, which still skips read, voted and saved bytes.

        Args:
            user_id: User identifier.

        Returns:
            The served item and the number of unshown eligible bytes left.
        """
        now = self._clock()
        include_sponsored = self._include_sponsored(user_id)
        unshown = CandidateQuery(
            user_id=user_id,
            order=CandidateOrder.QUALITY,
            limit=NEXT_ITEM_CANDIDATES,
            include_sponsored=include_sponsored,
            exclude_shown=True,
        )

        item: FeedItem | None = None
        rows = self._repository.query_feed_candidates(unshown)
        if rows:
            scorer = self._scorer(user_id, now)
            scored = [(scorer.score(row.byte), i, row) for i, row in enumerate(rows)]
            components, _, best = min(scored, key=lambda t: (-t[0].total_score, t[1]))
            item = FeedItem.from_candidate(best, components)
        else:
            fallback = self._fallback_candidate(user_id, include_sponsored)
            if fallback is not None:
                item = FeedItem.from_candidate(fallback)

        if item is None:
            self._log.debug("next_item_empty", user_id=user_id)
            return NextItem(item=None, queue_size=0)

        with self._repository.transaction("serve_next_item"):
            self._repository.mark_shown(user_id, item.byte.id, now)
        queue_size = self._repository.count_feed_candidates(unshown)

        self._log.info(
            "next_item_served",
            user_id=user_id,
            byte_id=item.byte.id,
            queue_size=queue_size,
            fallback=item.score is None,
        )
        return NextItem(item=item, queue_size=queue_size)

    def _fallback_candidate(
        self, user_id: str, include_sponsored: bool
    ) -> FeedCandidate | None:
        rows = self._repository.query_feed_candidates(
            CandidateQuery(
                user_id=user_id,
                order=CandidateOrder.POPULAR,
                limit=1,
                include_sponsored=include_sponsored,
            )
        )
        return rows[0] if rows else None
