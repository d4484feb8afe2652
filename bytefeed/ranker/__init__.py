"""Feed ranking: orderings, personalized scoring, diversity and cursors."""

from bytefeed.ranker.cursor import (
    CursorState,
    InvalidCursorError,
    decode_cursor,
    decode_cursor_state,
    encode_cursor,
)
from bytefeed.ranker.diversity import select_diverse
from bytefeed.ranker.feed import FeedRanker, clamp_page_size
from bytefeed.ranker.models import (
    FeedItem,
    FeedMode,
    FeedPage,
    NextItem,
    ScoreComponents,
    ScoredCandidate,
    ScoreWeights,
    SourceView,
)
from bytefeed.ranker.scorer import (
    PersonalizedScorer,
    normalize_engagement,
    recency_decay,
)


__all__ = [
    # Engine
    "FeedRanker",
    "clamp_page_size",
    # Scoring
    "PersonalizedScorer",
    "normalize_engagement",
    "recency_decay",
    "select_diverse",
    # Cursors
    "CursorState",
    "InvalidCursorError",
    "decode_cursor",
    "decode_cursor_state",
    "encode_cursor",
    # Models
    "FeedItem",
    "FeedMode",
    "FeedPage",
    "NextItem",
    "ScoreComponents",
    "ScoreWeights",
    "ScoredCandidate",
    "SourceView",
]
