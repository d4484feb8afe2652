"""Personalized scoring of feed candidates."""

import random
from datetime import datetime

from bytefeed.config.constants import (
    ENGAGEMENT_HALF_SATURATION,
    NEUTRAL_PREFERENCE_WEIGHT,
    RECENCY_WINDOW_DAYS,
)
from bytefeed.ranker.constants import COLD_START_WEIGHTS, ESTABLISHED_WEIGHTS
from bytefeed.ranker.models import ScoreComponents, ScoreWeights
from bytefeed.store.models import ByteCategory, ContentByte


def normalize_engagement(engagement_score: float) -> float:
    """Map an unbounded engagement score into [0, 1).

    Negative scores count as zero.
    """
    value = max(engagement_score, 0.0)
    return value / (value + ENGAGEMENT_HALF_SATURATION)


def recency_decay(created_at: datetime, now: datetime) -> float:
    """Linear decay from 1.0 at creation to 0.0 after the recency window."""
    age_days = (now - created_at).total_seconds() / 86400
    return min(1.0, max(0.0, 1.0 - age_days / RECENCY_WINDOW_DAYS))


class PersonalizedScorer:
    """Scores candidates for one user.

    A user without any category preferences is a cold-start user: quality
    dominates and preferences carry no weight.
    """

    def __init__(
        self,
        preferences: dict[ByteCategory, float],
        rng: random.Random,
        now: datetime,
    ) -> None:
        """Initialize the scorer.

        Args:
            preferences: The user's category weights.
            rng: Random source for the tie-breaking term.
            now: Reference time for recency.
        """
        self._preferences = preferences
        self._rng = rng
        self._now = now

    @property
    def is_cold_start(self) -> bool:
        """Whether the user has no established preferences."""
        return not self._preferences

    @property
    def weights(self) -> ScoreWeights:
        """Weights in effect for this user."""
        return COLD_START_WEIGHTS if self.is_cold_start else ESTABLISHED_WEIGHTS

    def score(self, byte: ContentByte) -> ScoreComponents:
        """Score one content byte.

        Args:
            byte: The byte to score.

        Returns:
            Weighted score components.
        """
        w = self.weights
        quality = w.quality * byte.quality_score
        engagement = w.engagement * normalize_engagement(byte.engagement_score)
        preference = w.preference * self._preferences.get(
            byte.category, NEUTRAL_PREFERENCE_WEIGHT
        )
        recency = w.recency * recency_decay(byte.created_at, self._now)
        jitter = w.random * self._rng.random()
        return ScoreComponents(
            quality_score=quality,
            engagement_score=engagement,
            preference_score=preference,
            recency_score=recency,
            random_score=jitter,
            total_score=quality + engagement + preference + recency + jitter,
        )
