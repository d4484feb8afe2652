"""Unit tests for personalized scoring."""

import random
from datetime import timedelta

import pytest

from bytefeed.ranker.constants import COLD_START_WEIGHTS, ESTABLISHED_WEIGHTS
from bytefeed.ranker.scorer import (
    PersonalizedScorer,
    normalize_engagement,
    recency_decay,
)
from bytefeed.store.models import ByteCategory, ContentByte
from tests.helpers.time import FIXED_NOW


class ZeroRandom(random.Random):
    """Random source that always returns zero."""

    def random(self) -> float:
        return 0.0


def _make_byte(**overrides: object) -> ContentByte:
    """Create a test content byte."""
    defaults: dict[str, object] = {
        "id": "b1",
        "edition_id": "e1",
        "source_id": "s1",
        "content": "A sufficiently long piece of insight for testing.",
        "category": ByteCategory.TECH,
        "quality_score": 0.8,
        "engagement_score": 10.0,
        "created_at": FIXED_NOW,
    }
    defaults.update(overrides)
    return ContentByte(**defaults)  # type: ignore[arg-type]


class TestNormalizeEngagement:
    """Tests for normalize_engagement."""

    @pytest.mark.unit
    def test_half_saturation(self) -> None:
        """Test an engagement of 10 normalizes to 0.5."""
        assert normalize_engagement(10.0) == 0.5

    @pytest.mark.unit
    def test_negative_is_zero(self) -> None:
        """Test negative engagement counts as zero."""
        assert normalize_engagement(-4.0) == 0.0

    @pytest.mark.unit
    def test_bounded(self) -> None:
        """Test large engagement stays below one."""
        assert 0.99 < normalize_engagement(10_000.0) < 1.0


class TestRecencyDecay:
    """Tests for recency_decay."""

    @pytest.mark.unit
    def test_linear_decay(self) -> None:
        """Test decay is 1 at creation, 0.5 at 15 days and 0 after 30."""
        assert recency_decay(FIXED_NOW, FIXED_NOW) == 1.0
        assert recency_decay(FIXED_NOW - timedelta(days=15), FIXED_NOW) == pytest.approx(0.5)
        assert recency_decay(FIXED_NOW - timedelta(days=45), FIXED_NOW) == 0.0

    @pytest.mark.unit
    def test_future_clamped(self) -> None:
        """Test future timestamps do not exceed one."""
        assert recency_decay(FIXED_NOW + timedelta(days=1), FIXED_NOW) == 1.0


class TestPersonalizedScorer:
    """Tests for PersonalizedScorer."""

    @pytest.mark.unit
    def test_cold_start_weights(self) -> None:
        """Test a user without preferences uses cold-start weights."""
        scorer = PersonalizedScorer({}, ZeroRandom(), FIXED_NOW)

        components = scorer.score(_make_byte())

        assert scorer.is_cold_start
        assert scorer.weights == COLD_START_WEIGHTS
        assert components.preference_score == 0.0
        assert components.quality_score == pytest.approx(0.6 * 0.8)
        assert components.engagement_score == pytest.approx(0.25 * 0.5)
        assert components.recency_score == pytest.approx(0.10)
        assert components.total_score == pytest.approx(0.48 + 0.125 + 0.10)

    @pytest.mark.unit
    def test_established_weights(self) -> None:
        """Test preferences apply with established weights."""
        scorer = PersonalizedScorer({ByteCategory.TECH: 0.9}, ZeroRandom(), FIXED_NOW)

        components = scorer.score(_make_byte())

        assert scorer.weights == ESTABLISHED_WEIGHTS
        assert components.preference_score == pytest.approx(0.25 * 0.9)
        assert components.quality_score == pytest.approx(0.30 * 0.8)

    @pytest.mark.unit
    def test_unknown_category_is_neutral(self) -> None:
        """Test categories without a weight count as 0.5."""
        scorer = PersonalizedScorer({ByteCategory.TECH: 0.9}, ZeroRandom(), FIXED_NOW)

        components = scorer.score(_make_byte(category=ByteCategory.HEALTH))

        assert components.preference_score == pytest.approx(0.25 * 0.5)

    @pytest.mark.unit
    def test_random_term_bounded(self) -> None:
        """Test the random term stays within its weight."""
        scorer = PersonalizedScorer({}, random.Random(7), FIXED_NOW)

        for _ in range(50):
            components = scorer.score(_make_byte())
            assert 0.0 <= components.random_score <= COLD_START_WEIGHTS.random

    @pytest.mark.unit
    def test_seeded_rng_is_deterministic(self) -> None:
        """Test equal seeds give equal scores."""
        a = PersonalizedScorer({}, random.Random(3), FIXED_NOW).score(_make_byte())
        b = PersonalizedScorer({}, random.Random(3), FIXED_NOW).score(_make_byte())
        assert a == b

    @pytest.mark.unit
    def test_to_dict(self) -> None:
        """Test the breakdown serializes every component."""
        components = PersonalizedScorer({}, ZeroRandom(), FIXED_NOW).score(_make_byte())
        assert set(components.to_dict()) == {
            "quality_score",
            "engagement_score",
            "preference_score",
            "recency_score",
            "random_score",
            "total_score",
        }
