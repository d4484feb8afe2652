"""Unit tests for derived engagement scores."""

from datetime import timedelta

import pytest

from bytefeed.engagement.scores import engagement_score, trending_score
from tests.helpers.time import FIXED_NOW


class TestEngagementScore:
    """Tests for engagement_score."""

    @pytest.mark.unit
    def test_weights(self) -> None:
        """Test each counter carries its weight."""
        score = engagement_score(
            upvotes=4, downvotes=2, view_count=100, save_count=1, share_count=1
        )
        assert score == pytest.approx(4.0 - 1.0 + 1.0 + 2.0 + 3.0)

    @pytest.mark.unit
    def test_can_be_negative(self) -> None:
        """Test downvotes can push the score below zero."""
        score = engagement_score(
            upvotes=0, downvotes=2, view_count=0, save_count=0, share_count=0
        )
        assert score == pytest.approx(-1.0)


class TestTrendingScore:
    """Tests for trending_score."""

    @pytest.mark.unit
    def test_new_byte(self) -> None:
        """Test a brand-new byte divides by 2 ** 1.5."""
        assert trending_score(10.0, FIXED_NOW, FIXED_NOW) == pytest.approx(10.0 / 2**1.5)

    @pytest.mark.unit
    def test_decays_with_age(self) -> None:
        """Test older bytes score lower for equal engagement."""
        fresh = trending_score(10.0, FIXED_NOW - timedelta(hours=1), FIXED_NOW)
        old = trending_score(10.0, FIXED_NOW - timedelta(hours=48), FIXED_NOW)

        assert old < fresh
        assert old == pytest.approx(10.0 / 50**1.5)
