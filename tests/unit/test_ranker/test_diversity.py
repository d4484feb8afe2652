"""Unit tests for the diversity filter."""

import pytest

from bytefeed.ranker.diversity import select_diverse
from bytefeed.ranker.models import ScoreComponents, ScoredCandidate
from bytefeed.store.models import ContentByte, FeedCandidate
from tests.helpers.time import FIXED_NOW


def _make_scored(
    position: int, source_id: str, author: str | None = None
) -> ScoredCandidate:
    """Create a scored candidate; lower positions score higher."""
    byte = ContentByte(
        id=f"b{position}",
        edition_id="e1",
        source_id=source_id,
        content="Insight text long enough for the model.",
        author=author,
        quality_score=0.8,
        created_at=FIXED_NOW,
    )
    total = 1.0 - position * 0.01
    return ScoredCandidate(
        candidate=FeedCandidate(
            byte=byte,
            source_name=source_id,
            source_is_verified=False,
            source_website=None,
            sort_key=(0.8, 0.0, "t", byte.id),
        ),
        components=ScoreComponents(0.0, 0.0, 0.0, 0.0, 0.0, total),
        position=position,
    )


def _ids(selected: list[ScoredCandidate]) -> list[str]:
    return [s.candidate.byte.id for s in selected]


class TestSelectDiverse:
    """Tests for select_diverse."""

    @pytest.mark.unit
    def test_source_cap(self) -> None:
        """Test no source appears more than the cap while others remain."""
        scored = [
            _make_scored(0, "s1"),
            _make_scored(1, "s1"),
            _make_scored(2, "s1"),
            _make_scored(3, "s2"),
            _make_scored(4, "s3"),
        ]

        selected = select_diverse(scored, page_size=4, cap=2)

        assert _ids(selected) == ["b0", "b1", "b3", "b4"]

    @pytest.mark.unit
    def test_author_cap_across_sources(self) -> None:
        """Test the author cap applies across different sources."""
        scored = [
            _make_scored(0, "s1", "Seneca"),
            _make_scored(1, "s2", "seneca "),
            _make_scored(2, "s3", "Seneca"),
            _make_scored(3, "s4", "Marcus"),
        ]

        selected = select_diverse(scored, page_size=3, cap=2)

        assert _ids(selected) == ["b0", "b1", "b3"]

    @pytest.mark.unit
    def test_missing_author_exempt(self) -> None:
        """Test bytes without an author are limited by source only."""
        scored = [_make_scored(i, f"s{i}") for i in range(4)]

        selected = select_diverse(scored, page_size=4, cap=1)

        assert len(selected) == 4

    @pytest.mark.unit
    def test_backfill_in_score_order(self) -> None:
        """Test skipped items backfill a short page in score order."""
        scored = [_make_scored(i, "s1") for i in range(5)]

        selected = select_diverse(scored, page_size=4, cap=2)

        assert _ids(selected) == ["b0", "b1", "b2", "b3"]

    @pytest.mark.unit
    def test_fewer_candidates_than_page(self) -> None:
        """Test a short candidate list is returned whole."""
        scored = [_make_scored(0, "s1"), _make_scored(1, "s1")]
        assert len(select_diverse(scored, page_size=10, cap=1)) == 2
