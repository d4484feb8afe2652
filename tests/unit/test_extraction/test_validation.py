"""Unit tests for content byte validation."""

from typing import Any

import pytest

from bytefeed.extraction.validation import validate_bytes
from bytefeed.store.models import ByteCategory, ByteType


VALID_CONTENT = "Small consistent habits compound into remarkable results over time."


def _make_entry(**overrides: Any) -> dict[str, Any]:
    """Create a valid raw byte entry."""
    entry: dict[str, Any] = {
        "content": VALID_CONTENT,
        "type": "insight",
        "author": "James Clear",
        "context": "On habits",
        "category": "productivity",
        "qualityScore": 0.9,
    }
    entry.update(overrides)
    return entry


class TestValidateBytes:
    """Tests for validate_bytes."""

    @pytest.mark.unit
    def test_valid_entry(self) -> None:
        """Test a fully valid entry maps to a draft."""
        drafts = validate_bytes([_make_entry()])

        assert len(drafts) == 1
        draft = drafts[0]
        assert draft.content == VALID_CONTENT
        assert draft.byte_type == ByteType.INSIGHT
        assert draft.category == ByteCategory.PRODUCTIVITY
        assert draft.author == "James Clear"
        assert draft.quality_score == 0.9
        assert draft.is_sponsored is False

    @pytest.mark.unit
    def test_not_a_list(self) -> None:
        """Test non-list input yields no drafts."""
        assert validate_bytes({"content": VALID_CONTENT}) == []
        assert validate_bytes(None) == []

    @pytest.mark.unit
    def test_length_bounds(self) -> None:
        """Test too-short and too-long content is dropped."""
        drafts = validate_bytes(
            [_make_entry(content="too short"), _make_entry(content="x" * 501)]
        )
        assert drafts == []

    @pytest.mark.unit
    def test_low_quality_dropped(self) -> None:
        """Test entries under the quality floor are dropped."""
        assert validate_bytes([_make_entry(qualityScore=0.5)]) == []

    @pytest.mark.unit
    def test_missing_score_defaults(self) -> None:
        """Test a missing score is kept with the default score."""
        entry = _make_entry()
        del entry["qualityScore"]
        drafts = validate_bytes([entry])
        assert drafts[0].quality_score == 0.7

    @pytest.mark.unit
    def test_unknown_type_and_category_default(self) -> None:
        """Test unknown enum values fall back instead of rejecting the entry."""
        drafts = validate_bytes([_make_entry(type="poem", category="astrology")])

        assert drafts[0].byte_type == ByteType.INSIGHT
        assert drafts[0].category == ByteCategory.GENERAL

    @pytest.mark.unit
    def test_vague_author_dropped(self) -> None:
        """Test vague authors are stored as None."""
        drafts = validate_bytes([_make_entry(author="Someone")])
        assert drafts[0].author is None

    @pytest.mark.unit
    def test_one_bad_entry_does_not_reject_others(self) -> None:
        """Test malformed entries are skipped individually."""
        drafts = validate_bytes(["junk", _make_entry(content=42), _make_entry()])
        assert len(drafts) == 1

    @pytest.mark.unit
    def test_sponsored_flag(self) -> None:
        """Test the sponsored flag is read from either key spelling."""
        drafts = validate_bytes(
            [_make_entry(isSponsored=True), _make_entry(is_sponsored=True)]
        )
        assert all(d.is_sponsored for d in drafts)
