"""Unit tests for source categorization."""

import json

import pytest

from bytefeed.extraction.categorizer import SourceCategorizer
from bytefeed.extraction.errors import LlmApiError
from bytefeed.store.models import ByteCategory


class StubProvider:
    """Provider returning a fixed response or raising."""

    def __init__(self, response: str | Exception, name: str = "stub") -> None:
        self.name = name
        self._response = response

    def generate_content(self, prompt: str, system_instruction: str | None = None) -> str:
        if isinstance(self._response, Exception):
            raise self._response
        return self._response


class TestSourceCategorizer:
    """Tests for SourceCategorizer.categorize."""

    @pytest.mark.unit
    def test_parses_response(self) -> None:
        """Test description, category and tags are read and tags capped."""
        response = json.dumps(
            {
                "description": "Essays on habits.",
                "category": "Productivity",
                "tags": ["Habits", "Focus", "a", "b", "c", "d"],
            }
        )

        result = SourceCategorizer([StubProvider(response)]).categorize("Name", "sample")

        assert result.description == "Essays on habits."
        assert result.category == ByteCategory.PRODUCTIVITY
        assert result.tags == ("habits", "focus", "a", "b", "c")

    @pytest.mark.unit
    def test_unknown_category(self) -> None:
        """Test an unknown category becomes general."""
        response = json.dumps({"category": "astrology"})
        result = SourceCategorizer([StubProvider(response)]).categorize("N", "s")
        assert result.category == ByteCategory.GENERAL

    @pytest.mark.unit
    def test_never_raises(self) -> None:
        """Test provider failures yield the default categorization."""
        categorizer = SourceCategorizer(
            [StubProvider(LlmApiError("down")), StubProvider("not json")]
        )

        result = categorizer.categorize("N", "s")

        assert result.category == ByteCategory.GENERAL
        assert result.description is None
        assert result.tags == ()
