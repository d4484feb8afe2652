"""Unit tests for mail field helpers."""

import pytest

from bytefeed.ingest.text import (
    extract_sender_address,
    extract_sender_name,
    html_to_text,
    sender_domain,
)


class TestHtmlToText:
    """Tests for html_to_text."""

    @pytest.mark.unit
    def test_strips_tags_and_scripts(self) -> None:
        """Test markup, scripts and styles are removed."""
        html = (
            "<html><head><style>p {color: red}</style></head>"
            "<body><h1>Title</h1><script>alert(1)</script>"
            "<p>First   paragraph.</p><p>Second.</p></body></html>"
        )
        text = html_to_text(html)
        assert text == "Title First paragraph. Second."

    @pytest.mark.unit
    def test_blank_html(self) -> None:
        """Test blank input yields empty text."""
        assert html_to_text("   ") == ""


class TestSenderParsing:
    """Tests for sender identity helpers."""

    @pytest.mark.unit
    def test_address_from_display_form(self) -> None:
        """Test the bare address is lowercased out of angle brackets."""
        assert extract_sender_address('"Jane Doe" <Jane@Example.COM>') == "jane@example.com"

    @pytest.mark.unit
    def test_address_bare(self) -> None:
        """Test a bare address is returned lowercased."""
        assert extract_sender_address(" News@Letter.io ") == "news@letter.io"

    @pytest.mark.unit
    def test_name_from_display_form(self) -> None:
        """Test the display name is extracted."""
        assert extract_sender_name('"Jane Doe" <jane@example.com>') == "Jane Doe"

    @pytest.mark.unit
    def test_name_falls_back_to_local_part(self) -> None:
        """Test a bare address yields its local part."""
        assert extract_sender_name("weekly@example.com") == "weekly"

    @pytest.mark.unit
    def test_domain(self) -> None:
        """Test domain extraction."""
        assert sender_domain("a@Sub.Example.com") == "sub.example.com"
        assert sender_domain("no-at-sign") == ""
