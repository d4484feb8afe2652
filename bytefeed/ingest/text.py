"""Helpers for turning raw mail fields into plain values."""

import re

from bs4 import BeautifulSoup


_WHITESPACE_RE = re.compile(r"\s+")
_SENDER_NAME_RE = re.compile(r'^"?([^"<]+?)"?\s*<')
_ADDRESS_RE = re.compile(r"<([^>]+)>")


def html_to_text(html: str) -> str:
    """Convert an HTML body to whitespace-collapsed plain text.

    Args:
        html: HTML markup.

    Returns:
        Visible text with scripts and styles removed.
    """
    if not html.strip():
        return ""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return _WHITESPACE_RE.sub(" ", soup.get_text(" ")).strip()


def extract_sender_address(from_header: str) -> str:
    """Return the bare address of a ``From`` header, lowercased."""
    match = _ADDRESS_RE.search(from_header)
    address = match.group(1) if match else from_header
    return address.strip().strip('"').lower()


def extract_sender_name(from_header: str) -> str:
    """Extract a display name from a ``From`` header.

    ``"Jane Doe" <jane@example.com>`` yields ``Jane Doe``; a bare address
    yields its local part.

    Args:
        from_header: Raw header value.

    Returns:
        Best-effort display name.
    """
    match = _SENDER_NAME_RE.match(from_header.strip())
    if match and match.group(1).strip():
        return match.group(1).strip()
    return extract_sender_address(from_header).split("@")[0]


def sender_domain(email: str) -> str:
    """Return the lowercased domain of an address, or an empty string."""
    _, sep, domain = email.rpartition("@")
    return domain.strip().lower() if sep else ""
