"""Content fingerprinting for ingestion deduplication.

This module provides the deterministic fingerprint used to detect that a
document has already been ingested.
"""

import hashlib
import re

from bytefeed.config.constants import FINGERPRINT_BODY_CHARS


_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(value: str) -> str:
    """Case-fold and collapse whitespace.

    Args:
        value: Raw text.

    Returns:
        Text with runs of whitespace collapsed to one space, trimmed and
        case-folded.
    """
    return _WHITESPACE_RE.sub(" ", value).strip().casefold()


def compute_fingerprint(subject: str, text: str) -> str:
    """Compute the fingerprint of a document.

    The fingerprint covers the normalized subject and a bounded prefix of
    the normalized body, so trailing footers that vary between sends do not
    defeat deduplication.

    Args:
        subject: Document subject.
        text: Plain-text body.

    Returns:
        Hex SHA-256 digest.

    Examples:
        >>> compute_fingerprint("Hello", "Body") == compute_fingerprint(
        ...     "  HELLO ", "body"
        ... )
        True
    """
    body = normalize_text(text)[:FINGERPRINT_BODY_CHARS]
    content = f"{normalize_text(subject)}|{body}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
