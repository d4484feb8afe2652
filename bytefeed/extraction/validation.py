"""Field-level validation of extracted content bytes.

A single malformed field never rejects the whole response: unknown
types and categories fall back to defaults, and only the offending
entry is dropped when its content or score is out of bounds.
"""

from enum import Enum
from typing import Any, TypeVar

from bytefeed.config.constants import (
    DEFAULT_QUALITY_SCORE,
    MAX_BYTE_LENGTH,
    MAX_CONTEXT_LENGTH,
    MIN_BYTE_LENGTH,
    MIN_QUALITY_SCORE,
)
from bytefeed.store.models import ByteCategory, ByteType, ContentByteDraft


E = TypeVar("E", bound=Enum)

VAGUE_AUTHORS = frozenset(
    {
        "someone",
        "somebody",
        "a friend",
        "a colleague",
        "a reader",
        "anonymous",
        "unknown",
        "author",
        "the author",
        "they",
        "he",
        "she",
        "n/a",
        "none",
        "null",
    }
)


def _score(entry: dict[str, Any]) -> float | None:
    raw = entry.get("qualityScore", entry.get("quality_score"))
    if isinstance(raw, bool) or not isinstance(raw, int | float):
        return None
    return float(raw)


def _enum_value(enum_cls: type[E], raw: Any, default: E) -> E:
    if not isinstance(raw, str):
        return default
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        return default


def _author(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    author = raw.strip()
    if not author or author.casefold() in VAGUE_AUTHORS:
        return None
    return author


def _context(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    context = raw.strip()
    return context[:MAX_CONTEXT_LENGTH] or None


def validate_bytes(raw: Any) -> list[ContentByteDraft]:
    """Validate candidate bytes from a parsed model response.

    Args:
        raw: Parsed ``bytes`` value (expected to be a list of dicts).

    Returns:
        Validated drafts, in input order.
    """
    if not isinstance(raw, list):
        return []

    drafts: list[ContentByteDraft] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        content = entry.get("content")
        if not isinstance(content, str):
            continue
        content = content.strip()
        if not MIN_BYTE_LENGTH <= len(content) <= MAX_BYTE_LENGTH:
            continue

        score = _score(entry)
        if (score if score is not None else MIN_QUALITY_SCORE) < MIN_QUALITY_SCORE:
            continue
        quality = DEFAULT_QUALITY_SCORE if score is None else min(1.0, max(0.0, score))

        sponsored = entry.get("isSponsored", entry.get("is_sponsored", False))
        drafts.append(
            ContentByteDraft(
                content=content,
                byte_type=_enum_value(ByteType, entry.get("type"), ByteType.INSIGHT),
                author=_author(entry.get("author")),
                context=_context(entry.get("context")),
                category=_enum_value(
                    ByteCategory, entry.get("category"), ByteCategory.GENERAL
                ),
                quality_score=quality,
                is_sponsored=sponsored is True,
            )
        )
    return drafts
