"""Derived engagement and trending scores."""

from datetime import datetime

from bytefeed.config.constants import (
    DOWNVOTE_WEIGHT,
    SAVE_WEIGHT,
    SHARE_WEIGHT,
    TRENDING_GRAVITY,
    TRENDING_HOUR_OFFSET,
    UPVOTE_WEIGHT,
    VIEW_WEIGHT,
)
from bytefeed.store.models import ContentByte


def engagement_score(
    *,
    upvotes: int,
    downvotes: int,
    view_count: int,
    save_count: int,
    share_count: int,
) -> float:
    """Weighted sum of a byte's engagement counters."""
    return (
        upvotes * UPVOTE_WEIGHT
        - downvotes * DOWNVOTE_WEIGHT
        + view_count * VIEW_WEIGHT
        + save_count * SAVE_WEIGHT
        + share_count * SHARE_WEIGHT
    )


def trending_score(engagement: float, created_at: datetime, now: datetime) -> float:
    """Time-decayed engagement.

    Old bytes fall out of trending as the denominator grows with age.

    Args:
        engagement: Engagement score.
        created_at: Byte creation time.
        now: Reference time.

    Returns:
        ``engagement / (hours_since_creation + 2) ** 1.5``.
    """
    hours = max(0.0, (now - created_at).total_seconds() / 3600)
    return engagement / (hours + TRENDING_HOUR_OFFSET) ** TRENDING_GRAVITY


def byte_engagement_score(byte: ContentByte) -> float:
    """Engagement score computed from a byte's stored counters."""
    return engagement_score(
        upvotes=byte.upvotes,
        downvotes=byte.downvotes,
        view_count=byte.view_count,
        save_count=byte.save_count,
        share_count=byte.share_count,
    )
