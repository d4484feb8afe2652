"""Engagement feedback loop: votes, views, saves and derived scores."""

from bytefeed.engagement.feedback import EngagementService, InvalidVoteError
from bytefeed.engagement.scores import (
    byte_engagement_score,
    engagement_score,
    trending_score,
)


__all__ = [
    "EngagementService",
    "InvalidVoteError",
    "byte_engagement_score",
    "engagement_score",
    "trending_score",
]
