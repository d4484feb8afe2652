"""Constants for the ranker module."""

from bytefeed.ranker.models import ScoreWeights


# Users with category preferences
ESTABLISHED_WEIGHTS = ScoreWeights(
    quality=0.30,
    engagement=0.25,
    preference=0.25,
    recency=0.10,
    random=0.10,
)

# Users without preferences rank mostly on quality; preference carries no weight
COLD_START_WEIGHTS = ScoreWeights(
    quality=0.60,
    engagement=0.25,
    preference=0.0,
    recency=0.10,
    random=0.05,
)

# Candidates scored when serving a single item
NEXT_ITEM_CANDIDATES: int = 10
