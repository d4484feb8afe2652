"""Constants for ingestion, processing, ranking, and engagement.

These are adjustable defaults. Settings may override the queue and
diversity values at runtime.
"""

# Log component names
COMPONENT_STORE = "store"
COMPONENT_INGEST = "ingest"
COMPONENT_EXTRACTION = "extraction"
COMPONENT_QUEUE = "queue"
COMPONENT_RANKER = "ranker"
COMPONENT_ENGAGEMENT = "engagement"
COMPONENT_CLI = "cli"

# ===== Ingestion =====

# Characters of normalized body text included in the fingerprint
FINGERPRINT_BODY_CHARS: int = 1000
DEFAULT_SUBJECT = "No Subject"
# Characters of body text sent to the source categorizer
CATEGORIZATION_SAMPLE_CHARS: int = 2000

# ===== Processing queue =====

QUEUE_BATCH_SIZE: int = 10
MAX_PROCESS_ATTEMPTS: int = 3
PROCESSING_DELAY_SECONDS: float = 2.0
STALE_PROCESSING_MINUTES: int = 10

# ===== Extraction =====

MAX_EXTRACTION_CHARS: int = 15000
MIN_BYTE_LENGTH: int = 30
MAX_BYTE_LENGTH: int = 500
MIN_QUALITY_SCORE: float = 0.65
# Stored when the provider omits a quality score
DEFAULT_QUALITY_SCORE: float = 0.7
MAX_CONTEXT_LENGTH: int = 100
WORDS_PER_MINUTE: int = 200
MAX_SOURCE_TAGS: int = 5
PROVIDER_TIMEOUT_SECONDS: float = 60.0

# ===== Feed ranking =====

DEFAULT_PAGE_SIZE: int = 10
MAX_PAGE_SIZE: int = 50
CANDIDATE_MULTIPLIER: int = 5
DIVERSITY_CAP: int = 2
TRENDING_WINDOW_HOURS: int = 24
RECENCY_WINDOW_DAYS: int = 30
ENGAGEMENT_HALF_SATURATION: float = 10.0

POPULAR_QUALITY_WEIGHT: float = 0.4
POPULAR_ENGAGEMENT_WEIGHT: float = 0.6

# Neutral weight for a category the user has not voted on yet
NEUTRAL_PREFERENCE_WEIGHT: float = 0.5

# ===== Engagement =====

UPVOTE_PREFERENCE_STEP: float = 0.05
DOWNVOTE_PREFERENCE_STEP: float = -0.03

UPVOTE_WEIGHT: float = 1.0
DOWNVOTE_WEIGHT: float = 0.5
VIEW_WEIGHT: float = 0.01
SAVE_WEIGHT: float = 2.0
SHARE_WEIGHT: float = 3.0
TRENDING_HOUR_OFFSET: float = 2.0
TRENDING_GRAVITY: float = 1.5
