"""SQLite state store for sources, editions, content bytes, and user state.

This module provides persistent storage for:
- Source resolution keyed by sender identity
- Edition ingestion with fingerprint uniqueness and processing status
- Content bytes with engagement counters and derived scores
- Per-user engagement, preferences, history, and subscriptions
"""

from bytefeed.store.errors import (
    ConnectionError,
    ContentByteNotFoundError,
    DuplicateFingerprintError,
    EditionClaimLostError,
    EditionNotFoundError,
    MigrationError,
    SourceNotFoundError,
    StateStoreError,
)
from bytefeed.store.metrics import StoreMetrics, TransactionContext
from bytefeed.store.models import (
    ByteCategory,
    ByteType,
    CandidateOrder,
    CandidateQuery,
    ContentByte,
    ContentByteDraft,
    ContentHistory,
    Edition,
    FeedCandidate,
    PendingEdition,
    ProcessingStatus,
    Source,
    Subscription,
    UserEngagement,
    UserPreference,
    UserProfile,
)
from bytefeed.store.protocols import Repository
from bytefeed.store.store import StateStore


__all__ = [
    # Errors
    "ConnectionError",
    "ContentByteNotFoundError",
    "DuplicateFingerprintError",
    "EditionClaimLostError",
    "EditionNotFoundError",
    "MigrationError",
    "SourceNotFoundError",
    "StateStoreError",
    # Metrics
    "StoreMetrics",
    "TransactionContext",
    # Models
    "ByteCategory",
    "ByteType",
    "CandidateOrder",
    "CandidateQuery",
    "ContentByte",
    "ContentByteDraft",
    "ContentHistory",
    "Edition",
    "FeedCandidate",
    "PendingEdition",
    "ProcessingStatus",
    "Source",
    "Subscription",
    "UserEngagement",
    "UserPreference",
    "UserProfile",
    # Store
    "Repository",
    "StateStore",
]
