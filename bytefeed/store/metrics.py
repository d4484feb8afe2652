"""Metrics collection for the state store."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for state store operations.

    Attributes:
        editions_created_total: Editions inserted.
        duplicate_fingerprints_total: Inserts rejected by the fingerprint constraint.
        bytes_inserted_total: Content bytes inserted.
        stale_recovered_total: Editions reset from a stale processing state.
        db_tx_duration_ms: Cumulative transaction duration in milliseconds.
        db_tx_count: Number of transactions.
    """

    editions_created_total: int = 0
    duplicate_fingerprints_total: int = 0
    bytes_inserted_total: int = 0
    stale_recovered_total: int = 0
    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_edition_created(self) -> None:
        self.editions_created_total += 1

    def record_duplicate_fingerprint(self) -> None:
        self.duplicate_fingerprints_total += 1

    def record_bytes_inserted(self, count: int) -> None:
        self.bytes_inserted_total += count

    def record_stale_recovered(self, count: int) -> None:
        self.stale_recovered_total += count

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record transaction duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        self.db_tx_duration_ms += duration_ms
        self.db_tx_count += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "editions_created_total": self.editions_created_total,
            "duplicate_fingerprints_total": self.duplicate_fingerprints_total,
            "bytes_inserted_total": self.bytes_inserted_total,
            "stale_recovered_total": self.stale_recovered_total,
            "db_tx_duration_ms": self.db_tx_duration_ms,
            "db_tx_count": self.db_tx_count,
            "db_tx_avg_ms": round(self.avg_tx_duration_ms, 3),
        }

    @property
    def avg_tx_duration_ms(self) -> float:
        """Calculate average transaction duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.db_tx_count == 0:
            return 0.0
        return self.db_tx_duration_ms / self.db_tx_count


@dataclass
class TransactionContext:
    """Context for a single transaction with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count.

        Args:
            rows: Number of rows affected.
        """
        self.affected_rows += rows
