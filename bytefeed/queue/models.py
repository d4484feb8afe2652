"""Data models for processing queue results."""

from dataclasses import dataclass, field

from bytefeed.store.models import ProcessingStatus


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome of processing one edition.

    Attributes:
        edition_id: The edition processed.
        success: Extraction and persistence succeeded.
        bytes_extracted: Number of bytes stored.
        status: Edition status after processing.
        error: Failure reason, if any.
    """

    edition_id: str
    success: bool
    bytes_extracted: int = 0
    status: ProcessingStatus = ProcessingStatus.COMPLETED
    error: str | None = None


@dataclass
class BatchResult:
    """Aggregate outcome of one batch run.

    Attributes:
        processed: Editions this run actually processed.
        succeeded: Editions completed.
        failed: Editions that failed this attempt (re-queued or failed).
        results: Per-edition outcomes in processing order.
        recovered_stale: Editions released by the stale sweep before the fetch.
    """

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[ProcessingResult] = field(default_factory=list)
    recovered_stale: int = 0

    def add(self, result: ProcessingResult) -> None:
        """Record one edition's outcome."""
        self.results.append(result)
        self.processed += 1
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1


@dataclass(frozen=True)
class QueueStats:
    """Edition counts per processing status."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0

    @classmethod
    def from_counts(cls, counts: dict[ProcessingStatus, int]) -> "QueueStats":
        """Build stats from a per-status count mapping."""
        pending = counts.get(ProcessingStatus.PENDING, 0)
        processing = counts.get(ProcessingStatus.PROCESSING, 0)
        completed = counts.get(ProcessingStatus.COMPLETED, 0)
        failed = counts.get(ProcessingStatus.FAILED, 0)
        return cls(
            pending=pending,
            processing=processing,
            completed=completed,
            failed=failed,
            total=pending + processing + completed + failed,
        )
