"""Unit tests for queue result models."""

import pytest

from bytefeed.queue.models import BatchResult, ProcessingResult, QueueStats
from bytefeed.store.models import ProcessingStatus


class TestBatchResult:
    """Tests for BatchResult aggregation."""

    @pytest.mark.unit
    def test_add_counts(self) -> None:
        """Test successes and failures are counted."""
        batch = BatchResult()
        batch.add(ProcessingResult(edition_id="a", success=True, bytes_extracted=3))
        batch.add(
            ProcessingResult(
                edition_id="b",
                success=False,
                status=ProcessingStatus.PENDING,
                error="boom",
            )
        )

        assert batch.processed == 2
        assert batch.succeeded == 1
        assert batch.failed == 1
        assert [r.edition_id for r in batch.results] == ["a", "b"]


class TestQueueStats:
    """Tests for QueueStats."""

    @pytest.mark.unit
    def test_from_counts(self) -> None:
        """Test missing statuses count as zero and total sums all."""
        stats = QueueStats.from_counts(
            {ProcessingStatus.PENDING: 2, ProcessingStatus.FAILED: 1}
        )

        assert stats.pending == 2
        assert stats.processing == 0
        assert stats.completed == 0
        assert stats.failed == 1
        assert stats.total == 3
