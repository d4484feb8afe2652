"""Integration tests for the processing queue."""

import json
from collections.abc import Callable, Generator
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from bytefeed.extraction.errors import LlmApiError
from bytefeed.extraction.pipeline import ExtractionPipeline
from bytefeed.queue import BatchResult, EditionStateError, ProcessingQueue
from bytefeed.store import (
    EditionNotFoundError,
    ProcessingStatus,
    StateStore,
    StoreMetrics,
)
from tests.helpers.seed import make_edition, make_source
from tests.helpers.time import FIXED_NOW, fixed_clock


GOOD_RESPONSE = json.dumps(
    {
        "bytes": [
            {
                "content": "Attention is the scarcest resource a knowledge worker has.",
                "type": "insight",
                "category": "productivity",
                "qualityScore": 0.85,
            },
            {
                "content": "Schedule deep work before shallow work, every single day.",
                "type": "action",
                "category": "productivity",
                "qualityScore": 0.8,
            },
        ],
        "summary": "On focus.",
        "readTimeMinutes": 3,
        "newsletterInfo": {"name": "Deep Work Weekly", "website": "https://dw.example"},
    }
)


class ScriptedProvider:
    """Provider that raises or returns a fixed response."""

    name = "scripted"

    def __init__(self, response: str | Exception) -> None:
        self.response = response
        self.calls = 0

    def generate_content(self, prompt: str, system_instruction: str | None = None) -> str:
        self.calls += 1
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class SubjectFailingProvider(ScriptedProvider):
    """Provider that fails only for prompts mentioning one subject."""

    def __init__(self, failing_subject: str) -> None:
        super().__init__(GOOD_RESPONSE)
        self.failing_subject = failing_subject

    def generate_content(self, prompt: str, system_instruction: str | None = None) -> str:
        if self.failing_subject in prompt:
            self.calls += 1
            raise LlmApiError("upstream down", status_code=500)
        return super().generate_content(prompt, system_instruction)


class SlowProvider(ScriptedProvider):
    """Provider that lets something else happen before it answers."""

    def __init__(
        self, response: str | Exception, meanwhile: Callable[[], object]
    ) -> None:
        super().__init__(response)
        self.meanwhile = meanwhile

    def generate_content(self, prompt: str, system_instruction: str | None = None) -> str:
        self.meanwhile()
        return super().generate_content(prompt, system_instruction)


@pytest.fixture
def store(tmp_path: Path) -> Generator[StateStore]:
    """Create a connected state store."""
    StoreMetrics.reset()
    with StateStore(tmp_path / "state.sqlite") as store:
        yield store


def _make_queue(
    store: StateStore,
    provider: ScriptedProvider,
    sleep: MagicMock | None = None,
    **kwargs: object,
) -> ProcessingQueue:
    return ProcessingQueue(
        store,
        ExtractionPipeline([provider]),
        max_attempts=3,
        item_delay_seconds=2.0,
        sleep=sleep or MagicMock(),
        clock=fixed_clock,
        **kwargs,  # type: ignore[arg-type]
    )


class TestProcessBatch:
    """Tests for ProcessingQueue.process_batch."""

    @pytest.mark.integration
    def test_success_completes_edition(self, store: StateStore) -> None:
        """Test a successful extraction stores bytes and updates the source."""
        source = make_source(store)
        edition = make_edition(store, source)
        queue = _make_queue(store, ScriptedProvider(GOOD_RESPONSE))

        batch = queue.process_batch()

        assert batch.processed == 1
        assert batch.succeeded == 1
        assert batch.results[0].bytes_extracted == 2
        completed = store.get_edition(edition.id)
        assert completed is not None
        assert completed.processing_status == ProcessingStatus.COMPLETED
        assert completed.summary == "On focus."
        assert completed.read_time_minutes == 3
        assert completed.processed_by_model == "scripted"
        assert len(store.list_bytes_for_edition(edition.id)) == 2

        updated_source = store.get_source(source.id)
        assert updated_source is not None
        assert updated_source.website == "https://dw.example"
        assert updated_source.name == "Deep Work Weekly"
        assert updated_source.total_engagement == 2

    @pytest.mark.integration
    def test_always_failing_edition_fails_after_max_attempts(
        self, store: StateStore
    ) -> None:
        """Test an always-failing edition is retried then marked failed."""
        edition = make_edition(store, make_source(store))
        provider = ScriptedProvider(LlmApiError("upstream down", status_code=500))
        queue = _make_queue(store, provider)

        statuses = []
        for _ in range(3):
            batch = queue.process_batch()
            assert batch.failed == 1
            current = store.get_edition(edition.id)
            assert current is not None
            statuses.append((current.processing_status, current.process_attempts))

        assert statuses == [
            (ProcessingStatus.PENDING, 1),
            (ProcessingStatus.PENDING, 2),
            (ProcessingStatus.FAILED, 3),
        ]
        failed = store.get_edition(edition.id)
        assert failed is not None
        assert failed.processing_error is not None
        assert "upstream down" in failed.processing_error

        assert queue.process_batch().processed == 0
        assert provider.calls == 3

    @pytest.mark.integration
    def test_zero_bytes_still_completes(self, store: StateStore) -> None:
        """Test a response with no valid bytes completes the edition."""
        edition = make_edition(store, make_source(store))
        queue = _make_queue(store, ScriptedProvider('{"bytes": [], "summary": "x"}'))

        queue.process_batch()

        completed = store.get_edition(edition.id)
        assert completed is not None
        assert completed.processing_status == ProcessingStatus.COMPLETED

    @pytest.mark.integration
    def test_delay_between_items(self, store: StateStore) -> None:
        """Test the queue sleeps between items but not before the first."""
        source = make_source(store)
        make_edition(store, source, subject="A")
        make_edition(store, source, subject="B")
        make_edition(store, source, subject="C")
        sleep = MagicMock()

        _make_queue(store, ScriptedProvider(GOOD_RESPONSE), sleep=sleep).process_batch()

        assert sleep.call_count == 2
        sleep.assert_called_with(2.0)

    @pytest.mark.integration
    def test_batch_size_limit(self, store: StateStore) -> None:
        """Test at most batch_size editions are processed per run."""
        source = make_source(store)
        for subject in ("A", "B", "C"):
            make_edition(store, source, subject=subject)

        queue = _make_queue(store, ScriptedProvider(GOOD_RESPONSE), batch_size=2)

        assert queue.process_batch().processed == 2
        assert queue.get_queue_stats().pending == 1

    @pytest.mark.integration
    def test_stale_edition_recovered_and_processed(self, store: StateStore) -> None:
        """Test an abandoned claim is released and processed in the same batch."""
        edition = make_edition(store, make_source(store))
        store.claim_edition(edition.id, FIXED_NOW - timedelta(minutes=30))

        batch = _make_queue(store, ScriptedProvider(GOOD_RESPONSE)).process_batch()

        assert batch.recovered_stale == 1
        assert batch.succeeded == 1
        done = store.get_edition(edition.id)
        assert done is not None
        assert done.processing_status == ProcessingStatus.COMPLETED
        assert done.process_attempts == 2

    @pytest.mark.integration
    def test_recent_processing_not_recovered(self, store: StateStore) -> None:
        """Test an edition claimed moments ago is left alone."""
        edition = make_edition(store, make_source(store))
        store.claim_edition(edition.id, FIXED_NOW - timedelta(minutes=1))

        batch = _make_queue(store, ScriptedProvider(GOOD_RESPONSE)).process_batch()

        assert batch.recovered_stale == 0
        assert batch.processed == 0

    @pytest.mark.integration
    def test_one_failure_does_not_block_the_batch(self, store: StateStore) -> None:
        """Test a failing edition in the middle leaves its neighbours completed."""
        source = make_source(store)
        first = make_edition(
            store,
            source,
            subject="Morning issue",
            received_at=FIXED_NOW - timedelta(hours=3),
        )
        broken = make_edition(
            store,
            source,
            subject="Broken issue",
            received_at=FIXED_NOW - timedelta(hours=2),
        )
        last = make_edition(
            store,
            source,
            subject="Evening issue",
            received_at=FIXED_NOW - timedelta(hours=1),
        )
        queue = _make_queue(store, SubjectFailingProvider("Broken issue"))

        batch = queue.process_batch()

        assert batch.processed == 3
        assert batch.succeeded == 2
        assert batch.failed == 1
        states = {}
        for edition in (first, broken, last):
            current = store.get_edition(edition.id)
            assert current is not None
            states[edition.id] = (current.processing_status, current.process_attempts)
        assert states[first.id] == (ProcessingStatus.COMPLETED, 1)
        assert states[broken.id] == (ProcessingStatus.PENDING, 1)
        assert states[last.id] == (ProcessingStatus.COMPLETED, 1)
        assert len(store.list_bytes_for_edition(broken.id)) == 0


class TestOverlappingRuns:
    """Tests for a run whose claim goes stale while it is still extracting."""

    @staticmethod
    def _later_queue(store: StateStore) -> ProcessingQueue:
        return ProcessingQueue(
            store,
            ExtractionPipeline([ScriptedProvider(GOOD_RESPONSE)]),
            max_attempts=3,
            item_delay_seconds=0,
            sleep=MagicMock(),
            clock=lambda: FIXED_NOW + timedelta(minutes=30),
        )

    @pytest.mark.integration
    def test_late_success_is_dropped(self, store: StateStore) -> None:
        """Test the first run's result is discarded once another run took over."""
        source = make_source(store)
        edition = make_edition(store, source)
        takeover = self._later_queue(store)
        takeover_batches: list[BatchResult] = []
        slow = SlowProvider(
            GOOD_RESPONSE, lambda: takeover_batches.append(takeover.process_batch())
        )

        batch = _make_queue(store, slow).process_batch()

        assert takeover_batches[0].recovered_stale == 1
        assert takeover_batches[0].succeeded == 1
        assert batch.processed == 0
        assert len(store.list_bytes_for_edition(edition.id)) == 2
        current = store.get_edition(edition.id)
        assert current is not None
        assert current.processing_status == ProcessingStatus.COMPLETED
        assert current.process_attempts == 2
        updated_source = store.get_source(source.id)
        assert updated_source is not None
        assert updated_source.total_engagement == 2

    @pytest.mark.integration
    def test_late_failure_does_not_reopen(self, store: StateStore) -> None:
        """Test the first run's failure cannot overwrite the takeover's result."""
        edition = make_edition(store, make_source(store))
        takeover = self._later_queue(store)
        slow = SlowProvider(
            LlmApiError("upstream down", status_code=500),
            takeover.process_batch,
        )

        batch = _make_queue(store, slow).process_batch()

        assert batch.processed == 0
        current = store.get_edition(edition.id)
        assert current is not None
        assert current.processing_status == ProcessingStatus.COMPLETED
        assert current.processing_error is None


class TestQueueAdministration:
    """Tests for stats, reset and requeue."""

    @pytest.mark.integration
    def test_reset_failed(self, store: StateStore) -> None:
        """Test failed editions get a fresh attempt budget."""
        edition = make_edition(store, make_source(store))
        queue = _make_queue(store, ScriptedProvider(LlmApiError("down")))
        for _ in range(3):
            queue.process_batch()
        assert queue.get_queue_stats().failed == 1

        assert queue.reset_failed_editions() == 1

        stats = queue.get_queue_stats()
        assert stats.failed == 0
        assert stats.pending == 1
        reset = store.get_edition(edition.id)
        assert reset is not None
        assert reset.process_attempts == 0

    @pytest.mark.integration
    def test_requeue_completed(self, store: StateStore) -> None:
        """Test a completed edition can be manually requeued."""
        edition = make_edition(store, make_source(store))
        queue = _make_queue(store, ScriptedProvider(GOOD_RESPONSE))
        queue.process_batch()

        requeued = queue.mark_edition_pending(edition.id)

        assert requeued.processing_status == ProcessingStatus.PENDING
        assert requeued.process_attempts == 0

    @pytest.mark.integration
    def test_requeue_pending_is_noop(self, store: StateStore) -> None:
        """Test requeueing a pending edition returns it unchanged."""
        edition = make_edition(store, make_source(store))
        queue = _make_queue(store, ScriptedProvider(GOOD_RESPONSE))

        unchanged = queue.mark_edition_pending(edition.id)

        assert unchanged.id == edition.id
        assert unchanged.processing_status == ProcessingStatus.PENDING
        assert unchanged.process_attempts == 0

    @pytest.mark.integration
    def test_requeue_unknown(self, store: StateStore) -> None:
        """Test requeueing an unknown edition raises."""
        queue = _make_queue(store, ScriptedProvider(GOOD_RESPONSE))
        with pytest.raises(EditionNotFoundError):
            queue.mark_edition_pending("missing")

    @pytest.mark.integration
    def test_state_error_is_exception(self) -> None:
        """Test the state error is a plain exception type."""
        assert issubclass(EditionStateError, Exception)
