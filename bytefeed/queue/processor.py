"""Processing queue: drives pending editions through extraction."""

import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from bytefeed.config.constants import (
    COMPONENT_QUEUE,
    MAX_PROCESS_ATTEMPTS,
    PROCESSING_DELAY_SECONDS,
    QUEUE_BATCH_SIZE,
    STALE_PROCESSING_MINUTES,
)
from bytefeed.extraction.models import ExtractionResult
from bytefeed.extraction.pipeline import ExtractionPipeline
from bytefeed.observability.logging import bind_run_context, clear_run_context
from bytefeed.queue.models import BatchResult, ProcessingResult, QueueStats
from bytefeed.queue.state_machine import EditionStateMachine
from bytefeed.store.errors import EditionClaimLostError, EditionNotFoundError
from bytefeed.store.models import Edition, PendingEdition, ProcessingStatus, Source
from bytefeed.store.protocols import Repository


logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ProcessingQueue:
    """Bounded-retry batch processor for pending editions.

    Each batch first releases editions stuck in processing, then claims
    and processes up to ``batch_size`` pending editions oldest first,
    strictly one at a time with a fixed delay between items. A failure
    in one edition never aborts the batch.
    """

    def __init__(
        self,
        repository: Repository,
        pipeline: ExtractionPipeline,
        *,
        batch_size: int = QUEUE_BATCH_SIZE,
        max_attempts: int = MAX_PROCESS_ATTEMPTS,
        item_delay_seconds: float = PROCESSING_DELAY_SECONDS,
        stale_minutes: int = STALE_PROCESSING_MINUTES,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the queue.

        Args:
            repository: Persistence collaborator.
            pipeline: Extraction pipeline.
            batch_size: Maximum editions per batch.
            max_attempts: Attempts before an edition is marked failed.
            item_delay_seconds: Pause between editions within a batch.
            stale_minutes: Processing age after which an edition is released.
            sleep: Sleep function (injectable for tests).
            clock: UTC clock (injectable for tests).
        """
        self._repo = repository
        self._pipeline = pipeline
        self._batch_size = batch_size
        self._max_attempts = max_attempts
        self._item_delay = item_delay_seconds
        self._stale_window = timedelta(minutes=stale_minutes)
        self._sleep = sleep
        self._clock = clock
        self._log = logger.bind(component=COMPONENT_QUEUE, subcomponent="processor")

    @property
    def max_attempts(self) -> int:
        """Attempts before an edition is marked failed."""
        return self._max_attempts

    def process_batch(self) -> BatchResult:
        """Run one batch.

        Returns:
            Aggregate counts and per-edition outcomes.
        """
        run_id = str(uuid.uuid4())
        bind_run_context(run_id)
        try:
            return self._run_batch()
        finally:
            clear_run_context()

    def _run_batch(self) -> BatchResult:
        batch = BatchResult()
        cutoff = self._clock() - self._stale_window
        batch.recovered_stale = self._repo.recover_stale_editions(
            cutoff, self._max_attempts
        )
        if batch.recovered_stale:
            self._log.warning("stale_editions_recovered", count=batch.recovered_stale)

        pending = self._repo.fetch_pending_editions(self._batch_size, self._max_attempts)
        self._log.info("batch_started", editions=len(pending))

        for index, item in enumerate(pending):
            if index > 0 and self._item_delay > 0:
                self._sleep(self._item_delay)
            result = self.process_edition(item)
            if result is not None:
                batch.add(result)

        self._log.info(
            "batch_complete",
            processed=batch.processed,
            succeeded=batch.succeeded,
            failed=batch.failed,
        )
        return batch

    def process_edition(self, item: PendingEdition) -> ProcessingResult | None:
        """Claim and process one edition.

        Args:
            item: The pending edition and its source.

        Returns:
            The outcome, or None if another run claimed the edition first
            or took it over after this run's claim went stale.
        """
        edition = item.edition
        machine = EditionStateMachine(edition.id, edition.processing_status)
        machine.transition(ProcessingStatus.PROCESSING)

        claimed = self._repo.claim_edition(edition.id, self._clock())
        if claimed is None:
            self._log.info("edition_claim_lost", edition_id=edition.id)
            return None

        self._log.info(
            "edition_processing_started",
            edition_id=edition.id,
            source_id=item.source.id,
            attempt=claimed.process_attempts,
        )

        try:
            result = self._pipeline.extract(
                claimed.subject,
                claimed.text_content,
                item.source.name,
                extract_source_info=item.source.website is None,
            )
            stored = self._store_result(claimed, item.source, result)
        except EditionClaimLostError:
            self._claim_expired(claimed)
            return None
        except Exception as exc:
            return self._handle_failure(claimed, machine, exc)

        machine.transition(ProcessingStatus.COMPLETED)
        self._log.info(
            "edition_processing_completed",
            edition_id=edition.id,
            bytes_extracted=stored,
            model_used=result.model_used,
        )
        return ProcessingResult(
            edition_id=edition.id,
            success=True,
            bytes_extracted=stored,
            status=ProcessingStatus.COMPLETED,
        )

    def _store_result(
        self, edition: Edition, source: Source, result: ExtractionResult
    ) -> int:
        with self._repo.transaction("complete_edition"):
            stored = self._repo.complete_edition(
                edition.id,
                result.bytes,
                summary=result.summary,
                read_time_minutes=result.read_time_minutes,
                model_used=result.model_used,
                now=self._clock(),
                claimed_at=edition.processing_started_at,
            )
            if source.website is None and result.source_info is not None:
                self._repo.update_source_identity(
                    source.id,
                    name=result.source_info.name,
                    website=result.source_info.website,
                )
            if stored:
                self._repo.increment_source_engagement(source.id, len(stored))
        return len(stored)

    def _claim_expired(self, edition: Edition) -> None:
        self._log.warning(
            "edition_claim_expired",
            edition_id=edition.id,
            attempt=edition.process_attempts,
        )

    def _handle_failure(
        self,
        edition: Edition,
        machine: EditionStateMachine,
        exc: Exception,
    ) -> ProcessingResult | None:
        error = str(exc) or type(exc).__name__
        if edition.process_attempts >= self._max_attempts:
            status = ProcessingStatus.FAILED
        else:
            status = ProcessingStatus.PENDING

        machine.transition(status)
        try:
            self._repo.update_edition_status(
                edition.id,
                status,
                error=error,
                claimed_at=edition.processing_started_at,
            )
        except EditionClaimLostError:
            self._claim_expired(edition)
            return None

        self._log.warning(
            "edition_processing_failed",
            edition_id=edition.id,
            attempt=edition.process_attempts,
            max_attempts=self._max_attempts,
            status=status.value,
            error_type=type(exc).__name__,
            error=error,
        )
        return ProcessingResult(
            edition_id=edition.id,
            success=False,
            status=status,
            error=error,
        )

    def get_queue_stats(self) -> QueueStats:
        """Count editions per processing status."""
        return QueueStats.from_counts(self._repo.count_editions_by_status())

    def reset_failed_editions(self) -> int:
        """Return every failed edition to pending with a fresh attempt budget.

        Returns:
            Number of editions reset.
        """
        count = self._repo.reset_failed_editions()
        self._log.info("failed_editions_reset", count=count)
        return count

    def mark_edition_pending(self, edition_id: str) -> Edition:
        """Manually re-queue one edition with a fresh attempt budget.

        Args:
            edition_id: The edition to re-queue.

        Returns:
            The updated edition.

        Raises:
            EditionNotFoundError: If the edition does not exist.
        """
        with self._repo.transaction("mark_edition_pending"):
            edition = self._repo.get_edition(edition_id)
            if edition is None:
                raise EditionNotFoundError(edition_id)
            if edition.processing_status == ProcessingStatus.PENDING:
                return edition

            machine = EditionStateMachine(edition.id, edition.processing_status)
            machine.transition(ProcessingStatus.PENDING)
            updated = self._repo.update_edition_status(
                edition_id, ProcessingStatus.PENDING, reset_attempts=True
            )

        self._log.info(
            "edition_requeued",
            edition_id=edition_id,
            from_state=edition.processing_status.value,
        )
        return updated
