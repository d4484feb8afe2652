"""CLI commands for the bytefeed system.

Every command prints a JSON document to stdout. Logs go to stderr.
"""

import json
import logging
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, NoReturn

import click
import structlog

from bytefeed.config.constants import COMPONENT_CLI, DEFAULT_PAGE_SIZE
from bytefeed.engagement import EngagementService, InvalidVoteError
from bytefeed.extraction import (
    ExtractionPipeline,
    LlmAuthError,
    SourceCategorizer,
    build_provider_chain,
)
from bytefeed.ingest import IngestionGate, SourceResolver, SubscriptionService
from bytefeed.observability.logging import configure_logging
from bytefeed.queue import EditionStateError, ProcessingQueue, QueueStats
from bytefeed.ranker import FeedMode, FeedRanker, InvalidCursorError
from bytefeed.settings import AppSettings, get_settings
from bytefeed.store import StateStore, StateStoreError, StoreMetrics


logger = structlog.get_logger()


@dataclass
class CliContext:
    """Shared state for all commands."""

    settings: AppSettings
    db_path: Path


def _emit(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True, default=str))


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _open_store(ctx: CliContext) -> StateStore:
    return StateStore(db_path=ctx.db_path)


def _build_queue(
    ctx: CliContext,
    store: StateStore,
    pipeline: ExtractionPipeline,
    batch_size: int | None = None,
) -> ProcessingQueue:
    settings = ctx.settings
    return ProcessingQueue(
        store,
        pipeline,
        batch_size=batch_size or settings.queue_batch_size,
        max_attempts=settings.queue_max_attempts,
        item_delay_seconds=settings.queue_item_delay_seconds,
        stale_minutes=settings.queue_stale_minutes,
    )


def _stats_dict(stats: QueueStats) -> dict[str, int]:
    return asdict(stats)


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to SQLite state database (default: BYTEFEED_DB_PATH).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (default: LOG_LEVEL).",
)
@click.pass_context
def cli(ctx: click.Context, db_path: Path | None, log_level: str | None) -> None:
    """Newsletter-to-feed system CLI."""
    settings = get_settings()
    level_name = (log_level or settings.log_level).upper()
    configure_logging(
        level=logging.getLevelNamesMapping().get(level_name, logging.INFO),
        json_format=settings.log_json,
    )
    ctx.obj = CliContext(settings=settings, db_path=db_path or settings.db_path)


# ===== Queue =====


@cli.command("process-queue")
@click.option(
    "--batch-size", type=click.IntRange(min=1), default=None, help="Override batch size."
)
@click.pass_obj
def process_queue(obj: CliContext, batch_size: int | None) -> None:
    """Process one batch of pending editions."""
    log = logger.bind(component=COMPONENT_CLI, command="process-queue")
    try:
        providers = build_provider_chain(obj.settings)
    except LlmAuthError as e:
        log.warning("no_providers_configured")
        _fail(str(e))

    pipeline = ExtractionPipeline(providers)
    with _open_store(obj) as store:
        queue = _build_queue(obj, store, pipeline, batch_size)
        result = queue.process_batch()
        stats = queue.get_queue_stats()

    _emit(
        {
            "processed": result.processed,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "recovered_stale": result.recovered_stale,
            "results": [
                {
                    "edition_id": r.edition_id,
                    "success": r.success,
                    "bytes_extracted": r.bytes_extracted,
                    "status": r.status.value,
                    "error": r.error,
                }
                for r in result.results
            ],
            "queue": _stats_dict(stats),
            "store_metrics": StoreMetrics.get_instance().to_dict(),
        }
    )


@cli.command("queue-stats")
@click.pass_obj
def queue_stats(obj: CliContext) -> None:
    """Show edition counts per processing status."""
    with _open_store(obj) as store:
        stats = QueueStats.from_counts(store.count_editions_by_status())
    _emit(_stats_dict(stats))


@cli.command("reset-failed")
@click.pass_obj
def reset_failed(obj: CliContext) -> None:
    """Return every failed edition to pending."""
    with _open_store(obj) as store:
        queue = _build_queue(obj, store, ExtractionPipeline([]))
        count = queue.reset_failed_editions()
    _emit({"reset": count})


@cli.command()
@click.argument("edition_id")
@click.pass_obj
def requeue(obj: CliContext, edition_id: str) -> None:
    """Re-queue one edition with a fresh attempt budget."""
    with _open_store(obj) as store:
        queue = _build_queue(obj, store, ExtractionPipeline([]))
        try:
            edition = queue.mark_edition_pending(edition_id)
        except (StateStoreError, EditionStateError) as e:
            _fail(str(e))
    _emit(
        {
            "edition_id": edition.id,
            "status": edition.processing_status.value,
            "process_attempts": edition.process_attempts,
        }
    )


# ===== Ingestion =====


@cli.command()
@click.option("--sender", required=True, help="Sender address, e.g. 'Name <a@b.com>'.")
@click.option("--subject", default="", help="Document subject.")
@click.option(
    "--text-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Plain-text body.",
)
@click.option(
    "--html-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="HTML body, converted to text when no plain-text body is given.",
)
@click.option("--user", "user_id", default=None, help="Forwarding user to subscribe.")
@click.option("--screen-junk", is_flag=True, help="Reject documents classified as junk.")
@click.pass_obj
def ingest(
    obj: CliContext,
    sender: str,
    subject: str,
    text_file: Path | None,
    html_file: Path | None,
    user_id: str | None,
    screen_junk: bool,
) -> None:
    """Ingest one document as a pending edition."""
    if text_file is None and html_file is None:
        _fail("Provide --text-file or --html-file")

    text = text_file.read_text(encoding="utf-8") if text_file else ""
    html = html_file.read_text(encoding="utf-8") if html_file else None

    categorizer = None
    if obj.settings.configured_providers():
        categorizer = SourceCategorizer(build_provider_chain(obj.settings))

    with _open_store(obj) as store:
        gate = IngestionGate(
            store,
            SourceResolver(store, categorizer),
            SubscriptionService(store),
            screen_junk=screen_junk,
        )
        result = gate.ingest_document(sender, subject, text, html=html, user_id=user_id)

    _emit(asdict(result))
    if result.rejected_reason:
        sys.exit(1)


@cli.command()
@click.argument("user_id")
@click.argument("source_id")
@click.option("--off", is_flag=True, help="Unsubscribe instead.")
@click.pass_obj
def subscribe(obj: CliContext, user_id: str, source_id: str, off: bool) -> None:
    """Subscribe a user to a source."""
    with _open_store(obj) as store:
        service = SubscriptionService(store)
        try:
            sub = (
                service.unsubscribe(user_id, source_id)
                if off
                else service.subscribe(user_id, source_id)
            )
        except StateStoreError as e:
            _fail(str(e))
    _emit(sub.model_dump(mode="json") if sub else None)


# ===== Feed =====


@cli.command()
@click.argument("user_id")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in FeedMode]),
    default=FeedMode.PERSONALIZED.value,
    show_default=True,
)
@click.option("--page-size", type=int, default=DEFAULT_PAGE_SIZE, show_default=True)
@click.option("--cursor", default=None, help="Cursor from the previous page.")
@click.pass_obj
def feed(
    obj: CliContext, user_id: str, mode: str, page_size: int, cursor: str | None
) -> None:
    """Show one page of a user's feed."""
    with _open_store(obj) as store:
        ranker = FeedRanker(store, diversity_cap=obj.settings.feed_diversity_cap)
        try:
            page = ranker.get_feed_page(user_id, mode, page_size, cursor)
        except InvalidCursorError as e:
            _fail(str(e))
    _emit(page.to_dict())


@cli.command("next")
@click.argument("user_id")
@click.pass_obj
def next_item(obj: CliContext, user_id: str) -> None:
    """Serve the next single item for a user."""
    with _open_store(obj) as store:
        ranker = FeedRanker(store, diversity_cap=obj.settings.feed_diversity_cap)
        result = ranker.get_next_item(user_id)
    _emit(result.to_dict())


# ===== Engagement =====


@cli.command()
@click.argument("user_id")
@click.argument("byte_id")
@click.option(
    "--value",
    type=click.IntRange(-1, 1),
    required=True,
    help="1 upvote, -1 downvote, 0 clear.",
)
@click.pass_obj
def vote(obj: CliContext, user_id: str, byte_id: str, value: int) -> None:
    """Vote on a content byte."""
    with _open_store(obj) as store:
        try:
            byte = EngagementService(store).record_vote(user_id, byte_id, value)
        except (StateStoreError, InvalidVoteError) as e:
            _fail(str(e))
    _emit(
        {
            "byte_id": byte.id,
            "vote": value,
            "upvotes": byte.upvotes,
            "downvotes": byte.downvotes,
            "engagement_score": byte.engagement_score,
            "trending_score": byte.trending_score,
        }
    )


@cli.command()
@click.argument("user_id")
@click.argument("byte_id")
@click.option("--dwell-ms", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--read", "is_read", is_flag=True, help="Mark the byte as read.")
@click.pass_obj
def view(
    obj: CliContext, user_id: str, byte_id: str, dwell_ms: int, is_read: bool
) -> None:
    """Record a view of a content byte."""
    with _open_store(obj) as store:
        try:
            byte = EngagementService(store).record_view(
                user_id, byte_id, dwell_time_ms=dwell_ms, is_read=is_read
            )
        except StateStoreError as e:
            _fail(str(e))
    _emit({"byte_id": byte.id, "view_count": byte.view_count, "is_read": is_read})


@cli.command()
@click.argument("user_id")
@click.argument("byte_id")
@click.pass_obj
def save(obj: CliContext, user_id: str, byte_id: str) -> None:
    """Toggle the saved flag on a content byte."""
    with _open_store(obj) as store:
        try:
            saved = EngagementService(store).toggle_save(user_id, byte_id)
        except StateStoreError as e:
            _fail(str(e))
    _emit({"byte_id": byte_id, "saved": saved})


@cli.command()
@click.argument("user_id")
@click.option("--limit", type=int, default=DEFAULT_PAGE_SIZE, show_default=True)
@click.option("--cursor", default=None, help="Cursor from the previous page.")
@click.pass_obj
def saved(obj: CliContext, user_id: str, limit: int, cursor: str | None) -> None:
    """List a user's saved bytes."""
    with _open_store(obj) as store:
        try:
            page = EngagementService(store).list_saved(user_id, limit, cursor)
        except InvalidCursorError as e:
            _fail(str(e))
    _emit(page.to_dict())


if __name__ == "__main__":
    cli()
