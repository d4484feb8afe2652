"""SQLite state store implementation."""

import json
import sqlite3
import time
import uuid
from collections.abc import Generator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from bytefeed.config.constants import (
    COMPONENT_STORE,
    ENGAGEMENT_HALF_SATURATION,
    POPULAR_ENGAGEMENT_WEIGHT,
    POPULAR_QUALITY_WEIGHT,
)
from bytefeed.store.errors import (
    ConnectionError as StoreConnectionError,
    DuplicateFingerprintError,
    EditionClaimLostError,
    EditionNotFoundError,
    SourceNotFoundError,
    StateStoreError,
)
from bytefeed.store.metrics import StoreMetrics, TransactionContext
from bytefeed.store.migrations import CURRENT_VERSION, MigrationManager
from bytefeed.store.models import (
    ByteCategory,
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
    UserProfile,
)


logger = structlog.get_logger()

_POPULAR_SCORE_SQL = (
    f"({POPULAR_QUALITY_WEIGHT!r} * b.quality_score + {POPULAR_ENGAGEMENT_WEIGHT!r} * "
    f"(MAX(b.engagement_score, 0) / "
    f"(MAX(b.engagement_score, 0) + {ENGAGEMENT_HALF_SATURATION!r})))"
)

# Sort columns per order, all descending, with id appended as the tiebreaker.
_ORDER_COLUMNS: dict[CandidateOrder, tuple[str, ...]] = {
    CandidateOrder.POPULAR: ("popular_score",),
    CandidateOrder.TRENDING: ("trending_score",),
    CandidateOrder.RECENT: ("created_at",),
    CandidateOrder.QUALITY: ("quality_score", "engagement_score", "created_at"),
}


def _ts(value: datetime) -> str:
    """Serialize a timestamp so that string order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _claim_guard(claimed_at: datetime | None) -> tuple[str, tuple[str, ...]]:
    """Build the WHERE suffix that pins a write to one processing claim."""
    if claimed_at is None:
        return "", ()
    return (
        " AND processing_status = 'processing' AND processing_started_at = ?",
        (_ts(claimed_at),),
    )


class StateStore:
    """SQLite state store for sources, editions, bytes, and user state.

    Provides transactional APIs shared by ingestion, the processing queue,
    the feed ranker, and the engagement loop. Uses WAL mode and explicit
    ``BEGIN IMMEDIATE`` transactions so read-modify-write sequences are
    serialized across connections.
    """

    def __init__(self, db_path: Path | str, run_id: str | None = None) -> None:
        """Initialize the state store.

        Args:
            db_path: Path to SQLite database file.
            run_id: Optional run ID for logging context.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._run_id = run_id or str(uuid.uuid4())
        self._conn: sqlite3.Connection | None = None
        self._tx: TransactionContext | None = None
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(
            component=COMPONENT_STORE,
            run_id=self._run_id,
            db_path=str(self._db_path),
        )

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.
        """
        if self._conn is not None:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._log.info("connecting_to_database")

        # Autocommit mode; transactions are opened explicitly.
        self._conn = sqlite3.connect(
            str(self._db_path), isolation_level=None, timeout=30.0
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        migration_mgr = MigrationManager(self._conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.info("database_closed")

    def __enter__(self) -> "StateStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def transaction(self, operation: str) -> Generator[TransactionContext]:
        """Run a block atomically, joining an enclosing transaction if any.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.
        """
        if self._tx is not None:
            yield self._tx
            return

        conn = self._ensure_connected()
        tx_id = str(uuid.uuid4())[:8]
        start_ns = time.perf_counter_ns()
        ctx = TransactionContext(
            tx_id=tx_id, start_time_ns=start_ns, operation=operation
        )

        conn.execute("BEGIN IMMEDIATE")
        self._tx = ctx
        self._log.debug("transaction_started", tx_id=tx_id, op=operation)

        try:
            yield ctx
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._log.error(
                "transaction_failed",
                tx_id=tx_id,
                op=operation,
                duration_ms=round(duration_ms, 2),
            )
            raise
        finally:
            self._tx = None

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_tx_duration(duration_ms)
        self._log.debug(
            "transaction_complete",
            tx_id=tx_id,
            op=operation,
            affected_rows=ctx.affected_rows,
            duration_ms=round(duration_ms, 2),
        )

    # ===== Row Mapping =====

    @staticmethod
    def _row_to_source(row: sqlite3.Row) -> Source:
        return Source(
            id=row["id"],
            name=row["name"],
            sender_email=row["sender_email"],
            sender_domain=row["sender_domain"],
            description=row["description"],
            category=row["category"],
            tags=json.loads(row["tags_json"]),
            website=row["website"],
            is_curated=bool(row["is_curated"]),
            is_verified=bool(row["is_verified"]),
            subscriber_count=row["subscriber_count"],
            total_engagement=max(row["total_engagement"], 0),
            avg_engagement_score=row["avg_engagement_score"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_edition(row: sqlite3.Row) -> Edition:
        return Edition(
            id=row["id"],
            source_id=row["source_id"],
            subject=row["subject"],
            raw_content=row["raw_content"],
            text_content=row["text_content"],
            fingerprint=row["fingerprint"],
            processing_status=ProcessingStatus(row["processing_status"]),
            process_attempts=row["process_attempts"],
            received_at=datetime.fromisoformat(row["received_at"]),
            processing_started_at=_dt(row["processing_started_at"]),
            processed_at=_dt(row["processed_at"]),
            summary=row["summary"],
            read_time_minutes=row["read_time_minutes"],
            processed_by_model=row["processed_by_model"],
            processing_error=row["processing_error"],
        )

    @staticmethod
    def _row_to_byte(row: sqlite3.Row) -> ContentByte:
        return ContentByte(
            id=row["id"],
            edition_id=row["edition_id"],
            source_id=row["source_id"],
            content=row["content"],
            byte_type=row["byte_type"],
            author=row["author"],
            context=row["context"],
            category=row["category"],
            quality_score=row["quality_score"],
            upvotes=row["upvotes"],
            downvotes=row["downvotes"],
            view_count=row["view_count"],
            save_count=row["save_count"],
            share_count=row["share_count"],
            engagement_score=row["engagement_score"],
            trending_score=row["trending_score"],
            is_sponsored=bool(row["is_sponsored"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_engagement(row: sqlite3.Row) -> UserEngagement:
        return UserEngagement(
            user_id=row["user_id"],
            byte_id=row["byte_id"],
            vote=row["vote"],
            is_saved=bool(row["is_saved"]),
            saved_at=_dt(row["saved_at"]),
            view_count=row["view_count"],
            total_dwell_time_ms=row["total_dwell_time_ms"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # ===== Users =====

    def get_user_profile(self, user_id: str) -> UserProfile | None:
        """Get a user's feed flags.

        Args:
            user_id: User identifier.

        Returns:
            The profile, or None if the user has never been registered.
        """
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM users WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return UserProfile(
            user_id=row["user_id"],
            enable_recommendations=bool(row["enable_recommendations"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def upsert_user_profile(
        self, user_id: str, *, enable_recommendations: bool
    ) -> UserProfile:
        """Create or update a user's feed flags."""
        now = datetime.now(UTC)
        with self.transaction("upsert_user_profile") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT INTO users (user_id, enable_recommendations, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    enable_recommendations = excluded.enable_recommendations
                """,
                (user_id, int(enable_recommendations), _ts(now)),
            )
            ctx.add_affected_rows(cursor.rowcount)

        profile = self.get_user_profile(user_id)
        if profile is None:
            msg = f"User profile not found after upsert: {user_id}"
            raise StateStoreError(msg)
        return profile

    # ===== Sources =====

    def get_source(self, source_id: str) -> Source | None:
        """Get a source by ID."""
        conn = self._ensure_connected()
        row = conn.execute("SELECT * FROM sources WHERE id = ?", (source_id,)).fetchone()
        return self._row_to_source(row) if row else None

    def get_source_by_sender(self, sender_email: str) -> Source | None:
        """Get a source by its sender identity."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM sources WHERE sender_email = ?", (sender_email,)
        ).fetchone()
        return self._row_to_source(row) if row else None

    def create_source(
        self,
        *,
        name: str,
        sender_email: str,
        sender_domain: str = "",
        category: ByteCategory = ByteCategory.GENERAL,
        tags: Sequence[str] = (),
        description: str | None = None,
        website: str | None = None,
        now: datetime | None = None,
    ) -> Source:
        """Create a source, or return the one that already owns the sender.

        Concurrent resolutions of the same sender converge on a single row
        through the unique sender constraint.

        Args:
            name: Display name.
            sender_email: Sender identity (unique).
            sender_domain: Domain part of the sender identity.
            category: Topic category.
            tags: Short descriptive tags.
            description: Optional description.
            website: Optional subscription URL.
            now: Creation timestamp.

        Returns:
            The stored source for this sender.
        """
        now = now or datetime.now(UTC)
        with self.transaction("create_source") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT INTO sources (
                    id, name, sender_email, sender_domain, description,
                    category, tags_json, website, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(sender_email) DO NOTHING
                """,
                (
                    str(uuid.uuid4()),
                    name,
                    sender_email,
                    sender_domain,
                    description,
                    category.value,
                    json.dumps(list(tags)),
                    website,
                    _ts(now),
                ),
            )
            ctx.add_affected_rows(cursor.rowcount)

        source = self.get_source_by_sender(sender_email)
        if source is None:
            raise SourceNotFoundError(sender_email)
        return source

    def update_source_identity(
        self,
        source_id: str,
        *,
        name: str | None = None,
        website: str | None = None,
        description: str | None = None,
    ) -> Source:
        """Overwrite identity fields that are provided.

        Raises:
            SourceNotFoundError: If the source does not exist.
        """
        with self.transaction("update_source_identity") as ctx:
            cursor = self._ensure_connected().execute(
                """
                UPDATE sources SET
                    name = COALESCE(?, name),
                    website = COALESCE(?, website),
                    description = COALESCE(?, description)
                WHERE id = ?
                """,
                (name, website, description, source_id),
            )
            ctx.add_affected_rows(cursor.rowcount)

        source = self.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        return source

    def increment_source_engagement(self, source_id: str, amount: int) -> None:
        """Add to a source's total engagement counter."""
        with self.transaction("increment_source_engagement") as ctx:
            cursor = self._ensure_connected().execute(
                """
                UPDATE sources SET total_engagement = MAX(0, total_engagement + ?)
                WHERE id = ?
                """,
                (amount, source_id),
            )
            ctx.add_affected_rows(cursor.rowcount)

    def refresh_source_engagement_score(self, source_id: str) -> float:
        """Recompute a source's average byte engagement score.

        Returns:
            The new average (0.0 for a source without bytes).
        """
        with self.transaction("refresh_source_engagement_score") as ctx:
            conn = self._ensure_connected()
            row = conn.execute(
                "SELECT AVG(engagement_score) FROM content_bytes WHERE source_id = ?",
                (source_id,),
            ).fetchone()
            average = float(row[0]) if row[0] is not None else 0.0
            cursor = conn.execute(
                "UPDATE sources SET avg_engagement_score = ? WHERE id = ?",
                (average, source_id),
            )
            ctx.add_affected_rows(cursor.rowcount)
        return average

    def adjust_subscriber_count(self, source_id: str, delta: int) -> None:
        """Change a source's subscriber count, never dropping below zero."""
        with self.transaction("adjust_subscriber_count") as ctx:
            cursor = self._ensure_connected().execute(
                """
                UPDATE sources SET subscriber_count = MAX(0, subscriber_count + ?)
                WHERE id = ?
                """,
                (delta, source_id),
            )
            ctx.add_affected_rows(cursor.rowcount)

    # ===== Subscriptions =====

    def get_subscription(self, user_id: str, source_id: str) -> Subscription | None:
        """Get the subscription linking a user and a source."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM user_subscriptions WHERE user_id = ? AND source_id = ?",
            (user_id, source_id),
        ).fetchone()
        if row is None:
            return None
        return Subscription(
            user_id=row["user_id"],
            source_id=row["source_id"],
            is_active=bool(row["is_active"]),
            discovery_method=row["discovery_method"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def upsert_subscription(
        self,
        user_id: str,
        source_id: str,
        *,
        is_active: bool,
        discovery_method: str = "search",
        now: datetime | None = None,
    ) -> Subscription:
        """Create or toggle a subscription."""
        now = now or datetime.now(UTC)
        with self.transaction("upsert_subscription") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT INTO user_subscriptions (
                    user_id, source_id, is_active, discovery_method, created_at
                ) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, source_id) DO UPDATE SET
                    is_active = excluded.is_active
                """,
                (user_id, source_id, int(is_active), discovery_method, _ts(now)),
            )
            ctx.add_affected_rows(cursor.rowcount)

        subscription = self.get_subscription(user_id, source_id)
        if subscription is None:
            msg = f"Subscription not found after upsert: {user_id}/{source_id}"
            raise StateStoreError(msg)
        return subscription

    def list_active_subscription_source_ids(self, user_id: str) -> list[str]:
        """List the sources a user is actively subscribed to."""
        conn = self._ensure_connected()
        cursor = conn.execute(
            """
            SELECT source_id FROM user_subscriptions
            WHERE user_id = ? AND is_active = 1
            ORDER BY source_id
            """,
            (user_id,),
        )
        return [row["source_id"] for row in cursor.fetchall()]

    # ===== Editions =====

    def get_edition(self, edition_id: str) -> Edition | None:
        """Get an edition by ID."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM editions WHERE id = ?", (edition_id,)
        ).fetchone()
        return self._row_to_edition(row) if row else None

    def get_edition_by_fingerprint(self, fingerprint: str) -> Edition | None:
        """Get the edition owning a content fingerprint."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM editions WHERE fingerprint = ?", (fingerprint,)
        ).fetchone()
        return self._row_to_edition(row) if row else None

    def create_edition(
        self,
        *,
        source_id: str,
        subject: str,
        text_content: str,
        fingerprint: str,
        raw_content: str = "",
        received_at: datetime | None = None,
    ) -> Edition:
        """Insert a new pending edition.

        Args:
            source_id: Owning source.
            subject: Document subject.
            text_content: Plain-text body.
            fingerprint: Content fingerprint (unique).
            raw_content: Original body as received.
            received_at: Receipt timestamp.

        Returns:
            The created edition.

        Raises:
            DuplicateFingerprintError: If the fingerprint already exists.
        """
        edition_id = str(uuid.uuid4())
        received_at = received_at or datetime.now(UTC)

        try:
            with self.transaction("create_edition") as ctx:
                self._ensure_connected().execute(
                    """
                    INSERT INTO editions (
                        id, source_id, subject, raw_content, text_content,
                        fingerprint, processing_status, process_attempts,
                        received_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?)
                    """,
                    (
                        edition_id,
                        source_id,
                        subject,
                        raw_content,
                        text_content,
                        fingerprint,
                        ProcessingStatus.PENDING.value,
                        _ts(received_at),
                    ),
                )
                ctx.add_affected_rows(1)
        except sqlite3.IntegrityError as e:
            if "editions.fingerprint" not in str(e):
                raise
            self._metrics.record_duplicate_fingerprint()
            raise DuplicateFingerprintError(fingerprint) from e

        self._metrics.record_edition_created()
        edition = self.get_edition(edition_id)
        if edition is None:
            raise EditionNotFoundError(edition_id)
        return edition

    def count_editions_by_status(self) -> dict[ProcessingStatus, int]:
        """Count editions per processing status.

        Returns:
            Mapping with an entry for every status.
        """
        conn = self._ensure_connected()
        counts = dict.fromkeys(ProcessingStatus, 0)
        cursor = conn.execute(
            """
            SELECT processing_status, COUNT(*) AS n
            FROM editions GROUP BY processing_status
            """
        )
        for row in cursor.fetchall():
            counts[ProcessingStatus(row["processing_status"])] = row["n"]
        return counts

    def recover_stale_editions(self, cutoff: datetime, max_attempts: int) -> int:
        """Release editions stuck in processing since before ``cutoff``.

        Editions that still have attempts left go back to pending; the
        rest become failed.

        Args:
            cutoff: Processing start times older than this are stale.
            max_attempts: Attempt limit.

        Returns:
            Number of editions released.
        """
        with self.transaction("recover_stale_editions") as ctx:
            cursor = self._ensure_connected().execute(
                """
                UPDATE editions SET
                    processing_status = CASE
                        WHEN process_attempts >= ? THEN 'failed' ELSE 'pending'
                    END,
                    processing_error = 'Processing abandoned before completion'
                WHERE processing_status = 'processing'
                  AND (processing_started_at IS NULL OR processing_started_at < ?)
                """,
                (max_attempts, _ts(cutoff)),
            )
            recovered = cursor.rowcount
            ctx.add_affected_rows(recovered)

        if recovered:
            self._metrics.record_stale_recovered(recovered)
        return recovered

    def fetch_pending_editions(
        self, limit: int, max_attempts: int
    ) -> list[PendingEdition]:
        """Fetch the oldest pending editions that still have attempts left.

        Args:
            limit: Maximum editions to return.
            max_attempts: Attempt limit.

        Returns:
            Editions in receipt order, each with its source.
        """
        conn = self._ensure_connected()
        cursor = conn.execute(
            """
            SELECT e.*, s.id AS s_id FROM editions e
            JOIN sources s ON s.id = e.source_id
            WHERE e.processing_status = 'pending' AND e.process_attempts < ?
            ORDER BY e.received_at ASC, e.id ASC
            LIMIT ?
            """,
            (max_attempts, limit),
        )
        result: list[PendingEdition] = []
        for row in cursor.fetchall():
            source = self.get_source(row["s_id"])
            if source is None:
                raise SourceNotFoundError(row["s_id"])
            result.append(
                PendingEdition(edition=self._row_to_edition(row), source=source)
            )
        return result

    def claim_edition(self, edition_id: str, now: datetime) -> Edition | None:
        """Move an edition from pending to processing if still pending.

        Increments the attempt counter and stamps the processing start.

        Returns:
            The claimed edition, or None if another worker claimed it first.
        """
        with self.transaction("claim_edition") as ctx:
            cursor = self._ensure_connected().execute(
                """
                UPDATE editions SET
                    processing_status = 'processing',
                    processing_started_at = ?,
                    process_attempts = process_attempts + 1
                WHERE id = ? AND processing_status = 'pending'
                """,
                (_ts(now), edition_id),
            )
            ctx.add_affected_rows(cursor.rowcount)
            if cursor.rowcount == 0:
                return None
        return self.get_edition(edition_id)

    def complete_edition(
        self,
        edition_id: str,
        drafts: Sequence[ContentByteDraft],
        *,
        summary: str | None,
        read_time_minutes: int,
        model_used: str,
        now: datetime,
        claimed_at: datetime | None = None,
    ) -> list[ContentByte]:
        """Store extracted bytes and mark the edition completed.

        Args:
            edition_id: The edition being completed.
            drafts: Validated bytes to insert.
            summary: Edition summary.
            read_time_minutes: Estimated read time.
            model_used: Provider/model that produced the bytes.
            now: Completion timestamp (also the bytes' creation time).
            claimed_at: Processing start of the caller's claim. When set,
                the write only happens while that claim is still current.

        Returns:
            The inserted bytes.

        Raises:
            EditionNotFoundError: If the edition does not exist.
            EditionClaimLostError: If ``claimed_at`` no longer matches the
                edition's current claim.
        """
        guard, guard_params = _claim_guard(claimed_at)
        with self.transaction("complete_edition") as ctx:
            edition = self.get_edition(edition_id)
            if edition is None:
                raise EditionNotFoundError(edition_id)

            conn = self._ensure_connected()
            cursor = conn.execute(
                f"""
                UPDATE editions SET
                    processing_status = 'completed',
                    processed_at = ?,
                    summary = ?,
                    read_time_minutes = ?,
                    processed_by_model = ?,
                    processing_error = NULL
                WHERE id = ?{guard}
                """,
                (
                    _ts(now),
                    summary,
                    read_time_minutes,
                    model_used,
                    edition_id,
                    *guard_params,
                ),
            )
            if cursor.rowcount == 0:
                raise EditionClaimLostError(edition_id)
            ctx.add_affected_rows(cursor.rowcount)

            stored: list[ContentByte] = []
            for draft in drafts:
                byte = ContentByte(
                    id=str(uuid.uuid4()),
                    edition_id=edition_id,
                    source_id=edition.source_id,
                    content=draft.content,
                    byte_type=draft.byte_type,
                    author=draft.author,
                    context=draft.context,
                    category=draft.category,
                    quality_score=draft.quality_score,
                    is_sponsored=draft.is_sponsored,
                    created_at=now,
                )
                conn.execute(
                    """
                    INSERT INTO content_bytes (
                        id, edition_id, source_id, content, byte_type, author,
                        context, category, quality_score, is_sponsored, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        byte.id,
                        byte.edition_id,
                        byte.source_id,
                        byte.content,
                        byte.byte_type.value,
                        byte.author,
                        byte.context,
                        byte.category.value,
                        byte.quality_score,
                        int(byte.is_sponsored),
                        _ts(now),
                    ),
                )
                stored.append(byte)
            ctx.add_affected_rows(len(stored))

        self._metrics.record_bytes_inserted(len(stored))
        return stored

    def update_edition_status(
        self,
        edition_id: str,
        status: ProcessingStatus,
        *,
        error: str | None = None,
        reset_attempts: bool = False,
        claimed_at: datetime | None = None,
    ) -> Edition:
        """Set an edition's status and error message.

        Args:
            edition_id: The edition to update.
            status: New status.
            error: Error message to record (None clears it).
            reset_attempts: Also zero the attempt counter.
            claimed_at: Processing start of the caller's claim. When set,
                the write only happens while that claim is still current.

        Returns:
            The updated edition.

        Raises:
            EditionNotFoundError: If the edition does not exist.
            EditionClaimLostError: If ``claimed_at`` no longer matches the
                edition's current claim.
        """
        guard, guard_params = _claim_guard(claimed_at)
        with self.transaction("update_edition_status") as ctx:
            cursor = self._ensure_connected().execute(
                f"""
                UPDATE editions SET
                    processing_status = ?,
                    processing_error = ?,
                    process_attempts = CASE WHEN ? THEN 0 ELSE process_attempts END
                WHERE id = ?{guard}
                """,
                (status.value, error, int(reset_attempts), edition_id, *guard_params),
            )
            ctx.add_affected_rows(cursor.rowcount)
            edition = self.get_edition(edition_id)
            if edition is None:
                raise EditionNotFoundError(edition_id)
            if cursor.rowcount == 0:
                raise EditionClaimLostError(edition_id)
        return edition

    def reset_failed_editions(self) -> int:
        """Return every failed edition to pending with a fresh attempt budget.

        Returns:
            Number of editions reset.
        """
        with self.transaction("reset_failed_editions") as ctx:
            cursor = self._ensure_connected().execute(
                """
                UPDATE editions SET
                    processing_status = 'pending',
                    process_attempts = 0,
                    processing_error = NULL
                WHERE processing_status = 'failed'
                """
            )
            ctx.add_affected_rows(cursor.rowcount)
        return cursor.rowcount

    # ===== Content Bytes =====

    def get_content_byte(self, byte_id: str) -> ContentByte | None:
        """Get a content byte by ID."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM content_bytes WHERE id = ?", (byte_id,)
        ).fetchone()
        return self._row_to_byte(row) if row else None

    def list_bytes_for_edition(self, edition_id: str) -> list[ContentByte]:
        """List an edition's bytes in insertion order."""
        conn = self._ensure_connected()
        cursor = conn.execute(
            "SELECT * FROM content_bytes WHERE edition_id = ? ORDER BY rowid",
            (edition_id,),
        )
        return [self._row_to_byte(row) for row in cursor.fetchall()]

    def adjust_byte_counters(
        self,
        byte_id: str,
        *,
        upvotes: int = 0,
        downvotes: int = 0,
        views: int = 0,
        saves: int = 0,
        shares: int = 0,
    ) -> None:
        """Apply deltas to a byte's engagement counters, flooring at zero."""
        with self.transaction("adjust_byte_counters") as ctx:
            cursor = self._ensure_connected().execute(
                """
                UPDATE content_bytes SET
                    upvotes = MAX(0, upvotes + ?),
                    downvotes = MAX(0, downvotes + ?),
                    view_count = MAX(0, view_count + ?),
                    save_count = MAX(0, save_count + ?),
                    share_count = MAX(0, share_count + ?)
                WHERE id = ?
                """,
                (upvotes, downvotes, views, saves, shares, byte_id),
            )
            ctx.add_affected_rows(cursor.rowcount)

    def update_byte_scores(
        self, byte_id: str, *, engagement_score: float, trending_score: float
    ) -> None:
        """Store recomputed derived scores for a byte."""
        with self.transaction("update_byte_scores") as ctx:
            cursor = self._ensure_connected().execute(
                """
                UPDATE content_bytes SET engagement_score = ?, trending_score = ?
                WHERE id = ?
                """,
                (engagement_score, trending_score, byte_id),
            )
            ctx.add_affected_rows(cursor.rowcount)

    # ===== Feed Candidates =====

    def _candidate_filters(self, query: CandidateQuery) -> tuple[list[str], list[Any]]:
        clauses = [
            """NOT EXISTS (
                SELECT 1 FROM user_engagements e
                WHERE e.user_id = ? AND e.byte_id = b.id
                  AND (e.vote != 0 OR e.is_saved = 1)
            )""",
        ]
        params: list[Any] = [query.user_id]

        if query.exclude_shown:
            clauses.append(
                """NOT EXISTS (
                    SELECT 1 FROM content_history h
                    WHERE h.user_id = ? AND h.byte_id = b.id
                )"""
            )
        else:
            clauses.append(
                """NOT EXISTS (
                    SELECT 1 FROM content_history h
                    WHERE h.user_id = ? AND h.byte_id = b.id AND h.is_read = 1
                )"""
            )
        params.append(query.user_id)

        if not query.include_sponsored:
            clauses.append("b.is_sponsored = 0")
        if query.created_after is not None:
            clauses.append("b.created_at >= ?")
            params.append(_ts(query.created_after))
        if query.source_ids is not None:
            if not query.source_ids:
                clauses.append("0")
            else:
                marks = ", ".join("?" for _ in query.source_ids)
                clauses.append(f"b.source_id IN ({marks})")
                params.extend(query.source_ids)

        return clauses, params

    def query_feed_candidates(self, query: CandidateQuery) -> list[FeedCandidate]:
        """Fetch eligible bytes for a user in a stable descending order.

        Bytes the user has read, voted on, or saved are never returned.
        Pagination is keyset-based: ``query.after`` is the ``sort_key`` of
        the last candidate already consumed.

        Args:
            query: Candidate query parameters.

        Returns:
            Up to ``query.limit`` candidates with their sort keys.
        """
        columns = (*_ORDER_COLUMNS[query.order], "id")
        clauses, params = self._candidate_filters(query)

        outer_where = ""
        if query.after is not None:
            if len(query.after) != len(columns):
                msg = f"Sort key has {len(query.after)} values, expected {len(columns)}"
                raise ValueError(msg)
            lhs = ", ".join(columns)
            rhs = ", ".join("?" for _ in columns)
            outer_where = f"WHERE ({lhs}) < ({rhs})"
            params.extend(query.after)

        order_by = ", ".join(f"{c} DESC" for c in columns)
        sql = f"""
            SELECT * FROM (
                SELECT b.*,
                    s.name AS source_name,
                    s.is_verified AS source_is_verified,
                    s.website AS source_website,
                    {_POPULAR_SCORE_SQL} AS popular_score
                FROM content_bytes b
                JOIN sources s ON s.id = b.source_id
                WHERE {" AND ".join(clauses)}
            ) {outer_where}
            ORDER BY {order_by}
            LIMIT ?
        """
        params.append(query.limit)

        cursor = self._ensure_connected().execute(sql, params)
        return [
            FeedCandidate(
                byte=self._row_to_byte(row),
                source_name=row["source_name"],
                source_is_verified=bool(row["source_is_verified"]),
                source_website=row["source_website"],
                sort_key=tuple(row[c] for c in columns),
            )
            for row in cursor.fetchall()
        ]

    def count_feed_candidates(self, query: CandidateQuery) -> int:
        """Count the candidates ``query`` would return without a limit or key."""
        clauses, params = self._candidate_filters(query)
        sql = f"""
            SELECT COUNT(*) FROM content_bytes b
            WHERE {" AND ".join(clauses)}
        """
        row = self._ensure_connected().execute(sql, params).fetchone()
        return int(row[0])

    # ===== Engagement =====

    def get_engagement(self, user_id: str, byte_id: str) -> UserEngagement | None:
        """Get a user's engagement record for a byte."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM user_engagements WHERE user_id = ? AND byte_id = ?",
            (user_id, byte_id),
        ).fetchone()
        return self._row_to_engagement(row) if row else None

    def upsert_engagement(self, engagement: UserEngagement) -> None:
        """Write the full state of an engagement record."""
        with self.transaction("upsert_engagement") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT INTO user_engagements (
                    user_id, byte_id, vote, is_saved, saved_at, view_count,
                    total_dwell_time_ms, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, byte_id) DO UPDATE SET
                    vote = excluded.vote,
                    is_saved = excluded.is_saved,
                    saved_at = excluded.saved_at,
                    view_count = excluded.view_count,
                    total_dwell_time_ms = excluded.total_dwell_time_ms,
                    updated_at = excluded.updated_at
                """,
                (
                    engagement.user_id,
                    engagement.byte_id,
                    engagement.vote,
                    int(engagement.is_saved),
                    _ts(engagement.saved_at) if engagement.saved_at else None,
                    engagement.view_count,
                    engagement.total_dwell_time_ms,
                    _ts(engagement.created_at),
                    _ts(engagement.updated_at),
                ),
            )
            ctx.add_affected_rows(cursor.rowcount)

    def list_saved_bytes(
        self, user_id: str, limit: int, after: tuple[str, str] | None = None
    ) -> list[FeedCandidate]:
        """List a user's saved bytes, most recently saved first.

        Args:
            user_id: User identifier.
            limit: Maximum rows.
            after: ``(saved_at, byte_id)`` key of the last row consumed.

        Returns:
            Candidates whose sort key is ``(saved_at, byte_id)``.
        """
        params: list[Any] = [user_id]
        keyset = ""
        if after is not None:
            keyset = "AND (e.saved_at, b.id) < (?, ?)"
            params.extend(after)
        params.append(limit)

        cursor = self._ensure_connected().execute(
            f"""
            SELECT b.*, e.saved_at AS saved_at,
                s.name AS source_name,
                s.is_verified AS source_is_verified,
                s.website AS source_website
            FROM user_engagements e
            JOIN content_bytes b ON b.id = e.byte_id
            JOIN sources s ON s.id = b.source_id
            WHERE e.user_id = ? AND e.is_saved = 1 {keyset}
            ORDER BY e.saved_at DESC, b.id DESC
            LIMIT ?
            """,
            params,
        )
        return [
            FeedCandidate(
                byte=self._row_to_byte(row),
                source_name=row["source_name"],
                source_is_verified=bool(row["source_is_verified"]),
                source_website=row["source_website"],
                sort_key=(row["saved_at"], row["id"]),
            )
            for row in cursor.fetchall()
        ]

    # ===== Preferences =====

    def get_preferences(self, user_id: str) -> dict[ByteCategory, float]:
        """Get a user's category weights."""
        conn = self._ensure_connected()
        cursor = conn.execute(
            "SELECT category, weight FROM user_preferences WHERE user_id = ?",
            (user_id,),
        )
        prefs: dict[ByteCategory, float] = {}
        for row in cursor.fetchall():
            try:
                prefs[ByteCategory(row["category"])] = row["weight"]
            except ValueError:
                continue
        return prefs

    def upsert_preference(
        self,
        user_id: str,
        category: ByteCategory,
        weight: float,
        now: datetime | None = None,
    ) -> None:
        """Set a user's weight for one category."""
        now = now or datetime.now(UTC)
        with self.transaction("upsert_preference") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT INTO user_preferences (user_id, category, weight, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, category) DO UPDATE SET
                    weight = excluded.weight,
                    updated_at = excluded.updated_at
                """,
                (user_id, category.value, weight, _ts(now)),
            )
            ctx.add_affected_rows(cursor.rowcount)

    # ===== History =====

    def get_history(self, user_id: str, byte_id: str) -> ContentHistory | None:
        """Get the exposure marker for a (user, byte) pair."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM content_history WHERE user_id = ? AND byte_id = ?",
            (user_id, byte_id),
        ).fetchone()
        if row is None:
            return None
        return ContentHistory(
            user_id=row["user_id"],
            byte_id=row["byte_id"],
            shown_at=datetime.fromisoformat(row["shown_at"]),
            is_read=bool(row["is_read"]),
            dwell_time_ms=row["dwell_time_ms"],
        )

    def mark_shown(self, user_id: str, byte_id: str, now: datetime) -> None:
        """Record that a byte was shown, keeping any existing read flag."""
        with self.transaction("mark_shown") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT INTO content_history (user_id, byte_id, shown_at, is_read)
                VALUES (?, ?, ?, 0)
                ON CONFLICT(user_id, byte_id) DO UPDATE SET
                    shown_at = excluded.shown_at
                """,
                (user_id, byte_id, _ts(now)),
            )
            ctx.add_affected_rows(cursor.rowcount)

    def mark_read(
        self,
        user_id: str,
        byte_id: str,
        now: datetime,
        dwell_time_ms: int | None = None,
    ) -> None:
        """Record that a byte was read; the read flag never reverts."""
        with self.transaction("mark_read") as ctx:
            cursor = self._ensure_connected().execute(
                """
                INSERT INTO content_history (
                    user_id, byte_id, shown_at, is_read, dwell_time_ms
                ) VALUES (?, ?, ?, 1, ?)
                ON CONFLICT(user_id, byte_id) DO UPDATE SET
                    is_read = 1,
                    dwell_time_ms = COALESCE(excluded.dwell_time_ms, dwell_time_ms)
                """,
                (user_id, byte_id, _ts(now), dwell_time_ms),
            )
            ctx.add_affected_rows(cursor.rowcount)
