"""SQLite schema migrations for the state store."""

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from bytefeed.config.constants import COMPONENT_STORE
from bytefeed.store.errors import MigrationError


logger = structlog.get_logger()

CURRENT_VERSION = 2


@dataclass(frozen=True)
class Migration:
    """A database migration.

    Attributes:
        version: Target version after applying this migration.
        description: Human-readable description.
        up_sql: SQL to apply the migration.
    """

    version: int
    description: str
    up_sql: str


MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        description="Sources, editions, and content bytes",
        up_sql="""
CREATE TABLE IF NOT EXISTS sources (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    sender_email TEXT NOT NULL UNIQUE,
    sender_domain TEXT NOT NULL DEFAULT '',
    description TEXT,
    category TEXT NOT NULL DEFAULT 'general',
    tags_json TEXT NOT NULL DEFAULT '[]',
    website TEXT,
    is_curated INTEGER NOT NULL DEFAULT 0,
    is_verified INTEGER NOT NULL DEFAULT 0,
    subscriber_count INTEGER NOT NULL DEFAULT 0 CHECK (subscriber_count >= 0),
    total_engagement INTEGER NOT NULL DEFAULT 0,
    avg_engagement_score REAL NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS editions (
    id TEXT PRIMARY KEY,
    source_id TEXT NOT NULL REFERENCES sources(id),
    subject TEXT NOT NULL,
    raw_content TEXT NOT NULL DEFAULT '',
    text_content TEXT NOT NULL,
    fingerprint TEXT NOT NULL UNIQUE,
    processing_status TEXT NOT NULL DEFAULT 'pending',
    process_attempts INTEGER NOT NULL DEFAULT 0,
    received_at TEXT NOT NULL,
    processing_started_at TEXT,
    processed_at TEXT,
    summary TEXT,
    read_time_minutes INTEGER,
    processed_by_model TEXT,
    processing_error TEXT
);
CREATE INDEX IF NOT EXISTS idx_editions_status_received
    ON editions(processing_status, received_at);
CREATE INDEX IF NOT EXISTS idx_editions_source_id ON editions(source_id);

CREATE TABLE IF NOT EXISTS content_bytes (
    id TEXT PRIMARY KEY,
    edition_id TEXT NOT NULL REFERENCES editions(id),
    source_id TEXT NOT NULL REFERENCES sources(id),
    content TEXT NOT NULL,
    byte_type TEXT NOT NULL DEFAULT 'insight',
    author TEXT,
    context TEXT,
    category TEXT NOT NULL DEFAULT 'general',
    quality_score REAL NOT NULL,
    upvotes INTEGER NOT NULL DEFAULT 0 CHECK (upvotes >= 0),
    downvotes INTEGER NOT NULL DEFAULT 0 CHECK (downvotes >= 0),
    view_count INTEGER NOT NULL DEFAULT 0,
    save_count INTEGER NOT NULL DEFAULT 0 CHECK (save_count >= 0),
    share_count INTEGER NOT NULL DEFAULT 0,
    engagement_score REAL NOT NULL DEFAULT 0,
    trending_score REAL NOT NULL DEFAULT 0,
    is_sponsored INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_bytes_edition_id ON content_bytes(edition_id);
CREATE INDEX IF NOT EXISTS idx_bytes_source_id ON content_bytes(source_id);
CREATE INDEX IF NOT EXISTS idx_bytes_created_at ON content_bytes(created_at);
CREATE INDEX IF NOT EXISTS idx_bytes_trending ON content_bytes(trending_score);
""",
    ),
    Migration(
        version=2,
        description="Users, engagement, preferences, history, and subscriptions",
        up_sql="""
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    enable_recommendations INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_engagements (
    user_id TEXT NOT NULL,
    byte_id TEXT NOT NULL REFERENCES content_bytes(id),
    vote INTEGER NOT NULL DEFAULT 0 CHECK (vote IN (-1, 0, 1)),
    is_saved INTEGER NOT NULL DEFAULT 0,
    saved_at TEXT,
    view_count INTEGER NOT NULL DEFAULT 0,
    total_dwell_time_ms INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, byte_id)
);
CREATE INDEX IF NOT EXISTS idx_engagements_saved
    ON user_engagements(user_id, is_saved, saved_at);

CREATE TABLE IF NOT EXISTS user_preferences (
    user_id TEXT NOT NULL,
    category TEXT NOT NULL,
    weight REAL NOT NULL CHECK (weight >= 0 AND weight <= 1),
    updated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, category)
);

CREATE TABLE IF NOT EXISTS content_history (
    user_id TEXT NOT NULL,
    byte_id TEXT NOT NULL REFERENCES content_bytes(id),
    shown_at TEXT NOT NULL,
    is_read INTEGER NOT NULL DEFAULT 0,
    dwell_time_ms INTEGER,
    PRIMARY KEY (user_id, byte_id)
);

CREATE TABLE IF NOT EXISTS user_subscriptions (
    user_id TEXT NOT NULL,
    source_id TEXT NOT NULL REFERENCES sources(id),
    is_active INTEGER NOT NULL DEFAULT 1,
    discovery_method TEXT NOT NULL DEFAULT 'search',
    created_at TEXT NOT NULL,
    PRIMARY KEY (user_id, source_id)
);
CREATE INDEX IF NOT EXISTS idx_subscriptions_active
    ON user_subscriptions(user_id, is_active);
""",
    ),
]


def get_migrations_to_apply(current_version: int) -> list[Migration]:
    """Get migrations that need to be applied.

    Args:
        current_version: The current schema version.

    Returns:
        List of migrations to apply in order.
    """
    return [m for m in MIGRATIONS if m.version > current_version]


class MigrationManager:
    """Manages SQLite schema migrations."""

    VERSION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL,
    description TEXT
);
"""

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize the migration manager.

        Args:
            connection: SQLite connection to manage.
        """
        self._conn = connection
        self._log = logger.bind(component=COMPONENT_STORE, operation="migration")

    def ensure_version_table(self) -> None:
        """Ensure the schema_version table exists."""
        self._conn.execute(self.VERSION_TABLE_SQL)
        self._conn.commit()

    def get_current_version(self) -> int:
        """Get the current schema version.

        Returns:
            Current version number, or 0 if no migrations applied.
        """
        self.ensure_version_table()
        row = self._conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def apply_migrations(self) -> list[int]:
        """Apply all pending migrations.

        Returns:
            List of version numbers that were applied.

        Raises:
            MigrationError: If a migration script fails.
        """
        current = self.get_current_version()
        pending = get_migrations_to_apply(current)

        if not pending:
            self._log.debug("no_migrations_pending", current_version=current)
            return []

        applied: list[int] = []
        for migration in pending:
            self._log.info(
                "applying_migration",
                version=migration.version,
                description=migration.description,
            )
            try:
                self._conn.executescript(migration.up_sql)
                self._conn.execute(
                    """
                    INSERT INTO schema_version (version, applied_at, description)
                    VALUES (?, ?, ?)
                    """,
                    (
                        migration.version,
                        datetime.now(UTC).isoformat(),
                        migration.description,
                    ),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._log.error(
                    "migration_failed",
                    version=migration.version,
                    error=str(e),
                )
                self._conn.rollback()
                raise MigrationError(migration.version, str(e)) from e

            applied.append(migration.version)
            self._log.info("migration_applied", version=migration.version)

        return applied

    def get_applied_migrations(self) -> list[dict[str, str | int]]:
        """Get list of applied migrations.

        Returns:
            List of dicts with version, applied_at, and description.
        """
        self.ensure_version_table()
        cursor = self._conn.execute(
            """
            SELECT version, applied_at, description
            FROM schema_version
            ORDER BY version
            """
        )
        return [
            {
                "version": row[0],
                "applied_at": row[1],
                "description": row[2],
            }
            for row in cursor.fetchall()
        ]
