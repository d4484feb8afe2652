"""Integration tests for the SQLite state store."""

import tempfile
from collections.abc import Generator
from datetime import timedelta
from pathlib import Path

import pytest

from bytefeed.store import (
    CandidateOrder,
    CandidateQuery,
    DuplicateFingerprintError,
    EditionClaimLostError,
    EditionNotFoundError,
    ProcessingStatus,
    SourceNotFoundError,
    StateStore,
    StoreMetrics,
    UserEngagement,
)
from bytefeed.store.migrations import CURRENT_VERSION
from tests.helpers.seed import make_bytes, make_draft, make_edition, make_source
from tests.helpers.time import FIXED_NOW


@pytest.fixture
def temp_db_path() -> Generator[Path]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test_state.sqlite"


@pytest.fixture
def store(temp_db_path: Path) -> Generator[StateStore]:
    """Create a connected state store."""
    StoreMetrics.reset()
    store = StateStore(temp_db_path, run_id="test-run-001")
    store.connect()
    yield store
    store.close()


def _query(user_id: str = "u1", **kwargs: object) -> CandidateQuery:
    params: dict[str, object] = {"order": CandidateOrder.RECENT, "limit": 50}
    params.update(kwargs)
    return CandidateQuery(user_id=user_id, **params)  # type: ignore[arg-type]


class TestStateStoreConnection:
    """Tests for store connection and setup."""

    @pytest.mark.integration
    def test_context_manager(self, temp_db_path: Path) -> None:
        """Test the store connects and closes as a context manager."""
        with StateStore(temp_db_path) as store:
            assert store.is_connected
        assert not store.is_connected
        assert temp_db_path.exists()

    @pytest.mark.integration
    def test_migrations_applied(self, store: StateStore) -> None:
        """Test the schema is at the current version."""
        conn = store._ensure_connected()
        version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
        assert version == CURRENT_VERSION

    @pytest.mark.integration
    def test_reconnect_keeps_data(self, temp_db_path: Path) -> None:
        """Test data survives a reconnect without re-running migrations."""
        with StateStore(temp_db_path) as store:
            make_source(store)
        with StateStore(temp_db_path) as store:
            assert store.get_source_by_sender("news@example.com") is not None


class TestTransactions:
    """Tests for transaction handling."""

    @pytest.mark.integration
    def test_rollback_on_error(self, store: StateStore) -> None:
        """Test a failing block leaves no partial writes."""
        with pytest.raises(RuntimeError), store.transaction("test"):
            make_source(store)
            raise RuntimeError("boom")

        assert store.get_source_by_sender("news@example.com") is None

    @pytest.mark.integration
    def test_nested_blocks_share_transaction(self, store: StateStore) -> None:
        """Test inner blocks join the outer transaction."""
        with store.transaction("outer") as outer:
            make_source(store)
            with store.transaction("inner") as inner:
                assert inner is outer
        assert store.get_source_by_sender("news@example.com") is not None


class TestSources:
    """Tests for source persistence."""

    @pytest.mark.integration
    def test_create_source_is_idempotent_per_sender(self, store: StateStore) -> None:
        """Test two creates for one sender converge on one row."""
        a = make_source(store, name="First")
        b = make_source(store, name="Second")

        assert a.id == b.id
        assert b.name == "First"

    @pytest.mark.integration
    def test_subscriber_count_floor(self, store: StateStore) -> None:
        """Test subscriber counts never go below zero."""
        source = make_source(store)
        store.adjust_subscriber_count(source.id, -1)
        refreshed = store.get_source(source.id)
        assert refreshed is not None
        assert refreshed.subscriber_count == 0


class TestEditions:
    """Tests for edition lifecycle persistence."""

    @pytest.mark.integration
    def test_duplicate_fingerprint(self, store: StateStore) -> None:
        """Test a second edition with the same fingerprint is rejected."""
        source = make_source(store)
        make_edition(store, source)

        with pytest.raises(DuplicateFingerprintError):
            make_edition(store, source)

        metrics = StoreMetrics.get_instance()
        assert metrics.duplicate_fingerprints_total == 1

    @pytest.mark.integration
    def test_claim_is_exclusive(self, store: StateStore) -> None:
        """Test only the first claim of a pending edition succeeds."""
        edition = make_edition(store, make_source(store))

        claimed = store.claim_edition(edition.id, FIXED_NOW)

        assert claimed is not None
        assert claimed.processing_status == ProcessingStatus.PROCESSING
        assert claimed.process_attempts == 1
        assert store.claim_edition(edition.id, FIXED_NOW) is None

    @pytest.mark.integration
    def test_fetch_pending_order_and_attempt_limit(self, store: StateStore) -> None:
        """Test pending editions come oldest first and exhausted ones are skipped."""
        source = make_source(store)
        newer = make_edition(store, source, subject="B", received_at=FIXED_NOW)
        older = make_edition(
            store, source, subject="A", received_at=FIXED_NOW - timedelta(hours=1)
        )
        exhausted = make_edition(
            store, source, subject="C", received_at=FIXED_NOW - timedelta(hours=2)
        )
        for _ in range(3):
            store.claim_edition(exhausted.id, FIXED_NOW)
            store.update_edition_status(exhausted.id, ProcessingStatus.PENDING)

        pending = store.fetch_pending_editions(limit=10, max_attempts=3)

        assert [p.edition.id for p in pending] == [older.id, newer.id]
        assert pending[0].source.id == source.id

    @pytest.mark.integration
    def test_recover_stale(self, store: StateStore) -> None:
        """Test stale processing editions are released by attempt budget."""
        source = make_source(store)
        retryable = make_edition(store, source, subject="A")
        exhausted = make_edition(store, source, subject="B")
        fresh = make_edition(store, source, subject="C")
        old = FIXED_NOW - timedelta(minutes=30)

        store.claim_edition(retryable.id, old)
        for _ in range(2):
            store.claim_edition(exhausted.id, old)
            store.update_edition_status(exhausted.id, ProcessingStatus.PENDING)
        store.claim_edition(exhausted.id, old)
        store.claim_edition(fresh.id, FIXED_NOW)

        recovered = store.recover_stale_editions(
            FIXED_NOW - timedelta(minutes=10), max_attempts=3
        )

        assert recovered == 2
        statuses = {
            e.id: e.processing_status
            for e in (
                store.get_edition(retryable.id),
                store.get_edition(exhausted.id),
                store.get_edition(fresh.id),
            )
            if e is not None
        }
        assert statuses[retryable.id] == ProcessingStatus.PENDING
        assert statuses[exhausted.id] == ProcessingStatus.FAILED
        assert statuses[fresh.id] == ProcessingStatus.PROCESSING

    @pytest.mark.integration
    def test_complete_edition_stores_bytes(self, store: StateStore) -> None:
        """Test completion inserts bytes and marks the edition completed."""
        source = make_source(store)
        bytes_ = make_bytes(store, source, [make_draft("One insight"), make_draft("Two")])

        edition = store.get_edition(bytes_[0].edition_id)
        assert edition is not None
        assert edition.processing_status == ProcessingStatus.COMPLETED
        assert edition.processed_by_model == "test"
        assert [b.content for b in store.list_bytes_for_edition(edition.id)] == [
            "One insight",
            "Two",
        ]
        assert all(b.source_id == source.id for b in bytes_)

    @pytest.mark.integration
    def test_update_missing_edition(self, store: StateStore) -> None:
        """Test updating an unknown edition raises."""
        with pytest.raises(EditionNotFoundError):
            store.update_edition_status("missing", ProcessingStatus.PENDING)

    @pytest.mark.integration
    def test_reset_failed(self, store: StateStore) -> None:
        """Test failed editions return to pending with zero attempts."""
        edition = make_edition(store, make_source(store))
        store.claim_edition(edition.id, FIXED_NOW)
        store.update_edition_status(edition.id, ProcessingStatus.FAILED, error="x")

        assert store.reset_failed_editions() == 1

        reset = store.get_edition(edition.id)
        assert reset is not None
        assert reset.processing_status == ProcessingStatus.PENDING
        assert reset.process_attempts == 0
        assert reset.processing_error is None

    @pytest.mark.integration
    def test_writes_pinned_to_current_claim(self, store: StateStore) -> None:
        """Test claim-pinned writes fail once a newer claim replaced the old one."""
        edition = make_edition(store, make_source(store))
        old_start = FIXED_NOW - timedelta(minutes=30)
        store.claim_edition(edition.id, old_start)
        store.recover_stale_editions(FIXED_NOW - timedelta(minutes=10), max_attempts=3)
        current = store.claim_edition(edition.id, FIXED_NOW)
        assert current is not None

        with pytest.raises(EditionClaimLostError):
            store.complete_edition(
                edition.id,
                [make_draft("Late insight from the abandoned run")],
                summary=None,
                read_time_minutes=1,
                model_used="test",
                now=FIXED_NOW,
                claimed_at=old_start,
            )
        with pytest.raises(EditionClaimLostError):
            store.update_edition_status(
                edition.id, ProcessingStatus.PENDING, error="x", claimed_at=old_start
            )

        assert store.list_bytes_for_edition(edition.id) == []
        unchanged = store.get_edition(edition.id)
        assert unchanged is not None
        assert unchanged.processing_status == ProcessingStatus.PROCESSING
        assert unchanged.processing_error is None

        stored = store.complete_edition(
            edition.id,
            [make_draft("Insight from the current run")],
            summary=None,
            read_time_minutes=1,
            model_used="test",
            now=FIXED_NOW,
            claimed_at=current.processing_started_at,
        )
        assert len(stored) == 1

    @pytest.mark.integration
    def test_missing_reread_raises_not_found(
        self, store: StateStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a write whose re-read comes back empty raises a typed error."""
        source = make_source(store)
        monkeypatch.setattr(store, "get_edition", lambda edition_id: None)
        monkeypatch.setattr(store, "get_source_by_sender", lambda sender: None)

        with pytest.raises(EditionNotFoundError):
            make_edition(store, source, subject="Vanishing issue")
        with pytest.raises(SourceNotFoundError):
            make_source(store, "b@example.com", "B")


class TestContentBytes:
    """Tests for byte counters and candidates."""

    @pytest.mark.integration
    def test_counters_floor_at_zero(self, store: StateStore) -> None:
        """Test counter deltas never produce negative values."""
        byte = make_bytes(store, make_source(store), [make_draft("Insight")])[0]

        store.adjust_byte_counters(byte.id, upvotes=1, saves=-1)

        updated = store.get_content_byte(byte.id)
        assert updated is not None
        assert updated.upvotes == 1
        assert updated.save_count == 0

    @pytest.mark.integration
    def test_candidate_exclusion(self, store: StateStore) -> None:
        """Test read, voted and saved bytes are excluded; shown bytes are not."""
        source = make_source(store)
        voted, saved, read, shown, fresh = make_bytes(
            store, source, [make_draft(f"Insight {i}") for i in range(5)]
        )
        store.upsert_engagement(UserEngagement(user_id="u1", byte_id=voted.id, vote=-1))
        store.upsert_engagement(
            UserEngagement(user_id="u1", byte_id=saved.id, is_saved=True)
        )
        store.mark_read("u1", read.id, FIXED_NOW)
        store.mark_shown("u1", shown.id, FIXED_NOW)

        ids = {c.byte.id for c in store.query_feed_candidates(_query())}
        assert ids == {shown.id, fresh.id}

        unshown = {c.byte.id for c in store.query_feed_candidates(_query(exclude_shown=True))}
        assert unshown == {fresh.id}
        assert store.count_feed_candidates(_query(exclude_shown=True)) == 1

        other_user = store.query_feed_candidates(_query(user_id="u2"))
        assert len(other_user) == 5

    @pytest.mark.integration
    def test_sponsored_and_source_filters(self, store: StateStore) -> None:
        """Test sponsored and source restrictions."""
        a = make_source(store, "a@example.com", "A")
        b = make_source(store, "b@example.com", "B")
        make_bytes(store, a, [make_draft("Plain"), make_draft("Ad", sponsored=True)])
        make_bytes(store, b, [make_draft("Other")])

        assert len(store.query_feed_candidates(_query())) == 2
        assert len(store.query_feed_candidates(_query(include_sponsored=True))) == 3
        only_b = store.query_feed_candidates(_query(source_ids=(b.id,)))
        assert [c.byte.content for c in only_b] == ["Other"]
        assert store.query_feed_candidates(_query(source_ids=())) == []

    @pytest.mark.integration
    def test_keyset_pagination(self, store: StateStore) -> None:
        """Test paging by sort key visits every candidate once."""
        source = make_source(store)
        for i in range(5):
            make_bytes(
                store,
                source,
                [make_draft(f"Insight {i}")],
                created_at=FIXED_NOW - timedelta(minutes=i),
            )

        seen: list[str] = []
        after = None
        while True:
            page = store.query_feed_candidates(_query(limit=2, after=after))
            if not page:
                break
            seen.extend(c.byte.content for c in page)
            after = page[-1].sort_key

        assert seen == [f"Insight {i}" for i in range(5)]

    @pytest.mark.integration
    def test_history_read_flag_is_monotonic(self, store: StateStore) -> None:
        """Test showing a read byte again keeps it read."""
        byte = make_bytes(store, make_source(store), [make_draft("Insight")])[0]

        store.mark_read("u1", byte.id, FIXED_NOW, dwell_time_ms=1200)
        store.mark_shown("u1", byte.id, FIXED_NOW + timedelta(minutes=1))

        history = store.get_history("u1", byte.id)
        assert history is not None
        assert history.is_read
        assert history.dwell_time_ms == 1200
        assert history.shown_at == FIXED_NOW + timedelta(minutes=1)
