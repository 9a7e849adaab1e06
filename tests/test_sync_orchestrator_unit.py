"""
Unit tests for the sync orchestrator and the status reporter.

Tests:
- Full sync order, isolation of failing tables and idempotence
- Single-table sync and unknown tables
- Incremental sync filtering, upserts and the required timestamp
- Status sampling with inline errors
"""

from datetime import datetime, timezone

import pytest

from extsync.sync.catalog import TableCatalog
from extsync.sync.connectors.memory import MemoryStore
from extsync.sync.exceptions import MissingParameterError, UnknownTableError
from extsync.sync.models import SyncMode
from extsync.sync.orchestrator import SyncOrchestrator
from extsync.sync.status import StatusReporter


def make_rows(count, start=1, **extra):
    return [{"id": i, "name": f"row-{i}", **extra} for i in range(start, start + count)]


@pytest.fixture
def catalog():
    return TableCatalog(
        tables=("parents", "children", "audit"),
        primary_keys={"audit": "audit_id"},
        dependencies={"children": ("parents",)},
    )


@pytest.fixture
def source():
    return MemoryStore(tables={
        "parents": make_rows(3),
        "children": [{"id": i, "parent_id": (i % 3) + 1} for i in range(1, 8)],
        "audit": [{"audit_id": i, "event": "login"} for i in range(1, 5)],
    })


@pytest.fixture
def destination():
    return MemoryStore(tables={"parents": make_rows(2, start=50)})


def build(source, destination, catalog, **kwargs):
    kwargs.setdefault("page_size", 2)
    kwargs.setdefault("batch_size", 2)
    return SyncOrchestrator(source, destination, catalog, **kwargs)


class TestFullSync:
    """Tests for full sync."""

    @pytest.mark.asyncio
    async def test_replaces_every_table_in_order(self, source, destination, catalog):
        orchestrator = build(source, destination, catalog)

        report = await orchestrator.sync_full()

        assert report.mode == SyncMode.FULL
        assert [stats.table for stats in report.tables] == ["parents", "children", "audit"]
        assert report.success_count == 3
        assert report.total_records == 14
        for table in catalog:
            assert destination.rows(table) == source.rows(table)

    @pytest.mark.asyncio
    async def test_failing_table_does_not_stop_run(self, source, destination, catalog):
        destination.inject_failure("insert", "children", "foreign key violation")
        orchestrator = build(source, destination, catalog)

        report = await orchestrator.sync_full()

        children = report.stats_for("children")
        assert not children.success
        assert "foreign key violation" in children.error
        assert children.records_synced == 0
        assert report.stats_for("parents").success
        assert report.stats_for("audit").success
        assert report.failed_tables == ["children"]
        assert report.success_count == 2

    @pytest.mark.asyncio
    async def test_read_failure_names_table_and_offset(self, source, destination, catalog):
        source.inject_failure("fetch", "audit", "timeout", after=1)
        orchestrator = build(source, destination, catalog)

        report = await orchestrator.sync_full()

        audit = report.stats_for("audit")
        assert not audit.success
        assert "audit" in audit.error
        assert "offset 2" in audit.error
        # Nothing was deleted before the read failed
        assert destination.call_count("delete", "audit") == 0

    @pytest.mark.asyncio
    async def test_partial_batches_are_reported(self, source, destination, catalog):
        destination.inject_failure("insert", "children", "disk full", after=2)
        orchestrator = build(source, destination, catalog)

        report = await orchestrator.sync_full()

        children = report.stats_for("children")
        assert not children.success
        assert children.records_synced == 4
        assert len(destination.rows("children")) == 4

    @pytest.mark.asyncio
    async def test_empty_source_table_skips_destination(self, destination, catalog):
        source = MemoryStore(tables={"parents": make_rows(1)})
        destination.load("children", make_rows(2))
        orchestrator = build(source, destination, catalog)

        report = await orchestrator.sync_full()

        children = report.stats_for("children")
        assert children.success
        assert children.records_synced == 0
        assert destination.call_count("delete", "children") == 0
        # Stale destination rows survive an empty source
        assert len(destination.rows("children")) == 2

    @pytest.mark.asyncio
    async def test_full_sync_is_idempotent(self, source, destination, catalog):
        orchestrator = build(source, destination, catalog)

        await orchestrator.sync_full()
        first = {table: destination.rows(table) for table in catalog}
        await orchestrator.sync_full()
        second = {table: destination.rows(table) for table in catalog}

        assert first == second

    @pytest.mark.asyncio
    async def test_source_is_never_written(self, source, destination, catalog):
        before = {table: source.rows(table) for table in catalog}
        orchestrator = build(source, destination, catalog)

        await orchestrator.sync_full()

        assert {table: source.rows(table) for table in catalog} == before
        for operation in ("delete", "insert", "upsert"):
            for table in catalog:
                assert source.call_count(operation, table) == 0

    @pytest.mark.asyncio
    async def test_strict_delete_fails_table(self, source, destination, catalog):
        destination.inject_failure("delete", "parents", "permission denied")
        orchestrator = build(source, destination, catalog, strict_delete=True)

        report = await orchestrator.sync_full()

        parents = report.stats_for("parents")
        assert not parents.success
        assert "permission denied" in parents.error
        assert [row["id"] for row in destination.rows("parents")] == [50, 51]

    def test_report_modes(self):
        # Single-table runs return SyncStats, not a report
        assert {mode.value for mode in SyncMode} == {"full", "incremental"}


class TestTableSync:
    """Tests for single-table sync."""

    @pytest.mark.asyncio
    async def test_sync_known_table(self, source, destination, catalog):
        orchestrator = build(source, destination, catalog)

        stats = await orchestrator.sync_table("audit")

        assert stats.success
        assert stats.records_synced == 4
        assert destination.rows("audit") == source.rows("audit")
        assert destination.call_count("insert", "parents") == 0

    @pytest.mark.asyncio
    async def test_unknown_table(self, source, destination, catalog):
        orchestrator = build(source, destination, catalog)

        with pytest.raises(UnknownTableError) as exc_info:
            await orchestrator.sync_table("missing")

        assert str(exc_info.value) == "Table 'missing' not found in sync configuration"
        assert source.call_count("fetch", "missing") == 0

    @pytest.mark.asyncio
    async def test_failed_table_returns_stats(self, source, destination, catalog):
        destination.inject_failure("insert", "parents", "duplicate key")
        orchestrator = build(source, destination, catalog)

        stats = await orchestrator.sync_table("parents")

        assert not stats.success
        assert "duplicate key" in stats.error


class TestIncrementalSync:
    """Tests for incremental sync."""

    SINCE = datetime(2025, 1, 1, tzinfo=timezone.utc)

    @pytest.fixture
    def timed_source(self):
        return MemoryStore(tables={
            "parents": [
                {"id": 1, "name": "old", "created_at": "2024-06-01T00:00:00Z", "updated_at": None},
                {"id": 2, "name": "renamed", "created_at": "2024-06-01T00:00:00Z",
                 "updated_at": "2025-02-01T00:00:00Z"},
                {"id": 3, "name": "new", "created_at": "2025-01-01T00:00:00Z", "updated_at": None},
            ],
            "children": [
                {"id": 1, "parent_id": 1, "created_at": "2024-01-01T00:00:00Z", "updated_at": None},
            ],
            "audit": [
                {"audit_id": 1, "event": "login", "created_at": "2025-03-01T00:00:00Z", "updated_at": None},
            ],
        })

    @pytest.mark.asyncio
    async def test_upserts_changed_rows_only(self, timed_source, catalog):
        destination = MemoryStore(tables={"parents": [
            {"id": 1, "name": "old"},
            {"id": 2, "name": "original"},
            {"id": 9, "name": "destination only"},
        ]})
        orchestrator = build(timed_source, destination, catalog)

        report = await orchestrator.sync_incremental(self.SINCE)

        assert report.mode == SyncMode.INCREMENTAL
        assert report.since == self.SINCE
        assert report.stats_for("parents").records_synced == 2
        assert report.stats_for("children").records_synced == 0
        assert report.stats_for("audit").records_synced == 1
        assert report.total_records == 3

        names = {row["id"]: row["name"] for row in destination.rows("parents")}
        assert names == {1: "old", 2: "renamed", 3: "new", 9: "destination only"}
        assert destination.call_count("delete", "parents") == 0

    @pytest.mark.asyncio
    async def test_missing_since(self, timed_source, catalog):
        orchestrator = build(timed_source, MemoryStore(), catalog)

        with pytest.raises(MissingParameterError) as exc_info:
            await orchestrator.sync_incremental(None)

        assert "since" in str(exc_info.value)
        assert timed_source.call_count("fetch", "parents") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("since", [
        datetime(2025, 1, 1),
        datetime.fromisoformat("2025-01-01T03:00:00+03:00"),
    ])
    async def test_since_is_normalized_to_utc(self, timed_source, catalog, since):
        orchestrator = build(timed_source, MemoryStore(), catalog)

        report = await orchestrator.sync_incremental(since)

        assert report.since == self.SINCE
        assert report.since.utcoffset().total_seconds() == 0
        assert report.stats_for("parents").records_synced == 2

    @pytest.mark.asyncio
    async def test_fetch_failure_is_recorded(self, timed_source, catalog):
        timed_source.inject_failure("fetch", "children", "column created_at does not exist")
        orchestrator = build(timed_source, MemoryStore(), catalog)

        report = await orchestrator.sync_incremental(self.SINCE)

        children = report.stats_for("children")
        assert not children.success
        assert "created_at" in children.error
        assert report.stats_for("audit").success

    @pytest.mark.asyncio
    async def test_uses_catalog_timestamp_columns(self, timed_source):
        catalog = TableCatalog(
            tables=("parents",),
            incremental_columns={"parents": ("created_at",)},
        )
        destination = MemoryStore()
        orchestrator = build(timed_source, destination, catalog)

        report = await orchestrator.sync_incremental(self.SINCE)

        # Row 2 only changed its updated_at, which is not tracked here
        assert report.total_records == 1
        assert [row["id"] for row in destination.rows("parents")] == [3]


class TestStatus:
    """Tests for the row-count status."""

    @pytest.mark.asyncio
    async def test_reports_sample_counts(self, source, destination, catalog):
        orchestrator = build(source, destination, catalog, status_sample_size=2)

        report = await orchestrator.status()

        assert report.total_tables == 3
        assert report.sync_order == ("parents", "children", "audit")
        assert report.sample_counts() == {
            "parents": {"source": 3, "destination": 2, "synced": False},
            "children": {"source": 7, "destination": 0, "synced": False},
        }
        assert source.call_count("count", "audit") == 0

    @pytest.mark.asyncio
    async def test_synced_after_full_sync(self, source, destination, catalog):
        orchestrator = build(source, destination, catalog)

        await orchestrator.sync_full()
        report = await orchestrator.status()

        assert all(count["synced"] for count in report.sample_counts().values())

    @pytest.mark.asyncio
    async def test_count_error_is_inline(self, source, destination, catalog):
        destination.inject_failure("count", "children", "relation does not exist")
        reporter = StatusReporter(source, destination, catalog)

        report = await reporter.report()

        counts = report.sample_counts()
        assert counts["children"] == {"error": "relation does not exist"}
        assert counts["parents"]["source"] == 3

    @pytest.mark.asyncio
    async def test_status_does_not_modify_stores(self, source, destination, catalog):
        before = (
            {table: source.rows(table) for table in catalog},
            {table: destination.rows(table) for table in catalog},
        )
        reporter = StatusReporter(source, destination, catalog)

        await reporter.report()

        after = (
            {table: source.rows(table) for table in catalog},
            {table: destination.rows(table) for table in catalog},
        )
        assert before == after
