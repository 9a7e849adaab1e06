"""
Sync Orchestrator Module.

Drives replication from the source store to the destination store in
three modes: full (every catalog table), single table, and incremental
(rows changed since a timestamp, upserted). Tables run strictly one after
another in catalog order; a failing table is recorded and the run moves
on to the next one.
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from extsync.config.settings import Settings
from extsync.sync.catalog import TableCatalog, resolve_catalog
from extsync.sync.connectors import StoreConfig, StoreFactory
from extsync.sync.connectors.base import RowStore
from extsync.sync.exceptions import BatchWriteError, MissingParameterError, UnknownTableError
from extsync.sync.models import ChangedSince, StatusReport, SyncMode, SyncReport, SyncStats
from extsync.sync.reader import PAGE_SIZE, PaginatedReader
from extsync.sync.status import STATUS_SAMPLE_SIZE, StatusReporter
from extsync.sync.writer import BATCH_SIZE, BulkWriter

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _as_utc(value: datetime) -> datetime:
    """Aware UTC timestamp; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SyncOrchestrator:
    """
    Replication engine.

    Features:
    - Full sync: delete + insert every catalog table in dependency order
    - Single-table sync
    - Incremental sync: upsert rows created/updated since a timestamp
    - Per-table failure isolation with an aggregate report
    - Row-count status for a sample of tables
    """

    def __init__(
        self,
        source: RowStore,
        destination: RowStore,
        catalog: TableCatalog,
        page_size: int = PAGE_SIZE,
        batch_size: int = BATCH_SIZE,
        strict_delete: bool = False,
        status_sample_size: int = STATUS_SAMPLE_SIZE
    ):
        self.source = source
        self.destination = destination
        self.catalog = catalog
        self.reader = PaginatedReader(source, catalog, page_size=page_size)
        self.writer = BulkWriter(destination, batch_size=batch_size, strict_delete=strict_delete)
        self.status_reporter = StatusReporter(source, destination, catalog, sample_size=status_sample_size)

    @classmethod
    def from_settings(cls, settings: Settings, catalog: Optional[TableCatalog] = None) -> "SyncOrchestrator":
        """Build stores and engine from application settings."""
        source = StoreFactory.create(settings.source.backend, StoreConfig(
            name="source",
            url=settings.source.url,
            api_key=settings.source.api_key,
            schema_name=settings.source.schema,
            timeout=settings.source.timeout,
        ))
        destination = StoreFactory.create(settings.destination.backend, StoreConfig(
            name="destination",
            url=settings.destination.url,
            api_key=settings.destination.api_key,
            schema_name=settings.destination.schema,
            timeout=settings.destination.timeout,
        ))
        return cls(
            source=source,
            destination=destination,
            catalog=catalog or resolve_catalog(settings.sync.catalog_file),
            page_size=settings.sync.page_size,
            batch_size=settings.sync.batch_size,
            strict_delete=settings.sync.strict_delete,
            status_sample_size=settings.sync.status_sample_size,
        )

    async def close(self) -> None:
        await self.source.disconnect()
        await self.destination.disconnect()

    # ------------------------------------------------------------------
    # Per-table steps
    # ------------------------------------------------------------------

    async def _replace_table(self, table: str) -> SyncStats:
        """Read all source rows and replace the destination table. Never raises."""
        start = time.perf_counter()
        logger.info(f"Syncing table: {table}", extra={"table": table})

        try:
            rows = await self.reader.read_all(table)

            if not rows:
                logger.info(f"{table}: source table empty, skipping", extra={"table": table})
                return SyncStats.ok(table, 0, _elapsed_ms(start))

            logger.info(f"{table}: {len(rows)} rows found", extra={"table": table})
            written = await self.writer.replace_all(table, self.catalog.primary_key(table), rows)
            return SyncStats.ok(table, written, _elapsed_ms(start))

        except Exception as e:
            logger.error(f"Error syncing {table}: {e}", extra={"table": table})
            written = e.rows_written if isinstance(e, BatchWriteError) else 0
            return SyncStats.failed(table, str(e), _elapsed_ms(start), records_synced=written)

    async def _upsert_changed(self, table: str, since: datetime) -> SyncStats:
        """Upsert rows of ``table`` changed at or after ``since``. Never raises."""
        start = time.perf_counter()

        try:
            changed_since = ChangedSince(columns=self.catalog.timestamp_columns(table), since=since)
            rows = await self.reader.read_all(table, changed_since=changed_since)

            if not rows:
                return SyncStats.ok(table, 0, _elapsed_ms(start))

            written = await self.writer.upsert_all(table, self.catalog.primary_key(table), rows)
            logger.info(f"{table}: {written} changed rows upserted", extra={"table": table})
            return SyncStats.ok(table, written, _elapsed_ms(start))

        except Exception as e:
            logger.error(f"Error syncing changes of {table}: {e}", extra={"table": table})
            written = e.rows_written if isinstance(e, BatchWriteError) else 0
            return SyncStats.failed(table, str(e), _elapsed_ms(start), records_synced=written)

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def sync_full(self) -> SyncReport:
        """Replace every catalog table, in catalog order."""
        logger.info(f"Starting full sync of {len(self.catalog)} tables")
        start = time.perf_counter()

        results: List[SyncStats] = []
        for table in self.catalog:
            results.append(await self._replace_table(table))

        report = SyncReport(mode=SyncMode.FULL, tables=tuple(results), total_duration_ms=_elapsed_ms(start))
        logger.info(
            f"Full sync finished: {report.success_count}/{len(report.tables)} tables, "
            f"{report.total_records} rows in {report.total_duration_ms} ms"
        )
        if report.failed_tables:
            logger.warning(f"Full sync failed tables: {report.failed_tables}")
        return report

    async def sync_table(self, table: str) -> SyncStats:
        """
        Replace a single catalog table.

        Raises:
            UnknownTableError: If ``table`` is not in the catalog
        """
        if table not in self.catalog:
            raise UnknownTableError(table)
        return await self._replace_table(table)

    async def sync_incremental(self, since: Optional[datetime]) -> SyncReport:
        """
        Upsert rows created or updated at or after ``since`` for every table.

        Raises:
            MissingParameterError: If ``since`` is not given
        """
        if since is None:
            raise MissingParameterError("since", 'body: {"since": "2025-01-01T00:00:00Z"}')
        since = _as_utc(since)

        logger.info(f"Starting incremental sync since {since.isoformat()}")
        start = time.perf_counter()

        results: List[SyncStats] = []
        for table in self.catalog:
            results.append(await self._upsert_changed(table, since))

        report = SyncReport(
            mode=SyncMode.INCREMENTAL,
            tables=tuple(results),
            total_duration_ms=_elapsed_ms(start),
            since=since,
        )
        logger.info(
            f"Incremental sync finished: {report.total_records} rows upserted, "
            f"{len(report.failed_tables)} tables failed"
        )
        return report

    async def status(self) -> StatusReport:
        """Row-count comparison for the first catalog tables."""
        return await self.status_reporter.report()
