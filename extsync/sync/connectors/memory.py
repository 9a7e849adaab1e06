"""
In-Memory Row Store.

Keeps tables as lists of dictionaries in process memory. Used for dry
runs and as the store double in tests; ``inject_failure`` makes a chosen
operation fail for a table.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from extsync.sync.connectors.base import (
    ConnectionStatus,
    RowStore,
    StoreConfig,
    StoreFactory,
)
from extsync.sync.exceptions import StoreError
from extsync.sync.models import ChangedSince, Row

logger = logging.getLogger(__name__)

OPERATIONS = ("fetch", "delete", "insert", "upsert", "count")


def as_datetime(value: Any) -> Optional[datetime]:
    """Interpret a row value as a timezone-aware datetime, if possible."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def row_changed_since(row: Row, changed_since: ChangedSince) -> bool:
    """True when any tracked timestamp column of ``row`` is >= since."""
    since = as_datetime(changed_since.since)
    for column in changed_since.columns:
        value = as_datetime(row.get(column))
        if value is not None and value >= since:
            return True
    return False


class MemoryStore(RowStore):
    """Row store backed by process memory."""

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        tables: Optional[Dict[str, Iterable[Row]]] = None
    ):
        super().__init__(config or StoreConfig(name="memory"))
        self._tables: Dict[str, List[Row]] = {}
        self._failures: Dict[Tuple[str, str], Tuple[str, int]] = {}
        self._calls: Dict[Tuple[str, str], int] = {}
        for table, rows in (tables or {}).items():
            self.load(table, rows)

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def load(self, table: str, rows: Iterable[Row]) -> None:
        """Replace the contents of ``table``."""
        self._tables[table] = [dict(row) for row in rows]

    def rows(self, table: str) -> List[Row]:
        """Copy of the rows currently stored in ``table``."""
        return [dict(row) for row in self._tables.get(table, [])]

    def inject_failure(self, operation: str, table: str, message: str = "injected failure", after: int = 0) -> None:
        """
        Make ``operation`` on ``table`` raise StoreError.

        Args:
            operation: One of fetch, delete, insert, upsert, count
            table: Table name
            message: Error message
            after: Number of successful calls allowed before failing
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        self._failures[(operation, table)] = (message, after)

    def clear_failures(self) -> None:
        self._failures.clear()

    def call_count(self, operation: str, table: str) -> int:
        return self._calls.get((operation, table), 0)

    def _check(self, operation: str, table: str) -> None:
        key = (operation, table)
        self._calls[key] = self._calls.get(key, 0) + 1
        failure = self._failures.get(key)
        if failure and self._calls[key] > failure[1]:
            error = StoreError(failure[0])
            self._record_error(error)
            raise error

    # ------------------------------------------------------------------
    # RowStore
    # ------------------------------------------------------------------

    async def connect(self) -> bool:
        self._set_status(ConnectionStatus.CONNECTED)
        return True

    async def disconnect(self) -> None:
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def health_check(self) -> bool:
        return True

    async def fetch_page(
        self,
        table: str,
        order_by: str,
        offset: int,
        limit: int,
        changed_since: Optional[ChangedSince] = None
    ) -> List[Row]:
        self._check("fetch", table)
        rows = self._tables.get(table, [])
        if changed_since is not None:
            rows = [row for row in rows if row_changed_since(row, changed_since)]
        ordered = sorted(rows, key=lambda row: row[order_by])
        page = [dict(row) for row in ordered[offset:offset + limit]]
        self._record_read(len(page))
        return page

    async def delete_all(self, table: str, pk_column: str) -> None:
        self._check("delete", table)
        self._tables[table] = [row for row in self._tables.get(table, []) if row.get(pk_column) is None]

    async def insert_rows(self, table: str, rows: List[Row]) -> None:
        self._check("insert", table)
        self._tables.setdefault(table, []).extend(dict(row) for row in rows)
        self._record_write(len(rows))

    async def upsert_rows(self, table: str, rows: List[Row], pk_column: str) -> None:
        self._check("upsert", table)
        existing = self._tables.setdefault(table, [])
        by_key = {row.get(pk_column): row for row in existing}
        for row in rows:
            current = by_key.get(row.get(pk_column))
            if current is not None:
                current.update(row)
            else:
                copy = dict(row)
                existing.append(copy)
                by_key[copy.get(pk_column)] = copy
        self._record_write(len(rows))

    async def count_rows(self, table: str) -> int:
        self._check("count", table)
        return len(self._tables.get(table, []))


# Register store
StoreFactory.register("memory", MemoryStore)
