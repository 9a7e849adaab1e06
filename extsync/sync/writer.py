"""
Bulk Writer.

Applies fetched rows to the destination store in fixed-size batches,
either replacing the table contents (delete then insert) or upserting by
primary key. Batches are not wrapped in one transaction: rows of batches
written before a failure stay in the destination.
"""

import logging
from typing import List

from extsync.sync.connectors.base import RowStore
from extsync.sync.exceptions import BatchWriteError, DeleteError, StoreError
from extsync.sync.models import Row

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000


class BulkWriter:
    """
    Writes row sets to the destination store.

    With ``strict_delete`` off (the default) a failed delete is logged and
    the insert still runs, which can leave duplicate rows behind when the
    delete only partially succeeded. Turn it on to fail the table instead.
    """

    def __init__(self, store: RowStore, batch_size: int = BATCH_SIZE, strict_delete: bool = False):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size
        self.strict_delete = strict_delete

    async def clear(self, table: str, pk_column: str) -> None:
        """Delete every destination row of ``table``."""
        try:
            await self.store.delete_all(table, pk_column)
        except StoreError as e:
            if self.strict_delete:
                raise DeleteError(table, str(e)) from e
            logger.warning(
                f"{table}: clearing destination failed, inserting anyway "
                f"(existing rows may be duplicated): {e}",
                extra={"table": table},
            )

    async def replace_all(self, table: str, pk_column: str, rows: List[Row]) -> int:
        """
        Replace the destination contents of ``table`` with ``rows``.

        Returns:
            Number of rows inserted

        Raises:
            DeleteError: If clearing fails in strict delete mode
            BatchWriteError: If any insert batch fails
        """
        await self.clear(table, pk_column)
        return await self._write_batches(table, rows, upsert_on=None)

    async def upsert_all(self, table: str, pk_column: str, rows: List[Row]) -> int:
        """
        Insert or update ``rows`` by primary key, leaving other rows alone.

        Returns:
            Number of rows upserted

        Raises:
            BatchWriteError: If any upsert batch fails
        """
        return await self._write_batches(table, rows, upsert_on=pk_column)

    async def _write_batches(self, table: str, rows: List[Row], upsert_on) -> int:
        written = 0
        for start in range(0, len(rows), self.batch_size):
            batch = rows[start:start + self.batch_size]
            try:
                if upsert_on is None:
                    await self.store.insert_rows(table, batch)
                else:
                    await self.store.upsert_rows(table, batch, upsert_on)
            except StoreError as e:
                raise BatchWriteError(table, start, written, str(e)) from e

            written += len(batch)
            logger.info(f"{table}: {written}/{len(rows)} rows written", extra={"table": table})
        return written
