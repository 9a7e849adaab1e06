"""
Paginated Reader.

Reads every row of one table from the source store in fixed-size pages
ordered by primary key. A short (or empty) page ends the read, so an
exact multiple of the page size costs one extra, empty request.
The page size never exceeds the store's max_page_size.
"""

import logging
from typing import List, Optional

from extsync.sync.catalog import TableCatalog
from extsync.sync.connectors.base import RowStore
from extsync.sync.exceptions import PageFetchError, StoreError
from extsync.sync.models import ChangedSince, Row

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000


class PaginatedReader:
    """Accumulates all pages of a table into memory."""

    def __init__(self, store: RowStore, catalog: TableCatalog, page_size: int = PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.store = store
        self.catalog = catalog
        max_page_size = getattr(store, "max_page_size", None)
        if max_page_size is not None and page_size > max_page_size:
            logger.warning(
                f"Page size {page_size} exceeds the source limit of {max_page_size} rows; "
                f"reading {max_page_size} rows per page"
            )
            page_size = max_page_size
        self.page_size = page_size

    async def read_all(self, table: str, changed_since: Optional[ChangedSince] = None) -> List[Row]:
        """
        Fetch all rows of ``table`` (or only the changed ones).

        Args:
            table: Catalog table name
            changed_since: Optional incremental filter applied by the store

        Returns:
            Rows in ascending primary-key order

        Raises:
            PageFetchError: If any page request fails
        """
        pk_column = self.catalog.primary_key(table)
        rows: List[Row] = []
        offset = 0

        logger.info(f"{table}: starting paginated read (page size {self.page_size})", extra={"table": table})

        while True:
            try:
                page = await self.store.fetch_page(
                    table,
                    order_by=pk_column,
                    offset=offset,
                    limit=self.page_size,
                    changed_since=changed_since,
                )
            except StoreError as e:
                raise PageFetchError(table, offset, str(e)) from e

            if not page:
                break

            rows.extend(page)
            logger.info(f"{table}: {len(rows)} rows loaded...", extra={"table": table})

            if len(page) < self.page_size:
                break
            offset += self.page_size

        return rows
