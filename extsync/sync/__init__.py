"""
External Sync Replication Engine.

Copies an ordered catalog of interdependent tables from a source row
store to a destination row store:
- Full sync (delete + insert in dependency order)
- Single-table sync
- Incremental sync (upsert of rows changed since a timestamp)
- Row-count status reporting
"""

from extsync.sync.catalog import (
    DEFAULT_CATALOG,
    TableCatalog,
    load_catalog,
)
from extsync.sync.exceptions import (
    BatchWriteError,
    CatalogError,
    DeleteError,
    MissingParameterError,
    PageFetchError,
    StoreError,
    SyncError,
    UnknownTableError,
)
from extsync.sync.models import (
    ChangedSince,
    StatusReport,
    SyncMode,
    SyncReport,
    SyncStats,
    TableCount,
)

__all__ = [
    # Catalog
    "DEFAULT_CATALOG",
    "TableCatalog",
    "load_catalog",
    # Errors
    "BatchWriteError",
    "CatalogError",
    "DeleteError",
    "MissingParameterError",
    "PageFetchError",
    "StoreError",
    "SyncError",
    "UnknownTableError",
    # Models
    "ChangedSince",
    "StatusReport",
    "SyncMode",
    "SyncReport",
    "SyncStats",
    "TableCount",
]
