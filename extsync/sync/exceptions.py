"""
Replication error types.

Store backends raise StoreError; the reader and writer wrap it into
errors that name the table and position, and the orchestrator records
those per table.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for replication errors."""


class CatalogError(SyncError):
    """Invalid table catalog definition."""


class StoreError(SyncError):
    """A row-store request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PageFetchError(SyncError):
    """Reading one page of a source table failed."""

    def __init__(self, table: str, offset: int, cause: str):
        super().__init__(f"Error fetching {table} (offset {offset}): {cause}")
        self.table = table
        self.offset = offset


class DeleteError(SyncError):
    """Clearing a destination table failed (strict delete mode only)."""

    def __init__(self, table: str, cause: str):
        super().__init__(f"Error clearing {table}: {cause}")
        self.table = table


class BatchWriteError(SyncError):
    """Writing one batch to a destination table failed."""

    def __init__(self, table: str, offset: int, rows_written: int, cause: str):
        super().__init__(f"Error writing {table} (batch at row {offset}): {cause}")
        self.table = table
        self.offset = offset
        self.rows_written = rows_written


class UnknownTableError(SyncError):
    """Requested table is not part of the catalog."""

    def __init__(self, table: str):
        super().__init__(f"Table '{table}' not found in sync configuration")
        self.table = table


class MissingParameterError(SyncError):
    """A required request parameter was not supplied."""

    def __init__(self, parameter: str, hint: str = ""):
        message = f"Parameter '{parameter}' is required"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)
        self.parameter = parameter
