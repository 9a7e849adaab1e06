"""
Base Row Store Module.

Provides the abstract row-store interface the replication engine reads
from and writes to, plus the factory used to build stores from settings.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from extsync.sync.models import ChangedSince, Row

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    """Connection status enumeration."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class StoreConfig(BaseModel):
    """Base configuration for row stores."""
    name: str
    url: str = ""
    api_key: Optional[str] = None
    schema_name: str = "public"

    # Per-request timeout in seconds
    timeout: float = Field(default=60.0, gt=0)

    # Extra configuration
    extra: Dict[str, Any] = Field(default_factory=dict)


class RowStore(ABC):
    """
    Abstract base class for row stores.

    A row store exposes the handful of row-level operations replication
    needs: ordered range reads, a match-all delete, batch insert, batch
    upsert and counts. Every failure is raised as StoreError.
    """

    # Largest page the server returns per request; None means unbounded
    max_page_size: Optional[int] = None

    def __init__(self, config: StoreConfig):
        """
        Initialize store.

        Args:
            config: Store configuration
        """
        self.config = config
        self._status = ConnectionStatus.DISCONNECTED
        self._last_error: Optional[Exception] = None
        self._connected_at: Optional[datetime] = None
        self._stats = {
            "rows_read": 0,
            "rows_written": 0,
            "total_errors": 0,
        }

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def status(self) -> ConnectionStatus:
        """Get current connection status."""
        return self._status

    @property
    def is_connected(self) -> bool:
        """Check if store is connected."""
        return self._status == ConnectionStatus.CONNECTED

    @property
    def last_error(self) -> Optional[Exception]:
        """Get last error."""
        return self._last_error

    @property
    def stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        return {
            **self._stats,
            "status": self._status.value,
            "connected_at": self._connected_at.isoformat() if self._connected_at else None,
        }

    @abstractmethod
    async def connect(self) -> bool:
        """
        Open the underlying client.

        Returns:
            True if the client is ready
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the underlying client."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Check that the store answers requests."""

    @abstractmethod
    async def fetch_page(
        self,
        table: str,
        order_by: str,
        offset: int,
        limit: int,
        changed_since: Optional[ChangedSince] = None
    ) -> List[Row]:
        """
        Fetch one page of rows ordered ascending by ``order_by``.

        Args:
            table: Table name
            order_by: Column giving a stable total order (the primary key)
            offset: Number of rows to skip
            limit: Maximum rows to return
            changed_since: Optional server-side timestamp filter

        Returns:
            Rows of the page, possibly fewer than ``limit``
        """

    @abstractmethod
    async def delete_all(self, table: str, pk_column: str) -> None:
        """Delete every row, filtering on a primary-key condition that matches all rows."""

    @abstractmethod
    async def insert_rows(self, table: str, rows: List[Row]) -> None:
        """Insert one batch of rows."""

    @abstractmethod
    async def upsert_rows(self, table: str, rows: List[Row], pk_column: str) -> None:
        """Insert rows, updating those whose primary key already exists."""

    @abstractmethod
    async def count_rows(self, table: str) -> int:
        """Exact row count of a table."""

    async def test_connection(self) -> Dict[str, Any]:
        """
        Test connection and return diagnostics.

        Returns:
            Dictionary with connection test results
        """
        start_time = time.time()

        result = {
            "name": self.name,
            "success": False,
            "status": self._status.value,
            "latency_ms": 0,
            "error": None,
        }

        try:
            if not self.is_connected:
                await self.connect()

            healthy = await self.health_check()
            result["success"] = healthy
            result["status"] = self._status.value

        except Exception as e:
            result["success"] = False
            result["error"] = str(e)
            self._record_error(e)

        result["latency_ms"] = round((time.time() - start_time) * 1000, 2)
        return result

    def _set_status(self, status: ConnectionStatus) -> None:
        """Update connection status."""
        self._status = status
        if status == ConnectionStatus.CONNECTED:
            self._connected_at = datetime.utcnow()
        logger.debug(f"Store {self.name} status changed to: {status.value}")

    def _record_error(self, error: Exception) -> None:
        """Record an error."""
        self._last_error = error
        self._stats["total_errors"] += 1
        logger.error(f"Store {self.name} error: {error}")

    def _record_read(self, row_count: int) -> None:
        self._stats["rows_read"] += row_count

    def _record_write(self, row_count: int) -> None:
        self._stats["rows_written"] += row_count

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()


class StoreFactory:
    """Factory for creating row store instances."""

    _stores: Dict[str, type] = {}

    @classmethod
    def register(cls, backend: str, store_class: type) -> None:
        """Register a store backend."""
        cls._stores[backend] = store_class
        logger.debug(f"Registered store backend: {backend}")

    @classmethod
    def create(
        cls,
        backend: str,
        config: Union[StoreConfig, Dict[str, Any]]
    ) -> RowStore:
        """
        Create a store instance.

        Args:
            backend: Registered backend name
            config: Store configuration

        Returns:
            Store instance

        Raises:
            ValueError: If backend not registered
        """
        if backend not in cls._stores:
            raise ValueError(f"Unknown store backend: {backend}")

        store_class = cls._stores[backend]

        if isinstance(config, dict):
            config = StoreConfig(**config)

        return store_class(config)

    @classmethod
    def list_backends(cls) -> List[str]:
        """List registered backends."""
        return list(cls._stores.keys())
