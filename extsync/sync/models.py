"""
Replication result models.

SyncStats is the per-table outcome of one run; SyncReport aggregates them.
Both are immutable and live only as long as the response that carries them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

Row = Dict[str, Any]


class SyncMode(str, Enum):
    """Replication mode."""
    FULL = "full"
    INCREMENTAL = "incremental"


@dataclass(frozen=True)
class ChangedSince:
    """Incremental filter: a row matches when any column is >= since."""
    columns: Tuple[str, ...]
    since: datetime

    def __post_init__(self):
        object.__setattr__(self, "columns", tuple(self.columns))
        if not self.columns:
            raise ValueError("ChangedSince requires at least one column")


@dataclass(frozen=True)
class SyncStats:
    """Outcome of syncing one table."""
    table: str
    records_synced: int
    success: bool
    error: Optional[str] = None
    duration_ms: int = 0

    @classmethod
    def ok(cls, table: str, records_synced: int, duration_ms: int) -> "SyncStats":
        return cls(table=table, records_synced=records_synced, success=True, duration_ms=duration_ms)

    @classmethod
    def failed(
        cls,
        table: str,
        error: str,
        duration_ms: int,
        records_synced: int = 0
    ) -> "SyncStats":
        return cls(
            table=table,
            records_synced=records_synced,
            success=False,
            error=error,
            duration_ms=duration_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "table": self.table,
            "records_synced": self.records_synced,
            "success": self.success,
            "duration_ms": self.duration_ms,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class SyncReport:
    """Aggregate of one full or incremental run."""
    mode: SyncMode
    tables: Tuple[SyncStats, ...]
    total_duration_ms: int = 0
    since: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "tables", tuple(self.tables))

    @property
    def success_count(self) -> int:
        return sum(1 for stats in self.tables if stats.success)

    @property
    def total_records(self) -> int:
        return sum(stats.records_synced for stats in self.tables)

    @property
    def failed_tables(self) -> List[str]:
        return [stats.table for stats in self.tables if not stats.success]

    def stats_for(self, table: str) -> Optional[SyncStats]:
        for stats in self.tables:
            if stats.table == table:
                return stats
        return None


@dataclass(frozen=True)
class TableCount:
    """Row counts of one table in both stores."""
    table: str
    source: Optional[int] = None
    destination: Optional[int] = None
    error: Optional[str] = None

    @property
    def synced(self) -> bool:
        return self.error is None and self.source == self.destination

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"error": self.error}
        return {
            "source": self.source,
            "destination": self.destination,
            "synced": self.synced,
        }


@dataclass(frozen=True)
class StatusReport:
    """Row-count comparison for a sample of catalog tables."""
    total_tables: int
    sample: Tuple[TableCount, ...] = field(default_factory=tuple)
    sync_order: Tuple[str, ...] = field(default_factory=tuple)

    def sample_counts(self) -> Dict[str, Dict[str, Any]]:
        return {count.table: count.to_dict() for count in self.sample}
