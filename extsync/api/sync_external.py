"""
External Sync API Routes.

Provides the endpoints that trigger replication to the external
database: full sync, single-table sync, incremental sync and a
row-count status check.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from extsync.config.settings import settings
from extsync.sync.exceptions import MissingParameterError, UnknownTableError
from extsync.sync.models import SyncStats
from extsync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter(tags=["sync-external"])

AVAILABLE_ENDPOINTS = [
    "POST /full - Full sync of every catalog table",
    "POST /table/:name - Sync a single table",
    "GET /status - Row-count status of sampled tables",
    'POST /incremental - Incremental sync (body: {"since": "2025-01-01T00:00:00Z"})',
    "GET /health - Store connection health",
]


# ============================================================================
# Request/Response Models
# ============================================================================

class SyncStatsResponse(BaseModel):
    """Per-table sync outcome."""
    table: str
    records_synced: int
    success: bool
    error: Optional[str] = None
    duration_ms: int

    @classmethod
    def from_stats(cls, stats: SyncStats) -> "SyncStatsResponse":
        return cls(**stats.to_dict())


class FullSyncResponse(BaseModel):
    """Response model for a full sync."""
    success: bool
    message: str
    total_records_synced: int
    total_duration_ms: int
    tables: List[SyncStatsResponse]


class TableSyncResponse(BaseModel):
    """Response model for a single-table sync."""
    success: bool
    table: SyncStatsResponse


class IncrementalSyncRequest(BaseModel):
    """Request model for an incremental sync."""
    since: Optional[str] = Field(None, description="ISO-8601 timestamp; rows created or updated at or after it are synced")


class IncrementalSyncResponse(BaseModel):
    """Response model for an incremental sync."""
    success: bool
    message: str
    tables: List[SyncStatsResponse]


class StatusResponse(BaseModel):
    """Response model for the status check."""
    success: bool
    total_tables: int
    sample_counts: Dict[str, Dict[str, Any]]
    sync_order: List[str]


class ErrorResponse(BaseModel):
    """Error payload."""
    error: str
    available_endpoints: Optional[List[str]] = None


# ============================================================================
# Helpers
# ============================================================================

_datetime_adapter = TypeAdapter(datetime)


class InvalidTimestampError(ValueError):
    """Request timestamp could not be parsed."""


def parse_since(value: Optional[str]) -> Optional[datetime]:
    """
    Parse the incremental ``since`` value.

    Returns:
        The timestamp, or None when the value is absent or blank

    Raises:
        InvalidTimestampError: If the value is not an ISO-8601 timestamp
    """
    if value is None or not value.strip():
        return None
    try:
        return _datetime_adapter.validate_python(value.strip())
    except ValidationError as e:
        raise InvalidTimestampError(
            f"Invalid 'since' timestamp {value!r}: expected ISO-8601, e.g. 2025-01-01T00:00:00Z"
        ) from e


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """Engine stored on the application, built from settings on first use."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        orchestrator = SyncOrchestrator.from_settings(settings)
        request.app.state.orchestrator = orchestrator
    return orchestrator


def _json(model: BaseModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=model.model_dump(mode="json", exclude_none=True))


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return _json(ErrorResponse(error=message, **extra), status_code=status_code)


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/full", response_model=FullSyncResponse, response_model_exclude_none=True)
async def full_sync(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Replace every catalog table in the destination, in dependency order."""
    try:
        report = await orchestrator.sync_full()
    except Exception as e:
        logger.error(f"Full sync failed: {e}")
        return error_response(500, str(e))

    return _json(FullSyncResponse(
        success=True,
        message=f"Full sync: {report.success_count}/{len(report.tables)} tables",
        total_records_synced=report.total_records,
        total_duration_ms=report.total_duration_ms,
        tables=[SyncStatsResponse.from_stats(stats) for stats in report.tables],
    ))


@router.post(
    "/table/{table_name}",
    response_model=TableSyncResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}, 500: {"model": TableSyncResponse}},
)
async def table_sync(table_name: str, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Replace one catalog table in the destination."""
    try:
        stats = await orchestrator.sync_table(table_name)
    except UnknownTableError as e:
        return error_response(404, str(e))
    except Exception as e:
        logger.error(f"Table sync of {table_name} failed: {e}")
        return error_response(500, str(e))

    return _json(
        TableSyncResponse(success=stats.success, table=SyncStatsResponse.from_stats(stats)),
        status_code=200 if stats.success else 500,
    )


@router.get("/status", response_model=StatusResponse)
async def sync_status(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Compare row counts of the first catalog tables in both stores."""
    try:
        report = await orchestrator.status()
    except Exception as e:
        logger.error(f"Status check failed: {e}")
        return error_response(500, str(e))

    return _json(StatusResponse(
        success=True,
        total_tables=report.total_tables,
        sample_counts=report.sample_counts(),
        sync_order=list(report.sync_order),
    ))


@router.post(
    "/incremental",
    response_model=IncrementalSyncResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}},
)
async def incremental_sync(
    body: Optional[IncrementalSyncRequest] = None,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Upsert rows created or updated since the given timestamp."""
    try:
        since = parse_since(body.since if body else None)
        report = await orchestrator.sync_incremental(since)
    except (MissingParameterError, InvalidTimestampError) as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error(f"Incremental sync failed: {e}")
        return error_response(500, str(e))

    return _json(IncrementalSyncResponse(
        success=True,
        message=f"Incremental sync: {report.total_records} records updated",
        tables=[SyncStatsResponse.from_stats(stats) for stats in report.tables],
    ))


@router.get("/health")
async def store_health(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Connection health of the source and destination stores."""
    source = await orchestrator.source.test_connection()
    destination = await orchestrator.destination.test_connection()
    healthy = source["success"] and destination["success"]
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "source": {**source, "stats": orchestrator.source.stats},
            "destination": {**destination, "stats": orchestrator.destination.stats},
        },
    )
