"""
FastAPI application for the External Sync Service.

Exposes the replication engine over HTTP.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from extsync.api import sync_external_router
from extsync.api.sync_external import AVAILABLE_ENDPOINTS
from extsync.config.settings import settings
from extsync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting {settings.app.app_name} v{settings.app.app_version}")
    try:
        yield
    finally:
        orchestrator = getattr(app.state, "orchestrator", None)
        if orchestrator is not None:
            await orchestrator.close()
        logger.info("Shutting down application")


def create_app(orchestrator: Optional[SyncOrchestrator] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        orchestrator: Engine to serve; built from settings on first request when omitted
    """
    app = FastAPI(
        title=settings.app.app_name,
        description="Replicates the catalog tables to the external database",
        version=settings.app.app_version,
        debug=settings.app.debug,
        lifespan=lifespan
    )
    app.state.orchestrator = orchestrator

    # Add CORS middleware (answers preflight requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unknown routes and wrong methods both answer with the endpoint list
        if exc.status_code in (404, 405):
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Endpoint not found",
                    "available_endpoints": AVAILABLE_ENDPOINTS,
                },
            )
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Malformed request bodies answer with the same {error} shape as other failures
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    app.include_router(sync_external_router, prefix=settings.app.api_prefix)

    return app


app = create_app()
