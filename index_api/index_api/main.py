"""FastAPI application entry-point for the FPL indexing API."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from index_api import __version__
from index_api.config import APISettings, load_api_settings
from index_api.dependencies import (
    dispose_engine,
    dispose_fpl_client,
    get_engine_settings,
    init_engine,
    init_fpl_client,
)
from index_api.middleware.logging import RequestLoggingMiddleware
from index_api.routers import health, index
from index_engine.executor.factory import ExecutionValidationError
from index_engine.fpl.client import FPLClientError
from index_engine.state.database import create_tables
from index_engine.state.store import ExecutionConflictError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup / shutdown lifecycle.

    On startup:
    - Initialise the async database engine.
    - Create tables if they do not exist (always for SQLite, otherwise when
      ``auto_create_tables`` is set; production should use Alembic).
    - Initialise the FPL API client.

    On shutdown:
    - Close the FPL client.
    - Dispose the database engine connection pool.
    """
    settings: APISettings = load_api_settings()

    if settings.structured_logging:
        from index_api.middleware.json_formatter import JSONFormatter

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.INFO)
        logger.info("Structured JSON logging enabled")

    engine = init_engine(settings)
    is_local = settings.database_url.startswith("sqlite")
    logger.info("Database engine initialised (%s)", "local" if is_local else "postgres")

    if settings.auto_create_tables or is_local:
        await create_tables(engine)
        logger.info("Database tables ensured")

    engine_settings = get_engine_settings()
    init_fpl_client(engine_settings)
    logger.info("FPL client initialised (%s)", engine_settings.fpl_base_url)

    yield

    await dispose_fpl_client()
    await dispose_engine()
    logger.info("Application shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Construct and configure the FastAPI application."""
    settings = load_api_settings()

    app = FastAPI(
        title="FPL Index API",
        description="Resumable, chunked indexing of Fantasy Premier League manager history.",
        version=__version__,
        lifespan=lifespan,
    )

    # -- Middleware (outermost first) ----------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Correlation-ID", "Accept"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # -- Routers -------------------------------------------------------------

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(index.router, prefix="/api/v1")
    app.include_router(health.readiness_router)

    # -- Exception handlers --------------------------------------------------

    @app.exception_handler(ExecutionValidationError)
    async def execution_validation_handler(request: Request, exc: ExecutionValidationError) -> JSONResponse:
        logger.warning("Rejected indexing request on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.warning("ValueError on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=400, content={"detail": "Invalid request"})

    @app.exception_handler(ExecutionConflictError)
    async def conflict_handler(request: Request, exc: ExecutionConflictError) -> JSONResponse:
        logger.warning("Concurrent update on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=409,
            content={"detail": "Execution was modified concurrently", "execution_id": exc.execution_id},
        )

    @app.exception_handler(FPLClientError)
    async def upstream_error_handler(request: Request, exc: FPLClientError) -> JSONResponse:
        logger.error("FPL API error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"detail": "Upstream FPL API error"})

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal database error"},
        )

    return app


# Module-level application instance used by ``uvicorn index_api.main:app``.
app = create_app()
