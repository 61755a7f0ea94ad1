"""Liveness (``/api/v1/health``) and readiness (``/ready``) probes.

Both probe the execution store with ``SELECT 1``.  Liveness never fails on
a database outage; readiness answers 503 so traffic is held back until the
store is reachable again.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from index_api import __version__
from index_api.dependencies import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])
readiness_router = APIRouter(tags=["infrastructure"])


async def _store_reachable(session: AsyncSession) -> bool:
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Execution store unreachable: %s", exc)
        return False
    return True


@router.get("/health")
async def health(session: SessionDep) -> dict[str, Any]:
    return {
        "status": "healthy",
        "version": __version__,
        "db": "ok" if await _store_reachable(session) else "degraded",
    }


@readiness_router.get("/ready")
async def readiness_probe(session: SessionDep) -> JSONResponse:
    if await _store_reachable(session):
        return JSONResponse({"status": "ready", "version": __version__, "checks": {"db": "ok"}})
    return JSONResponse(
        {"status": "not_ready", "version": __version__, "checks": {"db": "unavailable"}},
        status_code=503,
    )
