"""Indexing endpoints: orchestrate a job, resume it chunk by chunk, report status."""

from __future__ import annotations

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from index_api.dependencies import IndexingServiceDep
from index_api.schemas import OrchestrateRequest, RunRequest
from index_api.services.indexing_service import ExecutionNotFoundError, LeagueNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/index", tags=["index"])


def _not_found(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"status": "not_found", "message": message},
    )


@router.post("/orchestrate")
async def orchestrate(body: OrchestrateRequest, service: IndexingServiceDep) -> JSONResponse:
    """Create an indexing job and run as many chunks as the iteration budget allows.

    Returns 200 when the job completed within this request, otherwise 202
    with ``next`` links for resuming it.  A job that failed is still a 202:
    the failure is reported in the body.
    """
    try:
        payload = await service.orchestrate(body)
    except (LeagueNotFoundError, ExecutionNotFoundError) as exc:
        logger.info("Orchestrate rejected: %s", exc)
        return _not_found(str(exc))

    code = status.HTTP_200_OK if payload["status"] == "completed" else status.HTTP_202_ACCEPTED
    return JSONResponse(status_code=code, content=payload)


@router.post("/run/{execution_id}")
async def run_chunk(
    execution_id: str,
    service: IndexingServiceDep,
    body: RunRequest | None = None,
) -> JSONResponse:
    """Run one chunk of an existing job."""
    max_steps = body.max_steps if body is not None else None
    try:
        payload = await service.run(execution_id, max_steps)
    except ExecutionNotFoundError as exc:
        return _not_found(str(exc))
    return JSONResponse(status_code=status.HTTP_200_OK, content=payload)


@router.get("/status/{execution_id}")
async def get_status(execution_id: str, service: IndexingServiceDep) -> JSONResponse:
    """Return a job's progress, percentages and timestamps without advancing it."""
    try:
        payload = await service.status(execution_id)
    except ExecutionNotFoundError as exc:
        return _not_found(str(exc))
    return JSONResponse(status_code=status.HTTP_200_OK, content=payload)
