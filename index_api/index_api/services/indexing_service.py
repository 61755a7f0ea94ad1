"""Orchestrates indexing executions: create, drive in chunks, and report."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from index_api.config import APISettings
from index_api.schemas import OrchestrateRequest
from index_engine.executor.base import CurrentGameweekOracle, UnitIndexer
from index_engine.executor.factory import ExecutionFactory
from index_engine.executor.runner import ChunkRunner
from index_engine.models.execution import LeagueExecution, ManagerExecution
from index_engine.state.repository import ExecutionRepository
from index_engine.state.store import ExecutionStore

logger = logging.getLogger(__name__)

# Used as the range end when a request omits to_gw and no gameweek is current.
_FALLBACK_CURRENT_GW = 38

_API_PREFIX = "/api/v1/index"

LeagueResolver = Callable[[int], Awaitable[list[int]]]


class ExecutionNotFoundError(LookupError):
    """No execution exists with the requested id."""

    def __init__(self, execution_id: str) -> None:
        self.execution_id = execution_id
        super().__init__(f"No indexing execution found: {execution_id}")


class LeagueNotFoundError(LookupError):
    """The league's standings resolved to no managers."""

    def __init__(self, league_id: int) -> None:
        self.league_id = league_id
        super().__init__(f"No managers found for league {league_id}")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _progress(doc: ManagerExecution | LeagueExecution) -> dict[str, Any]:
    is_league = isinstance(doc, LeagueExecution)
    return {
        "managers_processed": doc.managers_processed if is_league else None,
        "total_managers": doc.total_managers if is_league else None,
        "gameweeks_processed": doc.gameweeks_processed,
        "gameweeks_success": doc.gameweeks_success,
        "gameweeks_failed": doc.gameweeks_failed,
        "gameweeks_skipped": doc.gameweeks_skipped,
        "current_gw": doc.current_gw,
        "from_gw": doc.from_gw,
        "to_gw": doc.to_gw,
    }


def execution_payload(doc: ManagerExecution | LeagueExecution) -> dict[str, Any]:
    """Render the response body shared by the orchestrate and run endpoints."""
    return {
        "status": doc.status.value,
        "execution_id": doc.execution_id,
        "type": doc.type,
        "message": doc.message,
        "progress": _progress(doc),
        "error": doc.error,
    }


def next_links(execution_id: str) -> dict[str, str]:
    return {
        "run": f"{_API_PREFIX}/run/{execution_id}",
        "status": f"{_API_PREFIX}/status/{execution_id}",
    }


class IndexingService:
    """Create indexing executions and drive them through the chunk runner.

    Parameters
    ----------
    session:
        Active database session.  Committed after creation and after every
        chunk so progress survives a request that dies mid-orchestration.
    settings:
        Application configuration (request defaults).
    oracle:
        Current-gameweek source, shared with the runner.
    indexer:
        Per-unit indexing operation.
    league_resolver:
        Resolves a league id to its ordered manager ids.
    store:
        Execution store; defaults to :class:`ExecutionRepository` on *session*.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: APISettings,
        *,
        oracle: CurrentGameweekOracle,
        indexer: UnitIndexer,
        league_resolver: LeagueResolver,
        store: ExecutionStore | None = None,
        fallback_current_gw: int = _FALLBACK_CURRENT_GW,
    ) -> None:
        self._session = session
        self._settings = settings
        self._oracle = oracle
        self._league_resolver = league_resolver
        self._fallback_current_gw = fallback_current_gw
        self._store: ExecutionStore = store if store is not None else ExecutionRepository(session)
        self._factory = ExecutionFactory(self._store)
        self._runner = ChunkRunner(self._store, oracle, indexer)

    # ------------------------------------------------------------------
    # Orchestrate
    # ------------------------------------------------------------------

    async def orchestrate(self, request: OrchestrateRequest) -> dict[str, Any]:
        """Create an execution and run up to ``max_iterations`` chunks of it.

        Returns
        -------
        dict
            The execution payload, with ``next`` links when the job is not
            yet terminal.

        Raises
        ------
        LeagueNotFoundError
            If a league job's standings contain no managers.
        ExecutionValidationError
            If the resolved gameweek range is invalid.
        """
        max_steps = request.max_steps or self._settings.default_max_steps
        max_iterations = request.max_iterations or self._settings.default_max_iterations
        to_gw = request.to_gw if request.to_gw is not None else await self._default_to_gw()

        doc: ManagerExecution | LeagueExecution
        if request.type == "league":
            assert request.league_id is not None  # noqa: S101
            manager_ids = await self._league_resolver(request.league_id)
            if not manager_ids:
                raise LeagueNotFoundError(request.league_id)
            doc = await self._factory.create_league_execution(request.league_id, manager_ids, request.from_gw, to_gw)
        else:
            assert request.manager_id is not None  # noqa: S101
            doc = await self._factory.create_manager_execution(request.manager_id, request.from_gw, to_gw)
        await self._session.commit()

        for iteration in range(max_iterations):
            updated = await self._runner.run_chunk(doc.execution_id, max_steps)
            await self._session.commit()
            if updated is None:
                raise ExecutionNotFoundError(doc.execution_id)
            doc = updated
            if doc.is_terminal:
                logger.info(
                    "Execution %s reached %s after %d chunk(s)",
                    doc.execution_id,
                    doc.status.value,
                    iteration + 1,
                )
                break

        payload = execution_payload(doc)
        if not doc.is_terminal:
            payload["next"] = next_links(doc.execution_id)
        return payload

    async def _default_to_gw(self) -> int:
        current = await self._oracle.current_gameweek()
        return current if current is not None else self._fallback_current_gw

    # ------------------------------------------------------------------
    # Run / status
    # ------------------------------------------------------------------

    async def run(self, execution_id: str, max_steps: int | None = None) -> dict[str, Any]:
        """Run one chunk of an existing execution."""
        doc = await self._runner.run_chunk(execution_id, max_steps or self._settings.default_max_steps)
        if doc is None:
            raise ExecutionNotFoundError(execution_id)
        await self._session.commit()
        return execution_payload(doc)

    async def status(self, execution_id: str) -> dict[str, Any]:
        """Return a read-only progress report, including percentages."""
        doc = await self._store.get(execution_id)
        if doc is None:
            raise ExecutionNotFoundError(execution_id)

        payload = execution_payload(doc)
        progress = payload["progress"]
        progress["managers_percentage"] = doc.managers_percentage
        progress["gameweeks_percentage"] = doc.gameweeks_percentage
        payload["timestamps"] = {
            "created_at": _iso(doc.created_at),
            "started_at": _iso(doc.started_at),
            "updated_at": _iso(doc.updated_at),
            "completed_at": _iso(doc.completed_at),
        }
        return payload
