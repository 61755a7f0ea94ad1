"""Creation of new execution documents."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from pydantic import ValidationError

from index_engine.models.execution import ExecutionStatus, LeagueExecution, ManagerExecution
from index_engine.state.store import ExecutionStore

logger = logging.getLogger(__name__)


class ExecutionValidationError(ValueError):
    """Raised when a job cannot be created from the supplied parameters."""


def _validate_range(from_gw: int, to_gw: int) -> None:
    if from_gw < 1:
        raise ExecutionValidationError(f"from_gw must be >= 1, got {from_gw}")
    if from_gw > to_gw:
        raise ExecutionValidationError(f"from_gw ({from_gw}) must be <= to_gw ({to_gw})")


class ExecutionFactory:
    """Builds pending executions and registers them with the store."""

    def __init__(self, store: ExecutionStore) -> None:
        self._store = store

    async def create_manager_execution(self, manager_id: int, from_gw: int, to_gw: int) -> ManagerExecution:
        """Create a pending job covering ``[from_gw, to_gw]`` for one manager."""
        _validate_range(from_gw, to_gw)
        try:
            doc = ManagerExecution(
                execution_id=str(uuid.uuid4()),
                status=ExecutionStatus.PENDING,
                manager_id=manager_id,
                from_gw=from_gw,
                to_gw=to_gw,
                current_gw=from_gw,
                message="Queued manager indexing",
            )
        except ValidationError as exc:
            raise ExecutionValidationError(str(exc)) from exc

        await self._store.create(doc)
        logger.info(
            "Created manager execution %s manager=%d gw=%d..%d",
            doc.execution_id,
            manager_id,
            from_gw,
            to_gw,
        )
        return doc

    async def create_league_execution(
        self,
        league_id: int,
        manager_ids: Sequence[int],
        from_gw: int,
        to_gw: int,
    ) -> LeagueExecution:
        """Create a pending job walking *manager_ids* in order.

        The manager list is copied and frozen into the document; later
        changes to league membership do not affect a running job.
        """
        _validate_range(from_gw, to_gw)
        if not manager_ids:
            raise ExecutionValidationError("manager_ids must not be empty")
        try:
            doc = LeagueExecution(
                execution_id=str(uuid.uuid4()),
                status=ExecutionStatus.PENDING,
                league_id=league_id,
                manager_ids=list(manager_ids),
                total_managers=len(manager_ids),
                from_gw=from_gw,
                to_gw=to_gw,
                current_gw=from_gw,
                message=f"Queued league indexing for {len(manager_ids)} managers",
            )
        except ValidationError as exc:
            raise ExecutionValidationError(str(exc)) from exc

        await self._store.create(doc)
        logger.info(
            "Created league execution %s league=%d managers=%d gw=%d..%d",
            doc.execution_id,
            league_id,
            len(manager_ids),
            from_gw,
            to_gw,
        )
        return doc
