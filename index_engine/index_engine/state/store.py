"""Execution store contract consumed by the factory and the chunk runner."""

from __future__ import annotations

from typing import Protocol

from index_engine.models.execution import LeagueExecution, ManagerExecution


class ExecutionConflictError(Exception):
    """Raised when a save is attempted with a stale ``version``.

    Another writer persisted the execution after this copy was loaded, so
    writing it would silently discard their progress.
    """

    def __init__(self, execution_id: str, expected_version: int) -> None:
        self.execution_id = execution_id
        self.expected_version = expected_version
        super().__init__(
            f"Execution {execution_id} was modified concurrently (expected version {expected_version})"
        )


class ExecutionStore(Protocol):
    """Keyed document store for execution documents.

    ``save`` is a full overwrite guarded by the document's ``version``: it
    succeeds only when the stored version matches, stamps ``updated_at`` and
    increments ``version`` on the returned document.
    """

    async def create(self, doc: ManagerExecution | LeagueExecution) -> ManagerExecution | LeagueExecution: ...

    async def get(self, execution_id: str) -> ManagerExecution | LeagueExecution | None: ...

    async def save(self, doc: ManagerExecution | LeagueExecution) -> ManagerExecution | LeagueExecution: ...
