"""In-memory execution store for tests and local experiments.

Documents are kept as serialised dumps so callers never share a mutable
instance with the store, which mirrors how a database-backed store behaves.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from index_engine.models.execution import LeagueExecution, ManagerExecution, parse_execution
from index_engine.state.store import ExecutionConflictError

logger = logging.getLogger(__name__)


class InMemoryExecutionStore:
    """Dict-backed :class:`~index_engine.state.store.ExecutionStore`."""

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._documents)

    async def create(self, doc: ManagerExecution | LeagueExecution) -> ManagerExecution | LeagueExecution:
        async with self._lock:
            if doc.execution_id in self._documents:
                raise ValueError(f"Execution {doc.execution_id} already exists")
            self._documents[doc.execution_id] = doc.model_dump()
        return doc

    async def get(self, execution_id: str) -> ManagerExecution | LeagueExecution | None:
        async with self._lock:
            stored = self._documents.get(execution_id)
            if stored is None:
                return None
            return parse_execution(stored)

    async def save(self, doc: ManagerExecution | LeagueExecution) -> ManagerExecution | LeagueExecution:
        async with self._lock:
            stored = self._documents.get(doc.execution_id)
            if stored is None or stored["version"] != doc.version:
                logger.warning("Rejected stale save for execution %s", doc.execution_id)
                raise ExecutionConflictError(doc.execution_id, doc.version)
            doc.version += 1
            doc.updated_at = datetime.now(UTC)
            self._documents[doc.execution_id] = doc.model_dump()
        return doc
