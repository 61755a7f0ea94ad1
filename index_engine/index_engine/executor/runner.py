"""Chunked step execution for resumable indexing jobs.

A chunk is one bounded slice of work against a stored execution: load the
document, advance its cursor by at most ``max_steps`` units, and persist it
once.  Callers drive a job to completion by invoking :meth:`ChunkRunner.run_chunk`
repeatedly; each call is independent and picks up from the stored cursor.

Each step handles exactly one unit:

* **Manager jobs** index ``(manager_id, current_gw)`` and move the cursor on
  by one gameweek, completing in the same step once it passes ``to_gw``.
* **League jobs** do the same for the manager under ``current_manager_index``.
  When that manager's range is exhausted the step instead advances to the
  next manager and resets ``current_gw``; this boundary transition uses up
  a step without indexing anything.

Gameweeks after the oracle's current gameweek are counted as skipped without
calling the indexer.  An indexer returning ``False`` is counted as failed and
the job carries on.  Any exception escaping the step loop fails the whole
execution, and progress made earlier in the same chunk is not persisted.
"""

from __future__ import annotations

import logging

from index_engine.executor.base import CurrentGameweekOracle, UnitIndexer
from index_engine.models.execution import (
    DEFAULT_STEPS_PER_CHUNK,
    LeagueExecution,
    ManagerExecution,
    clamp_max_steps,
)
from index_engine.state.store import ExecutionStore

logger = logging.getLogger(__name__)


class ChunkRunner:
    """Advances stored executions one bounded chunk at a time.

    Parameters
    ----------
    store:
        Where execution documents are loaded from and saved to.
    oracle:
        Reports the current gameweek; consulted once per chunk.
    indexer:
        Performs the per-unit indexing work.
    """

    def __init__(
        self,
        store: ExecutionStore,
        oracle: CurrentGameweekOracle,
        indexer: UnitIndexer,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._indexer = indexer

    async def run_chunk(
        self,
        execution_id: str,
        max_steps: int = DEFAULT_STEPS_PER_CHUNK,
    ) -> ManagerExecution | LeagueExecution | None:
        """Run up to *max_steps* units of an execution and persist the result.

        Returns
        -------
        ManagerExecution | LeagueExecution | None
            The saved document, the unchanged document when it was already
            terminal, or ``None`` when *execution_id* is unknown.

        Raises
        ------
        ExecutionConflictError
            If another writer saved the execution while this chunk ran.
        """
        doc = await self._store.get(execution_id)
        if doc is None:
            return None
        if doc.is_terminal:
            logger.debug("Execution %s already %s; nothing to run", execution_id, doc.status.value)
            return doc

        doc.mark_running()
        steps = clamp_max_steps(max_steps)
        working = doc.model_copy(deep=True)

        try:
            current_gw = await self._oracle.current_gameweek()
            playable_through = current_gw if current_gw is not None else working.to_gw

            for _ in range(steps):
                if working.is_terminal:
                    break
                if isinstance(working, LeagueExecution):
                    await self._league_step(working, playable_through)
                else:
                    await self._manager_step(working, playable_through)
        except Exception as exc:
            logger.exception("Chunk failed for execution %s", execution_id)
            doc.mark_failed(exc)
            working = doc

        saved = await self._store.save(working)
        logger.info(
            "Chunk finished for execution %s: status=%s processed=%d",
            execution_id,
            saved.status.value,
            saved.gameweeks_processed,
        )
        return saved

    async def _index_unit(
        self,
        doc: ManagerExecution | LeagueExecution,
        manager_id: int,
        playable_through: int,
        league_ids: tuple[int, ...] = (),
    ) -> None:
        gameweek = doc.current_gw
        if gameweek > playable_through:
            doc.record_outcome(skipped=True)
        else:
            ok = await self._indexer.index_manager_gameweek(manager_id, gameweek, league_ids)
            if not ok:
                logger.warning("Indexing failed for manager %d gameweek %d", manager_id, gameweek)
            doc.record_outcome(success=bool(ok))
        doc.current_gw += 1

    async def _manager_step(self, doc: ManagerExecution, playable_through: int) -> None:
        if doc.current_gw > doc.to_gw:
            doc.mark_completed(doc.completion_message())
            return

        await self._index_unit(doc, doc.manager_id, playable_through)

        if doc.current_gw > doc.to_gw:
            doc.mark_completed(doc.completion_message())
        else:
            doc.message = doc.progress_message()

    async def _league_step(self, doc: LeagueExecution, playable_through: int) -> None:
        manager_id = doc.current_manager_id
        if manager_id is None:
            doc.mark_completed(doc.completion_message())
            return

        if doc.current_gw > doc.to_gw:
            doc.current_manager_index += 1
            doc.current_gw = doc.from_gw
            doc.managers_processed = doc.current_manager_index
            if doc.current_manager_id is None:
                doc.mark_completed(doc.completion_message())
            else:
                doc.message = doc.progress_message()
            return

        await self._index_unit(doc, manager_id, playable_through, league_ids=(doc.league_id,))
        doc.message = doc.progress_message()
