"""Unit tests for ChunkRunner.

Runs against the in-memory execution store with a fixed-gameweek oracle and
a scripted indexer so each test controls exactly which units succeed, fail
or raise.

Covers:
- single-manager and league cursor movement
- future-gameweek skipping and the no-current-gameweek fallback
- step budget clamping
- terminal idempotence and not-found handling
- fatal errors failing the execution and discarding chunk progress
- the processed = success + failed + skipped invariant
"""

from __future__ import annotations

import pytest

from index_engine.executor.factory import ExecutionFactory
from index_engine.executor.runner import ChunkRunner
from index_engine.models.execution import ExecutionStatus
from index_engine.state.memory import InMemoryExecutionStore
from index_engine.state.store import ExecutionConflictError

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class StaticOracle:
    def __init__(self, gameweek: int | None, error: Exception | None = None) -> None:
        self.gameweek = gameweek
        self.error = error
        self.calls = 0

    async def current_gameweek(self) -> int | None:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.gameweek


class ScriptedIndexer:
    """Succeeds by default; *failures* return False, *raise_on* raises."""

    def __init__(
        self,
        failures: set[tuple[int, int]] | None = None,
        raise_on: tuple[int, int] | None = None,
    ) -> None:
        self.failures = failures or set()
        self.raise_on = raise_on
        self.calls: list[tuple[int, int, tuple[int, ...]]] = []

    async def index_manager_gameweek(self, manager_id, gameweek, league_ids=()):
        self.calls.append((manager_id, gameweek, tuple(league_ids)))
        if (manager_id, gameweek) == self.raise_on:
            raise RuntimeError("document store unavailable")
        return (manager_id, gameweek) not in self.failures


def _build(oracle_gw: int | None = 38, **indexer_kwargs):
    store = InMemoryExecutionStore()
    oracle = StaticOracle(oracle_gw)
    indexer = ScriptedIndexer(**indexer_kwargs)
    return store, oracle, indexer, ExecutionFactory(store), ChunkRunner(store, oracle, indexer)


def _assert_counters_consistent(doc) -> None:
    assert doc.gameweeks_processed == doc.gameweeks_success + doc.gameweeks_failed + doc.gameweeks_skipped


async def _drive(runner: ChunkRunner, execution_id: str, max_steps: int, limit: int = 200):
    """Call run_chunk until terminal, checking the counter invariant after each chunk."""
    doc = None
    for _ in range(limit):
        doc = await runner.run_chunk(execution_id, max_steps)
        _assert_counters_consistent(doc)
        if doc.is_terminal:
            return doc
    raise AssertionError("execution did not reach a terminal state")


# ---------------------------------------------------------------------------
# Manager executions
# ---------------------------------------------------------------------------


class TestManagerExecution:
    @pytest.mark.asyncio
    async def test_future_gameweek_skipped_and_completed_in_one_chunk(self):
        store, oracle, indexer, factory, runner = _build(oracle_gw=2)
        created = await factory.create_manager_execution(42, 1, 3)

        doc = await runner.run_chunk(created.execution_id, 5)

        assert doc.status == ExecutionStatus.COMPLETED
        assert doc.gameweeks_processed == 3
        assert doc.gameweeks_success == 2
        assert doc.gameweeks_skipped == 1
        assert doc.gameweeks_failed == 0
        assert doc.current_gw == 4
        assert indexer.calls == [(42, 1, ()), (42, 2, ())]
        assert oracle.calls == 1

    @pytest.mark.asyncio
    async def test_chunk_stops_at_step_budget(self):
        store, _, indexer, factory, runner = _build()
        created = await factory.create_manager_execution(7, 1, 10)

        doc = await runner.run_chunk(created.execution_id, 3)

        assert doc.status == ExecutionStatus.RUNNING
        assert doc.current_gw == 4
        assert doc.gameweeks_processed == 3
        assert doc.message == "Indexing manager 7: 3/10 gameweeks processed"
        assert [c[1] for c in indexer.calls] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_resumes_from_stored_cursor(self):
        store, _, indexer, factory, runner = _build()
        created = await factory.create_manager_execution(7, 5, 9)

        await runner.run_chunk(created.execution_id, 2)
        doc = await runner.run_chunk(created.execution_id, 2)

        assert doc.current_gw == 9
        assert [c[1] for c in indexer.calls] == [5, 6, 7, 8]

    @pytest.mark.asyncio
    async def test_drives_range_to_completion(self):
        _, _, _, factory, runner = _build()
        created = await factory.create_manager_execution(7, 3, 17)

        doc = await _drive(runner, created.execution_id, 4)

        assert doc.status == ExecutionStatus.COMPLETED
        assert doc.current_gw == 18
        assert doc.gameweeks_processed == 15
        assert doc.completed_at is not None
        assert doc.message == "Manager 7 indexing complete: 15 success, 0 failed, 0 skipped"

    @pytest.mark.asyncio
    async def test_unit_failure_is_counted_and_job_continues(self):
        _, _, indexer, factory, runner = _build(failures={(7, 2)})
        created = await factory.create_manager_execution(7, 1, 3)

        doc = await runner.run_chunk(created.execution_id, 5)

        assert doc.status == ExecutionStatus.COMPLETED
        assert doc.gameweeks_success == 2
        assert doc.gameweeks_failed == 1
        assert doc.error is None
        assert len(indexer.calls) == 3

    @pytest.mark.asyncio
    async def test_no_current_gameweek_treats_whole_range_as_playable(self):
        _, _, indexer, factory, runner = _build(oracle_gw=None)
        created = await factory.create_manager_execution(7, 1, 3)

        doc = await runner.run_chunk(created.execution_id, 5)

        assert doc.gameweeks_success == 3
        assert doc.gameweeks_skipped == 0
        assert len(indexer.calls) == 3

    @pytest.mark.asyncio
    async def test_every_future_gameweek_is_skipped(self):
        _, _, indexer, factory, runner = _build(oracle_gw=3)
        created = await factory.create_manager_execution(7, 1, 10)

        doc = await _drive(runner, created.execution_id, 4)

        assert doc.gameweeks_success == 3
        assert doc.gameweeks_skipped == 7
        assert all(gw <= 3 for _, gw, _ in indexer.calls)

    @pytest.mark.asyncio
    async def test_started_at_set_once_and_version_bumped_per_chunk(self):
        _, _, _, factory, runner = _build()
        created = await factory.create_manager_execution(7, 1, 10)

        first = await runner.run_chunk(created.execution_id, 1)
        second = await runner.run_chunk(created.execution_id, 1)

        assert first.started_at is not None
        assert second.started_at == first.started_at
        assert (first.version, second.version) == (1, 2)
        assert second.updated_at >= first.updated_at


# ---------------------------------------------------------------------------
# League executions
# ---------------------------------------------------------------------------


class TestLeagueExecution:
    @pytest.mark.asyncio
    async def test_single_step_chunks_walk_boundaries(self):
        _, _, indexer, factory, runner = _build()
        created = await factory.create_league_execution(10, [1, 2], 1, 1)

        doc = await runner.run_chunk(created.execution_id, 1)
        assert doc.status == ExecutionStatus.RUNNING
        assert doc.gameweeks_processed == 1
        assert indexer.calls == [(1, 1, (10,))]

        doc = await runner.run_chunk(created.execution_id, 1)
        assert doc.status == ExecutionStatus.RUNNING
        assert doc.current_manager_index == 1
        assert doc.managers_processed == 1
        assert doc.current_gw == 1
        assert doc.gameweeks_processed == 1
        assert len(indexer.calls) == 1

        doc = await runner.run_chunk(created.execution_id, 1)
        assert indexer.calls[-1] == (2, 1, (10,))

        doc = await runner.run_chunk(created.execution_id, 1)
        assert doc.status == ExecutionStatus.COMPLETED
        assert doc.managers_processed == 2
        assert doc.gameweeks_processed == 2

    @pytest.mark.asyncio
    async def test_managers_processed_in_order_one_full_range_at_a_time(self):
        _, _, indexer, factory, runner = _build()
        created = await factory.create_league_execution(10, [30, 10, 20], 2, 4)

        doc = await _drive(runner, created.execution_id, 5)

        assert doc.status == ExecutionStatus.COMPLETED
        assert [(m, gw) for m, gw, _ in indexer.calls] == [
            (30, 2),
            (30, 3),
            (30, 4),
            (10, 2),
            (10, 3),
            (10, 4),
            (20, 2),
            (20, 3),
            (20, 4),
        ]

    @pytest.mark.asyncio
    async def test_completion_accounts_for_every_unit(self):
        _, _, _, factory, runner = _build(oracle_gw=4, failures={(2, 1), (3, 2)})
        created = await factory.create_league_execution(10, [1, 2, 3], 1, 6)

        doc = await _drive(runner, created.execution_id, 7)

        assert doc.gameweeks_processed == 3 * 6
        assert doc.gameweeks_success == 10
        assert doc.gameweeks_failed == 2
        assert doc.gameweeks_skipped == 6
        assert doc.managers_percentage == 100
        assert doc.gameweeks_percentage == 100
        assert doc.message == "League 10 indexing complete: 3/3 managers, 10 success, 2 failed, 6 skipped"

    @pytest.mark.asyncio
    async def test_oversized_budget_clamped_to_fifty_steps(self):
        _, _, _, factory, runner = _build()
        created = await factory.create_league_execution(10, [1, 2], 1, 38)

        doc = await runner.run_chunk(created.execution_id, 1000)

        # 38 units for manager 1, one boundary step, then 11 units for manager 2.
        assert doc.gameweeks_processed == 49
        assert doc.current_manager_index == 1
        assert doc.current_gw == 12


# ---------------------------------------------------------------------------
# Clamping
# ---------------------------------------------------------------------------


class TestStepBudget:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_steps", [0, -5])
    async def test_non_positive_budget_runs_one_step(self, max_steps: int):
        _, _, indexer, factory, runner = _build()
        created = await factory.create_manager_execution(7, 1, 10)

        doc = await runner.run_chunk(created.execution_id, max_steps)

        assert doc.gameweeks_processed == 1
        assert len(indexer.calls) == 1


# ---------------------------------------------------------------------------
# Terminal, missing, and fatal
# ---------------------------------------------------------------------------


class TestTerminalAndFatal:
    @pytest.mark.asyncio
    async def test_unknown_execution_returns_none(self):
        _, _, _, _, runner = _build()
        assert await runner.run_chunk("does-not-exist", 5) is None

    @pytest.mark.asyncio
    async def test_terminal_execution_returned_unchanged(self):
        store, oracle, indexer, factory, runner = _build()
        created = await factory.create_manager_execution(7, 1, 2)
        await runner.run_chunk(created.execution_id, 5)
        before = await store.get(created.execution_id)
        calls_before = len(indexer.calls)

        after = await runner.run_chunk(created.execution_id, 5)

        assert after == before
        assert len(indexer.calls) == calls_before
        assert oracle.calls == 1

    @pytest.mark.asyncio
    async def test_indexer_exception_fails_execution_and_discards_chunk(self):
        store, _, indexer, factory, runner = _build(raise_on=(7, 3))
        created = await factory.create_manager_execution(7, 1, 5)

        doc = await runner.run_chunk(created.execution_id, 5)

        assert doc.status == ExecutionStatus.FAILED
        assert doc.error == "document store unavailable"
        assert doc.message == "Indexing failed"
        assert doc.completed_at is not None
        assert doc.started_at is not None
        # Units 1 and 2 were indexed before the failure but are not recorded.
        assert len(indexer.calls) == 3
        assert doc.gameweeks_processed == 0
        assert doc.current_gw == 1

        stored = await store.get(created.execution_id)
        assert stored == doc

    @pytest.mark.asyncio
    async def test_fatal_error_keeps_progress_of_earlier_chunks(self):
        _, _, _, factory, runner = _build(raise_on=(7, 4))
        created = await factory.create_manager_execution(7, 1, 6)

        await runner.run_chunk(created.execution_id, 2)
        doc = await runner.run_chunk(created.execution_id, 5)

        assert doc.status == ExecutionStatus.FAILED
        assert doc.gameweeks_processed == 2
        assert doc.current_gw == 3

    @pytest.mark.asyncio
    async def test_oracle_failure_fails_execution(self):
        store = InMemoryExecutionStore()
        indexer = ScriptedIndexer()
        runner = ChunkRunner(store, StaticOracle(None, error=ConnectionError("bootstrap down")), indexer)
        created = await ExecutionFactory(store).create_manager_execution(7, 1, 3)

        doc = await runner.run_chunk(created.execution_id, 5)

        assert doc.status == ExecutionStatus.FAILED
        assert doc.error == "bootstrap down"
        assert indexer.calls == []

    @pytest.mark.asyncio
    async def test_failed_execution_is_sticky(self):
        _, _, indexer, factory, runner = _build(raise_on=(7, 1))
        created = await factory.create_manager_execution(7, 1, 3)
        failed = await runner.run_chunk(created.execution_id, 5)

        again = await runner.run_chunk(created.execution_id, 5)

        assert again == failed
        assert len(indexer.calls) == 1


# ---------------------------------------------------------------------------
# Concurrency guard
# ---------------------------------------------------------------------------


class TestStaleWrites:
    @pytest.mark.asyncio
    async def test_stale_copy_cannot_overwrite_chunk_progress(self):
        store, _, _, factory, runner = _build()
        created = await factory.create_manager_execution(7, 1, 10)
        stale = await store.get(created.execution_id)

        await runner.run_chunk(created.execution_id, 3)

        with pytest.raises(ExecutionConflictError):
            await store.save(stale)
        assert (await store.get(created.execution_id)).gameweeks_processed == 3
