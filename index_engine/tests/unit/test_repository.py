"""Unit tests for ExecutionRepository and GameweekDecisionRepository.

Uses an in-memory SQLite database via aiosqlite so tests run without
PostgreSQL.

Covers:
- ExecutionRepository:
    - create / get round trips for both execution variants
    - timezone-aware timestamps after a SQLite round trip
    - compare-and-swap save (version bump, stale rejection)
- GameweekDecisionRepository:
    - upsert inserts then replaces by document key
    - per-manager listing order
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from index_engine.models.decision import GameweekDecision, SquadSlot
from index_engine.models.execution import ExecutionStatus, LeagueExecution, ManagerExecution
from index_engine.state.repository import ExecutionRepository, GameweekDecisionRepository
from index_engine.state.store import ExecutionConflictError
from index_engine.state.tables import Base

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def async_session():
    """Provide an async session backed by an in-memory SQLite database."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


def _manager_doc(execution_id: str = "exec-m") -> ManagerExecution:
    return ManagerExecution(
        execution_id=execution_id,
        manager_id=42,
        from_gw=1,
        to_gw=10,
        current_gw=1,
        message="Queued manager indexing",
    )


def _league_doc(execution_id: str = "exec-l") -> LeagueExecution:
    return LeagueExecution(
        execution_id=execution_id,
        league_id=314,
        manager_ids=[9, 8, 7],
        from_gw=2,
        to_gw=5,
        current_gw=2,
        message="Queued league indexing for 3 managers",
    )


def _decision(manager_id: int = 42, gameweek: int = 3, points: int = 60) -> GameweekDecision:
    return GameweekDecision(
        manager_id=manager_id,
        manager_name="Ada Lovelace",
        team_name="Difference Engines",
        league_ids=[314],
        gameweek=gameweek,
        season="25/26",
        starters=[SquadSlot(player_id=1, name="Raya", position_index=1, points=6, element_type="GKP")],
        gw_points=points,
        indexed_at=datetime(2025, 9, 1, 12, 0, tzinfo=UTC),
    )


# ---------------------------------------------------------------------------
# ExecutionRepository
# ---------------------------------------------------------------------------


class TestExecutionRepositoryRoundTrip:
    @pytest.mark.asyncio
    async def test_manager_round_trip(self, async_session: AsyncSession):
        repo = ExecutionRepository(async_session)
        doc = _manager_doc()
        await repo.create(doc)

        loaded = await repo.get("exec-m")

        assert isinstance(loaded, ManagerExecution)
        assert loaded.manager_id == 42
        assert loaded.status == ExecutionStatus.PENDING
        assert loaded.message == "Queued manager indexing"
        assert loaded.created_at.tzinfo is not None
        assert loaded == doc

    @pytest.mark.asyncio
    async def test_league_round_trip(self, async_session: AsyncSession):
        repo = ExecutionRepository(async_session)
        await repo.create(_league_doc())

        loaded = await repo.get("exec-l")

        assert isinstance(loaded, LeagueExecution)
        assert loaded.manager_ids == [9, 8, 7]
        assert loaded.total_managers == 3
        assert loaded.current_manager_index == 0

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, async_session: AsyncSession):
        assert await ExecutionRepository(async_session).get("missing") is None


class TestExecutionRepositorySave:
    @pytest.mark.asyncio
    async def test_save_overwrites_and_bumps_version(self, async_session: AsyncSession):
        repo = ExecutionRepository(async_session)
        await repo.create(_league_doc())

        doc = await repo.get("exec-l")
        doc.mark_running()
        doc.current_manager_index = 1
        doc.managers_processed = 1
        doc.record_outcome(success=True)
        saved = await repo.save(doc)

        assert saved.version == 1
        reloaded = await repo.get("exec-l")
        assert reloaded.status == ExecutionStatus.RUNNING
        assert reloaded.current_manager_index == 1
        assert reloaded.gameweeks_success == 1
        assert reloaded.started_at is not None
        assert reloaded.version == 1

    @pytest.mark.asyncio
    async def test_stale_version_rejected(self, async_session: AsyncSession):
        repo = ExecutionRepository(async_session)
        await repo.create(_manager_doc())
        first = await repo.get("exec-m")
        second = await repo.get("exec-m")

        first.current_gw = 4
        await repo.save(first)
        second.current_gw = 2

        with pytest.raises(ExecutionConflictError):
            await repo.save(second)
        assert (await repo.get("exec-m")).current_gw == 4

    @pytest.mark.asyncio
    async def test_terminal_state_persisted(self, async_session: AsyncSession):
        repo = ExecutionRepository(async_session)
        await repo.create(_manager_doc())
        doc = await repo.get("exec-m")
        doc.mark_failed("FPL API down")
        await repo.save(doc)

        reloaded = await repo.get("exec-m")
        assert reloaded.status == ExecutionStatus.FAILED
        assert reloaded.error == "FPL API down"
        assert reloaded.completed_at is not None
        assert reloaded.is_terminal


# ---------------------------------------------------------------------------
# GameweekDecisionRepository
# ---------------------------------------------------------------------------


class TestGameweekDecisionRepository:
    @pytest.mark.asyncio
    async def test_upsert_then_get(self, async_session: AsyncSession):
        repo = GameweekDecisionRepository(async_session)
        await repo.upsert(_decision())

        loaded = await repo.get(42, 3)

        assert loaded is not None
        assert loaded.team_name == "Difference Engines"
        assert loaded.starters[0].element_type == "GKP"
        assert loaded.document_id == "42-gw3"

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing_document(self, async_session: AsyncSession):
        repo = GameweekDecisionRepository(async_session)
        await repo.upsert(_decision(points=60))
        await repo.upsert(_decision(points=75))

        loaded = await repo.get(42, 3)
        assert loaded.gw_points == 75
        assert len(await repo.list_for_manager(42)) == 1

    @pytest.mark.asyncio
    async def test_list_for_manager_ordered_by_gameweek(self, async_session: AsyncSession):
        repo = GameweekDecisionRepository(async_session)
        for gw in (5, 1, 3):
            await repo.upsert(_decision(gameweek=gw))
        await repo.upsert(_decision(manager_id=99, gameweek=2))

        decisions = await repo.list_for_manager(42)
        assert [d.gameweek for d in decisions] == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, async_session: AsyncSession):
        assert await GameweekDecisionRepository(async_session).get(1, 1) is None
