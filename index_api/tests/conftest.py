"""Shared fixtures for the indexing API tests.

Provides a mock database session, fake FPL collaborators (oracle, indexer,
league resolver), an in-memory execution store, and an async httpx client
bound to the app with every external dependency overridden.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from index_api.config import APISettings
from index_api.dependencies import get_db_session, get_indexing_service, get_settings
from index_api.main import create_app
from index_api.services.indexing_service import IndexingService
from index_engine.state.memory import InMemoryExecutionStore

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeOracle:
    """Reports a fixed current gameweek (``None`` between seasons)."""

    def __init__(self, gameweek: int | None = 38) -> None:
        self.gameweek = gameweek
        self.calls = 0

    async def current_gameweek(self) -> int | None:
        self.calls += 1
        return self.gameweek


class RecordingIndexer:
    """Succeeds by default; *failures* return False and *raise_on* raises."""

    def __init__(self) -> None:
        self.failures: set[tuple[int, int]] = set()
        self.raise_on: tuple[int, int] | None = None
        self.calls: list[tuple[int, int, tuple[int, ...]]] = []

    async def index_manager_gameweek(self, manager_id, gameweek, league_ids=()):
        self.calls.append((manager_id, gameweek, tuple(league_ids)))
        if (manager_id, gameweek) == self.raise_on:
            raise RuntimeError("document store unavailable")
        return (manager_id, gameweek) not in self.failures


class FakeLeagueResolver:
    """Maps league ids to manager ids; unknown leagues resolve to ``[]``."""

    def __init__(self) -> None:
        self.leagues: dict[int, list[int]] = {}
        self.error: Exception | None = None

    async def __call__(self, league_id: int) -> list[int]:
        if self.error is not None:
            raise self.error
        return list(self.leagues.get(league_id, []))


# ---------------------------------------------------------------------------
# Settings / session
# ---------------------------------------------------------------------------


@pytest.fixture()
def test_settings() -> APISettings:
    """Return a settings object suitable for testing."""
    return APISettings(
        host="0.0.0.0",
        port=8000,
        debug=True,
        database_url="sqlite+aiosqlite:///:memory:",
        cors_origins=["http://localhost:3000"],
        default_max_steps=5,
        default_max_iterations=8,
    )


@pytest.fixture()
def mock_session() -> AsyncMock:
    """Return a mock AsyncSession that records commits and answers ``SELECT 1``."""
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()

    result_mock = MagicMock()
    result_mock.scalar_one_or_none.return_value = 1
    session.execute = AsyncMock(return_value=result_mock)
    return session


# ---------------------------------------------------------------------------
# Indexing collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemoryExecutionStore:
    return InMemoryExecutionStore()


@pytest.fixture()
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture()
def indexer() -> RecordingIndexer:
    return RecordingIndexer()


@pytest.fixture()
def league_resolver() -> FakeLeagueResolver:
    resolver = FakeLeagueResolver()
    resolver.leagues[314] = [11, 22]
    return resolver


@pytest.fixture()
def indexing_service(
    mock_session: AsyncMock,
    test_settings: APISettings,
    store: InMemoryExecutionStore,
    oracle: FakeOracle,
    indexer: RecordingIndexer,
    league_resolver: FakeLeagueResolver,
) -> IndexingService:
    """An IndexingService over the in-memory store and the fakes above."""
    return IndexingService(
        mock_session,
        test_settings,
        oracle=oracle,
        indexer=indexer,
        league_resolver=league_resolver,
        store=store,
    )


# ---------------------------------------------------------------------------
# FastAPI client (async httpx)
# ---------------------------------------------------------------------------


@pytest.fixture()
def app(test_settings: APISettings, mock_session: AsyncMock, indexing_service: IndexingService):
    """Create a FastAPI app whose database and FPL dependencies are overridden."""
    application = create_app()

    async def _override_session():
        yield mock_session

    application.dependency_overrides[get_db_session] = _override_session
    application.dependency_overrides[get_settings] = lambda: test_settings
    application.dependency_overrides[get_indexing_service] = lambda: indexing_service

    return application


@pytest_asyncio.fixture()
async def client(app) -> AsyncClient:
    """Yield an async httpx client bound to the test app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
