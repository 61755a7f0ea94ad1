"""FastAPI dependency injection for settings, database sessions and the FPL client."""

from __future__ import annotations

import functools
import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from index_api.config import APISettings, load_api_settings
from index_api.services.indexing_service import IndexingService
from index_engine.config import Settings, load_settings
from index_engine.fpl.client import FPLClient
from index_engine.fpl.oracle import BootstrapOracle
from index_engine.fpl.standings import resolve_league_manager_ids
from index_engine.indexing.service import GameweekIndexer
from index_engine.state.database import get_engine, get_session

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_settings_cache: APISettings | None = None
_engine_settings_cache: Settings | None = None


def get_settings() -> APISettings:
    """Return the cached :class:`APISettings` singleton."""
    global _settings_cache  # noqa: PLW0603
    if _settings_cache is None:
        _settings_cache = load_api_settings()
    return _settings_cache


def get_engine_settings() -> Settings:
    """Return the cached engine :class:`Settings` singleton (``INDEX_`` prefix)."""
    global _engine_settings_cache  # noqa: PLW0603
    if _engine_settings_cache is None:
        _engine_settings_cache = load_settings()
    return _engine_settings_cache


SettingsDep = Annotated[APISettings, Depends(get_settings)]
EngineSettingsDep = Annotated[Settings, Depends(get_engine_settings)]

# ---------------------------------------------------------------------------
# Database session
# ---------------------------------------------------------------------------

_engine: AsyncEngine | None = None


def init_engine(settings: APISettings) -> AsyncEngine:
    global _engine  # noqa: PLW0603
    _engine = get_engine(settings.database_url)
    return _engine


async def dispose_engine() -> None:
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def get_db_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("init_engine() must run at startup before the database is used")
    return _engine


EngineDep = Annotated[AsyncEngine, Depends(get_db_engine)]


async def get_db_session(engine: EngineDep) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; committed when the handler returns cleanly."""
    async with get_session(engine) as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_db_session)]

# ---------------------------------------------------------------------------
# FPL client
# ---------------------------------------------------------------------------

_fpl_client: FPLClient | None = None


def init_fpl_client(settings: Settings) -> FPLClient:
    """Create and cache the global FPL API client."""
    global _fpl_client  # noqa: PLW0603
    _fpl_client = FPLClient.from_settings(settings)
    return _fpl_client


async def dispose_fpl_client() -> None:
    """Close the global FPL client (call during shutdown)."""
    global _fpl_client  # noqa: PLW0603
    if _fpl_client is not None:
        await _fpl_client.close()
        _fpl_client = None


def get_fpl_client() -> FPLClient:
    """Return the global FPL client."""
    if _fpl_client is None:
        raise RuntimeError(
            "FPL client has not been initialised. Ensure init_fpl_client() is called during application startup."
        )
    return _fpl_client


FPLClientDep = Annotated[FPLClient, Depends(get_fpl_client)]

# ---------------------------------------------------------------------------
# Indexing service
# ---------------------------------------------------------------------------


def get_indexing_service(
    session: SessionDep,
    settings: SettingsDep,
    engine_settings: EngineSettingsDep,
    engine: EngineDep,
    fpl_client: FPLClientDep,
) -> IndexingService:
    """Wire an :class:`IndexingService` for the current request."""
    return IndexingService(
        session,
        settings,
        oracle=BootstrapOracle(fpl_client),
        indexer=GameweekIndexer(fpl_client, engine),
        league_resolver=functools.partial(
            resolve_league_manager_ids,
            fpl_client,
            max_pages=engine_settings.standings_max_pages,
        ),
        fallback_current_gw=engine_settings.fallback_current_gw,
    )


IndexingServiceDep = Annotated[IndexingService, Depends(get_indexing_service)]
