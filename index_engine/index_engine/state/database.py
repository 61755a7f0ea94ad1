"""Engine and session plumbing for the execution and results tables.

``postgresql+asyncpg://`` URLs get a pooled engine with server-side
timeouts; ``sqlite+aiosqlite://`` URLs are delegated to
:mod:`index_engine.state.sqlite_adapter`.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

logger = logging.getLogger(__name__)

# id(engine) -> (engine, factory); the engine reference guards against id reuse.
_factories: dict[int, tuple[AsyncEngine, async_sessionmaker[AsyncSession]]] = {}

_PG_SERVER_SETTINGS = {
    "statement_timeout": "30000",
    "lock_timeout": "10000",
}


def _sqlite_path(database_url: str) -> str:
    _, sep, path = database_url.partition("///")
    return path if sep and path else ":memory:"


def get_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
) -> AsyncEngine:
    """Build the engine for *database_url*.

    ``pool_size`` and ``max_overflow`` only apply to PostgreSQL.
    """
    if database_url.startswith("sqlite"):
        from index_engine.state.sqlite_adapter import get_local_engine

        return get_local_engine(_sqlite_path(database_url))

    engine = create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=10,
        connect_args={"server_settings": _PG_SERVER_SETTINGS},
    )
    logger.info("PostgreSQL engine ready (pool=%d, overflow=%d)", pool_size, max_overflow)
    return engine


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    entry = _factories.get(id(engine))
    if entry is None or entry[0] is not engine:
        entry = (engine, async_sessionmaker(engine, expire_on_commit=False))
        _factories[id(engine)] = entry
    return entry[1]


@asynccontextmanager
async def get_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session scope that commits on clean exit and rolls back on error."""
    async with get_session_factory(engine)() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


async def create_tables(engine: AsyncEngine) -> None:
    """Create any missing tables from the ORM metadata; existing ones are left alone."""
    from index_engine.state.tables import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
