"""aiosqlite engine for running the indexer without a PostgreSQL server.

The ORM tables are shared with PostgreSQL; JSONB columns degrade to JSON
text through a dialect variant.  There is no pool to tune, and tables are
created at API startup instead of through Alembic.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

_MEMORY = ":memory:"


def get_local_engine(db_path: Path | str = ".fplindex/state.db") -> AsyncEngine:
    """Open (creating its directory if needed) a SQLite database at *db_path*.

    ``":memory:"`` gives a throwaway database.
    """
    if str(db_path) == _MEMORY:
        url = f"sqlite+aiosqlite:///{_MEMORY}"
    else:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite+aiosqlite:///{path}"

    engine = create_async_engine(url, connect_args={"check_same_thread": False})

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_conn: object, _: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[attr-defined]
        # WAL lets status reads proceed while a chunk is being written.
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    logger.info("Using SQLite state database at %s", url)
    return engine
