"""SQLAlchemy-backed storage for executions and gameweek decisions.

Repositories borrow the caller's ``AsyncSession`` and only ``flush()``;
committing is left to the caller (the indexing service commits once per
chunk so a crash loses at most the chunk in flight).
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from index_engine.models.decision import GameweekDecision
from index_engine.models.execution import LeagueExecution, ManagerExecution, parse_execution
from index_engine.state.store import ExecutionConflictError
from index_engine.state.tables import GameweekDecisionTable, IndexExecutionTable

logger = logging.getLogger(__name__)

_LEAGUE_ONLY_COLUMNS = (
    "league_id",
    "manager_ids",
    "current_manager_index",
    "managers_processed",
    "total_managers",
)
_DECISION_REWRITE_COLUMNS = ("season", "league_ids", "document", "indexed_at")


def _dialect_insert(session: AsyncSession) -> Any:
    """``insert`` construct with ``ON CONFLICT`` support for the bound dialect."""
    if session.get_bind().dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert
    return insert


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back; every stored timestamp is UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _execution_values(doc: ManagerExecution | LeagueExecution) -> dict[str, Any]:
    """Flatten an execution document into ``index_executions`` column values."""
    values: dict[str, Any] = {
        "execution_id": doc.execution_id,
        "type": doc.type,
        "status": doc.status.value,
        "from_gw": doc.from_gw,
        "to_gw": doc.to_gw,
        "current_gw": doc.current_gw,
        "gameweeks_processed": doc.gameweeks_processed,
        "gameweeks_success": doc.gameweeks_success,
        "gameweeks_failed": doc.gameweeks_failed,
        "gameweeks_skipped": doc.gameweeks_skipped,
        "message": doc.message,
        "error": doc.error,
        "version": doc.version,
        "created_at": doc.created_at,
        "updated_at": doc.updated_at,
        "started_at": doc.started_at,
        "completed_at": doc.completed_at,
        "manager_id": None,
    }
    for column in _LEAGUE_ONLY_COLUMNS:
        values[column] = None

    if isinstance(doc, LeagueExecution):
        values.update(
            league_id=doc.league_id,
            manager_ids=list(doc.manager_ids),
            current_manager_index=doc.current_manager_index,
            managers_processed=doc.managers_processed,
            total_managers=doc.total_managers,
        )
    else:
        values["manager_id"] = doc.manager_id
    return values


def _row_to_execution(row: IndexExecutionTable) -> ManagerExecution | LeagueExecution:
    data: dict[str, Any] = {column.key: getattr(row, column.key) for column in IndexExecutionTable.__table__.columns}
    for key in ("created_at", "updated_at", "started_at", "completed_at"):
        data[key] = _as_utc(data[key])
    if data["type"] == "league":
        data.pop("manager_id")
    else:
        for column in _LEAGUE_ONLY_COLUMNS:
            data.pop(column)
    return parse_execution(data)


# ---------------------------------------------------------------------------
# Executions
# ---------------------------------------------------------------------------


class ExecutionRepository:
    """SQLAlchemy-backed :class:`~index_engine.state.store.ExecutionStore`.

    ``save`` issues ``UPDATE ... WHERE version = :expected`` so two drivers
    racing on the same execution cannot both win; the loser gets an
    :class:`ExecutionConflictError` instead of overwriting progress.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, doc: ManagerExecution | LeagueExecution) -> ManagerExecution | LeagueExecution:
        """Insert a new execution row."""
        self._session.add(IndexExecutionTable(**_execution_values(doc)))
        await self._session.flush()
        logger.debug("Created %s execution %s", doc.type, doc.execution_id)
        return doc

    async def get(self, execution_id: str) -> ManagerExecution | LeagueExecution | None:
        """Fetch an execution by id, bypassing any stale identity-map copy."""
        stmt = (
            select(IndexExecutionTable)
            .where(IndexExecutionTable.execution_id == execution_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return _row_to_execution(row)

    async def save(self, doc: ManagerExecution | LeagueExecution) -> ManagerExecution | LeagueExecution:
        """Overwrite the stored execution if its version still matches."""
        expected_version = doc.version
        now = datetime.now(UTC)

        values = _execution_values(doc)
        values.pop("execution_id")
        values.update(version=expected_version + 1, updated_at=now)

        stmt = (
            update(IndexExecutionTable)
            .where(
                IndexExecutionTable.execution_id == doc.execution_id,
                IndexExecutionTable.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            logger.warning(
                "Rejected stale save for execution %s at version %d",
                doc.execution_id,
                expected_version,
            )
            raise ExecutionConflictError(doc.execution_id, expected_version)
        await self._session.flush()

        doc.version = expected_version + 1
        doc.updated_at = now
        return doc


# ---------------------------------------------------------------------------
# Gameweek decisions
# ---------------------------------------------------------------------------


class GameweekDecisionRepository:
    """Upsert and lookup for indexed gameweek decision documents."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, decision: GameweekDecision) -> None:
        """Write *decision*, replacing any earlier document for the same key."""
        values = {
            "decision_id": decision.document_id,
            "manager_id": decision.manager_id,
            "gameweek": decision.gameweek,
            "season": decision.season,
            "league_ids": list(decision.league_ids),
            "document": decision.model_dump(mode="json"),
            "indexed_at": decision.indexed_at,
        }
        stmt = _dialect_insert(self._session)(GameweekDecisionTable).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["decision_id"],
            set_={column: stmt.excluded[column] for column in _DECISION_REWRITE_COLUMNS},
        )
        await self._session.execute(stmt)
        await self._session.flush()

    async def get(self, manager_id: int, gameweek: int) -> GameweekDecision | None:
        stmt = select(GameweekDecisionTable).where(
            GameweekDecisionTable.manager_id == manager_id,
            GameweekDecisionTable.gameweek == gameweek,
        )
        result = await self._session.execute(stmt.execution_options(populate_existing=True))
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return GameweekDecision.model_validate(row.document)

    async def list_for_manager(self, manager_id: int) -> list[GameweekDecision]:
        """Return every indexed gameweek for a manager, oldest first."""
        stmt = (
            select(GameweekDecisionTable)
            .where(GameweekDecisionTable.manager_id == manager_id)
            .order_by(GameweekDecisionTable.gameweek)
        )
        result = await self._session.execute(stmt)
        return [GameweekDecision.model_validate(row.document) for row in result.scalars().all()]
