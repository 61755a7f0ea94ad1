"""SQLAlchemy 2.0 ORM table definitions for the indexing state store.

All tables use the ``Mapped`` / ``mapped_column`` declaration style.  The
``Base`` declarative base is exported for use by Alembic migrations and the
repository layer.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Cross-dialect JSON type: JSONB on PostgreSQL, plain JSON (TEXT) on SQLite.
_JsonType = JSONB().with_variant(JSON(), "sqlite")


def _utcnow() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Shared declarative base for all indexing tables."""


# ---------------------------------------------------------------------------
# Executions
# ---------------------------------------------------------------------------


class IndexExecutionTable(Base):
    """One row per indexing execution (manager or league job).

    League-only columns are NULL for manager jobs and ``manager_id`` is NULL
    for league jobs.  ``version`` backs the compare-and-swap save.
    """

    __tablename__ = "index_executions"

    execution_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    manager_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    league_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    manager_ids: Mapped[list[int] | None] = mapped_column(_JsonType, nullable=True)
    current_manager_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    managers_processed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_managers: Mapped[int | None] = mapped_column(Integer, nullable=True)

    from_gw: Mapped[int] = mapped_column(Integer, nullable=False)
    to_gw: Mapped[int] = mapped_column(Integer, nullable=False)
    current_gw: Mapped[int] = mapped_column(Integer, nullable=False)

    gameweeks_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gameweeks_success: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gameweeks_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gameweeks_skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "type IN ('manager','league')",
            name="ck_index_executions_type",
        ),
        CheckConstraint(
            "status IN ('pending','running','completed','failed')",
            name="ck_index_executions_status",
        ),
        CheckConstraint(
            "from_gw >= 1 AND to_gw >= from_gw",
            name="ck_index_executions_gw_range",
        ),
        Index("ix_index_executions_status", "status"),
        Index("ix_index_executions_league", "league_id", "created_at"),
    )


# ---------------------------------------------------------------------------
# Gameweek decisions
# ---------------------------------------------------------------------------


class GameweekDecisionTable(Base):
    """Indexed gameweek decision documents, keyed ``{manager_id}-gw{gameweek}``."""

    __tablename__ = "gameweek_decisions"

    decision_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    manager_id: Mapped[int] = mapped_column(Integer, nullable=False)
    gameweek: Mapped[int] = mapped_column(Integer, nullable=False)
    season: Mapped[str] = mapped_column(String(8), nullable=False)
    league_ids: Mapped[list[int]] = mapped_column(_JsonType, nullable=False, default=list)
    document: Mapped[dict[str, Any]] = mapped_column(_JsonType, nullable=False)
    indexed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_gameweek_decisions_manager_gw", "manager_id", "gameweek"),
        Index("ix_gameweek_decisions_season_gw", "season", "gameweek"),
    )
