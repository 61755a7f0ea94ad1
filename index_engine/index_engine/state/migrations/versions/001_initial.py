"""Create index_executions and gameweek_decisions tables.

``index_executions`` holds one row per resumable indexing job; the
``version`` column guards concurrent saves.  ``gameweek_decisions`` holds the
per-(manager, gameweek) documents written by the unit indexer.

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000+00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_JsonType = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")


def upgrade() -> None:
    # ------------------------------------------------------------------
    # index_executions
    # ------------------------------------------------------------------
    op.create_table(
        "index_executions",
        sa.Column("execution_id", sa.String(64), primary_key=True),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("manager_id", sa.Integer(), nullable=True),
        sa.Column("league_id", sa.Integer(), nullable=True),
        sa.Column("manager_ids", _JsonType, nullable=True),
        sa.Column("current_manager_index", sa.Integer(), nullable=True),
        sa.Column("managers_processed", sa.Integer(), nullable=True),
        sa.Column("total_managers", sa.Integer(), nullable=True),
        sa.Column("from_gw", sa.Integer(), nullable=False),
        sa.Column("to_gw", sa.Integer(), nullable=False),
        sa.Column("current_gw", sa.Integer(), nullable=False),
        sa.Column("gameweeks_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("gameweeks_success", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("gameweeks_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("gameweeks_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("type IN ('manager','league')", name="ck_index_executions_type"),
        sa.CheckConstraint(
            "status IN ('pending','running','completed','failed')",
            name="ck_index_executions_status",
        ),
        sa.CheckConstraint("from_gw >= 1 AND to_gw >= from_gw", name="ck_index_executions_gw_range"),
    )
    op.create_index("ix_index_executions_status", "index_executions", ["status"])
    op.create_index("ix_index_executions_league", "index_executions", ["league_id", "created_at"])

    # ------------------------------------------------------------------
    # gameweek_decisions
    # ------------------------------------------------------------------
    op.create_table(
        "gameweek_decisions",
        sa.Column("decision_id", sa.String(64), primary_key=True),
        sa.Column("manager_id", sa.Integer(), nullable=False),
        sa.Column("gameweek", sa.Integer(), nullable=False),
        sa.Column("season", sa.String(8), nullable=False),
        sa.Column("league_ids", _JsonType, nullable=False),
        sa.Column("document", _JsonType, nullable=False),
        sa.Column(
            "indexed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_gameweek_decisions_manager_gw", "gameweek_decisions", ["manager_id", "gameweek"])
    op.create_index("ix_gameweek_decisions_season_gw", "gameweek_decisions", ["season", "gameweek"])


def downgrade() -> None:
    op.drop_index("ix_gameweek_decisions_season_gw", table_name="gameweek_decisions")
    op.drop_index("ix_gameweek_decisions_manager_gw", table_name="gameweek_decisions")
    op.drop_table("gameweek_decisions")

    op.drop_index("ix_index_executions_league", table_name="index_executions")
    op.drop_index("ix_index_executions_status", table_name="index_executions")
    op.drop_table("index_executions")
