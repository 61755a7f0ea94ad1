"""Gameweek decision documents written by the unit indexer.

One document captures everything a manager decided for a single gameweek:
the starting eleven and bench, armband choices, transfers, and the chip
played, along with the points those decisions produced.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def decision_id(manager_id: int, gameweek: int) -> str:
    """Return the stable document key for a (manager, gameweek) pair."""
    return f"{manager_id}-gw{gameweek}"


class TransferSummary(BaseModel):
    """A single transfer made ahead of the gameweek."""

    player_in_id: int
    player_in_name: str
    player_out_id: int
    player_out_name: str
    timestamp: str


class CaptainPick(BaseModel):
    player_id: int = 0
    name: str = "Unknown"
    points: int = 0
    ownership_percent: float = 0.0
    multiplier: int = 2


class ViceCaptainPick(BaseModel):
    player_id: int = 0
    name: str = "Unknown"


class SquadSlot(BaseModel):
    """A squad member with the points they scored in the gameweek."""

    player_id: int
    name: str
    position_index: int = Field(..., ge=1, le=15)
    points: int = 0
    element_type: str = "UNK"


class GameweekDecision(BaseModel):
    """Searchable record of one manager's decisions for one gameweek."""

    manager_id: int
    manager_name: str
    team_name: str
    league_ids: list[int] = Field(default_factory=list)
    gameweek: int = Field(..., ge=1)
    season: str

    transfers: list[TransferSummary] = Field(default_factory=list)
    captain: CaptainPick = Field(default_factory=CaptainPick)
    vice_captain: ViceCaptainPick = Field(default_factory=ViceCaptainPick)
    starters: list[SquadSlot] = Field(default_factory=list)
    bench: list[SquadSlot] = Field(default_factory=list)
    chip_used: str | None = None

    transfer_count: int = 0
    total_transfer_cost: int = 0
    gw_points: int = 0
    gw_rank: int | None = None
    points_on_bench: int = 0
    bank: int = 0
    team_value: int = 0

    indexed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def document_id(self) -> str:
        return decision_id(self.manager_id, self.gameweek)
