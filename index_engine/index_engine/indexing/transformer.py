"""Shape raw FPL payloads into :class:`GameweekDecision` documents."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from index_engine.models.decision import (
    CaptainPick,
    GameweekDecision,
    SquadSlot,
    TransferSummary,
    ViceCaptainPick,
)

_STARTING_SLOTS = 11


def current_season(now: datetime | None = None) -> str:
    """Return the season label (``"25/26"``) for *now*; seasons start in August."""
    now = now or datetime.now(UTC)
    year = now.year
    if now.month >= 8:
        return f"{year % 100:02d}/{(year + 1) % 100:02d}"
    return f"{(year - 1) % 100:02d}/{year % 100:02d}"


class _BootstrapLookup:
    """Id-indexed views over ``bootstrap-static`` and live gameweek data."""

    def __init__(self, bootstrap: dict[str, Any], live: dict[str, Any]) -> None:
        self.players = {p["id"]: p for p in bootstrap.get("elements") or []}
        self.positions = {t["id"]: t.get("singular_name_short") for t in bootstrap.get("element_types") or []}
        self.points = {e["id"]: (e.get("stats") or {}).get("total_points", 0) for e in live.get("elements") or []}

    def name(self, player_id: int) -> str:
        player = self.players.get(player_id)
        return (player or {}).get("web_name") or "Unknown"

    def position(self, player_id: int) -> str:
        player = self.players.get(player_id)
        if player is None:
            return "UNK"
        return self.positions.get(player.get("element_type")) or "UNK"

    def ownership(self, player_id: int) -> float:
        player = self.players.get(player_id) or {}
        try:
            return float(player.get("selected_by_percent") or 0)
        except (TypeError, ValueError):
            return 0.0

    def slot(self, pick: dict[str, Any]) -> SquadSlot:
        player_id = pick["element"]
        return SquadSlot(
            player_id=player_id,
            name=self.name(player_id),
            position_index=pick["position"],
            points=self.points.get(player_id, 0),
            element_type=self.position(player_id),
        )


def _unique_league_ids(league_ids: Iterable[int]) -> list[int]:
    seen: dict[int, None] = {}
    for league_id in league_ids:
        seen.setdefault(int(league_id), None)
    return list(seen)


def transform_to_gameweek_decision(
    manager_id: int,
    manager_info: dict[str, Any],
    gameweek: int,
    picks: dict[str, Any],
    transfers: list[dict[str, Any]],
    live: dict[str, Any],
    bootstrap: dict[str, Any],
    league_ids: Iterable[int] = (),
    *,
    now: datetime | None = None,
) -> GameweekDecision:
    """Build the decision document for one manager and gameweek.

    Parameters
    ----------
    manager_info:
        ``/entry/{id}/`` payload (names).
    picks:
        ``/entry/{id}/event/{gw}/picks/`` payload (squad, chip, entry history).
    transfers:
        The manager's full transfer list; only those made for *gameweek* are kept.
    live:
        ``/event/{gw}/live/`` payload, used for per-player points.
    bootstrap:
        ``bootstrap-static`` payload, used for names, positions and ownership.

    Raises
    ------
    KeyError
        If a required field is missing from the upstream payloads.
    """
    lookup = _BootstrapLookup(bootstrap, live)
    squad = sorted(picks.get("picks") or [], key=lambda p: p["position"])
    entry_history = picks["entry_history"]

    starters = [lookup.slot(p) for p in squad if p["position"] <= _STARTING_SLOTS]
    bench = [lookup.slot(p) for p in squad if p["position"] > _STARTING_SLOTS]

    gw_transfers = [
        TransferSummary(
            player_in_id=t["element_in"],
            player_in_name=lookup.name(t["element_in"]),
            player_out_id=t["element_out"],
            player_out_name=lookup.name(t["element_out"]),
            timestamp=t.get("time", ""),
        )
        for t in transfers
        if t.get("event") == gameweek
    ]

    captain = next((p for p in squad if p.get("is_captain")), None)
    vice = next((p for p in squad if p.get("is_vice_captain")), None)

    captain_pick = CaptainPick()
    if captain is not None:
        captain_pick = CaptainPick(
            player_id=captain["element"],
            name=lookup.name(captain["element"]),
            points=lookup.points.get(captain["element"], 0),
            ownership_percent=lookup.ownership(captain["element"]),
            multiplier=captain.get("multiplier") or 2,
        )

    vice_pick = ViceCaptainPick()
    if vice is not None:
        vice_pick = ViceCaptainPick(player_id=vice["element"], name=lookup.name(vice["element"]))

    first = manager_info.get("player_first_name", "")
    last = manager_info.get("player_last_name", "")
    now = now or datetime.now(UTC)

    return GameweekDecision(
        manager_id=manager_id,
        manager_name=f"{first} {last}".strip(),
        team_name=manager_info.get("name", ""),
        league_ids=_unique_league_ids(league_ids),
        gameweek=gameweek,
        season=current_season(now),
        transfers=gw_transfers,
        captain=captain_pick,
        vice_captain=vice_pick,
        starters=starters,
        bench=bench,
        chip_used=picks.get("active_chip"),
        transfer_count=len(gw_transfers),
        total_transfer_cost=entry_history.get("event_transfers_cost") or 0,
        gw_points=entry_history.get("points") or 0,
        gw_rank=entry_history.get("overall_rank"),
        points_on_bench=sum(slot.points for slot in bench),
        bank=entry_history.get("bank") or 0,
        team_value=entry_history.get("value") or 0,
        indexed_at=now,
    )
