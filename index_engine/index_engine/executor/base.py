"""Collaborator interfaces consumed by the chunk runner.

Implementations are **not** required to subclass these protocols; they only
need to expose methods with matching signatures (duck typing).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol


class CurrentGameweekOracle(Protocol):
    """Source of the season's current gameweek."""

    async def current_gameweek(self) -> int | None:
        """Return the gameweek currently in play, or ``None`` if none is.

        Gameweeks at or before the returned value are playable; later ones
        have no data yet and are skipped by the runner.
        """
        ...


class UnitIndexer(Protocol):
    """Indexes a single (manager, gameweek) unit."""

    async def index_manager_gameweek(
        self,
        manager_id: int,
        gameweek: int,
        league_ids: Sequence[int] = (),
    ) -> bool:
        """Fetch, transform and store one gameweek for one manager.

        Parameters
        ----------
        manager_id:
            FPL entry id of the manager.
        gameweek:
            Gameweek number to index.
        league_ids:
            Leagues the manager is being indexed on behalf of; recorded on
            the stored document.

        Returns
        -------
        bool
            ``True`` when the unit was stored, ``False`` for a recoverable
            failure of this unit alone (missing upstream data and the like).
            Infrastructure failures are raised instead.
        """
        ...
