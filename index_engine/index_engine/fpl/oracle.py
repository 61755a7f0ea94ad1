"""Current-gameweek lookup backed by ``bootstrap-static``."""

from __future__ import annotations

from typing import Any

from index_engine.fpl.client import FPLClient


def current_gameweek_from_bootstrap(bootstrap: dict[str, Any]) -> int | None:
    """Return the id of the event flagged ``is_current``, if any."""
    for event in bootstrap.get("events") or []:
        if event.get("is_current"):
            return int(event["id"])
    return None


class BootstrapOracle:
    """:class:`~index_engine.executor.base.CurrentGameweekOracle` over the FPL API."""

    def __init__(self, client: FPLClient) -> None:
        self._client = client

    async def current_gameweek(self) -> int | None:
        bootstrap = await self._client.get_bootstrap()
        return current_gameweek_from_bootstrap(bootstrap)
