"""Resolve the members of a classic league from its standings pages."""

from __future__ import annotations

import logging

from index_engine.fpl.client import FPLClient, FPLNotFoundError

logger = logging.getLogger(__name__)


async def resolve_league_manager_ids(client: FPLClient, league_id: int, max_pages: int = 1) -> list[int]:
    """Collect manager (entry) ids from a league's standings.

    Pages are walked in order while the API reports ``has_next`` and fewer
    than *max_pages* have been read.  Ids keep standings order with
    duplicates dropped, since a manager can shift pages between requests.

    Returns an empty list when the league does not exist.
    """
    manager_ids: list[int] = []
    seen: set[int] = set()

    for page in range(1, max_pages + 1):
        try:
            data = await client.get_league_standings(league_id, page)
        except FPLNotFoundError:
            logger.info("League %d not found upstream", league_id)
            return []

        standings = data.get("standings") or {}
        for row in standings.get("results") or []:
            entry = row.get("entry")
            if entry is None or entry in seen:
                continue
            seen.add(entry)
            manager_ids.append(int(entry))

        if not standings.get("has_next"):
            break

    logger.debug("Resolved %d managers for league %d", len(manager_ids), league_id)
    return manager_ids
