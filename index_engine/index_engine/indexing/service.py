"""Unit indexing: fetch, transform and store one manager gameweek."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine

from index_engine.fpl.client import FPLClient, FPLClientError
from index_engine.indexing.transformer import transform_to_gameweek_decision
from index_engine.state.database import get_session
from index_engine.state.repository import GameweekDecisionRepository

logger = logging.getLogger(__name__)


class GameweekIndexer:
    """Default :class:`~index_engine.executor.base.UnitIndexer`.

    Upstream failures and malformed payloads only fail the unit: they are
    logged and reported as ``False``.  Database errors propagate so the
    runner can fail the execution rather than count a silent loss.
    """

    def __init__(self, client: FPLClient, engine: AsyncEngine) -> None:
        self._client = client
        self._engine = engine

    async def index_manager_gameweek(
        self,
        manager_id: int,
        gameweek: int,
        league_ids: Sequence[int] = (),
    ) -> bool:
        try:
            bootstrap, manager_info, picks, transfers, live = await self._fetch(manager_id, gameweek)
            decision = transform_to_gameweek_decision(
                manager_id,
                manager_info,
                gameweek,
                picks,
                transfers,
                live,
                bootstrap,
                league_ids,
            )
        except FPLClientError as exc:
            logger.warning("Failed to fetch manager %d gameweek %d: %s", manager_id, gameweek, exc)
            return False
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Unusable FPL data for manager %d gameweek %d: %r", manager_id, gameweek, exc)
            return False

        async with get_session(self._engine) as session:
            await GameweekDecisionRepository(session).upsert(decision)

        logger.debug("Indexed %s", decision.document_id)
        return True

    async def _fetch(self, manager_id: int, gameweek: int) -> tuple[Any, Any, Any, Any, Any]:
        """Fetch every payload a unit needs concurrently.

        The first failure cancels the requests still in flight and is
        re-raised on its own.
        """
        try:
            async with asyncio.TaskGroup() as tg:
                bootstrap = tg.create_task(self._client.get_bootstrap())
                manager_info = tg.create_task(self._client.get_manager_info(manager_id))
                picks = tg.create_task(self._client.get_gameweek_picks(manager_id, gameweek))
                transfers = tg.create_task(self._client.get_manager_transfers(manager_id))
                live = tg.create_task(self._client.get_live_gameweek(gameweek))
        except ExceptionGroup as group:
            raise group.exceptions[0] from None
        return bootstrap.result(), manager_info.result(), picks.result(), transfers.result(), live.result()
