"""Async HTTP client for the public Fantasy Premier League API.

Responses are returned as decoded JSON mappings; shaping them into domain
documents is the transformer's job.  ``bootstrap-static`` and live gameweek
scores are shared by every manager indexed in a process, so both are cached
under one TTL.  Live scores move until a gameweek is finalised; an expired
entry is simply fetched again.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Self

import httpx

from index_engine.config import Settings
from index_engine.fpl.retry import RetryConfig, async_retry_with_backoff

logger = logging.getLogger(__name__)


class FPLClientError(Exception):
    """Raised when the FPL API returns an error or an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FPLNotFoundError(FPLClientError):
    """The requested manager, league or gameweek does not exist upstream."""


class RateLimitedError(FPLClientError):
    """HTTP 429; ``retry_after`` holds the server's requested wait in seconds."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class UpstreamServerError(FPLClientError):
    """5xx response or a transport-level failure; safe to retry."""


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class FPLClient:
    """Thin async wrapper around the FPL REST API.

    Parameters
    ----------
    base_url:
        Root URL of the API (e.g. ``https://fantasy.premierleague.com/api``).
    timeout:
        Per-request timeout in seconds.
    user_agent:
        Sent on every request; the API rejects some default agents.
    retry:
        Backoff parameters for rate limits, 5xx responses and transport errors.
    cache_ttl:
        Seconds a cached ``bootstrap-static`` or live gameweek payload stays fresh.
    clock:
        Monotonic time source for cache expiry.
    transport:
        Optional httpx transport, used by tests to stub the network.
    """

    def __init__(
        self,
        base_url: str = "https://fantasy.premierleague.com/api",
        timeout: float = 10.0,
        user_agent: str = "FPL-Wrapped/1.0",
        retry: RetryConfig | None = None,
        cache_ttl: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._retry = retry or RetryConfig()
        self._cache_ttl = cache_ttl
        self._clock = clock
        # path -> (fetched_at, payload)
        self._cache: dict[str, tuple[float, Any]] = {}

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> Self:
        return cls(
            base_url=settings.fpl_base_url,
            timeout=settings.fpl_timeout,
            user_agent=settings.fpl_user_agent,
            retry=RetryConfig(
                max_retries=settings.fpl_max_retries,
                base_delay=settings.fpl_retry_base_delay,
                max_delay=settings.fpl_retry_max_delay,
            ),
            cache_ttl=settings.cache_ttl_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -- Endpoints -----------------------------------------------------------

    async def get_bootstrap(self) -> dict[str, Any]:
        """Return ``bootstrap-static`` (players, teams, positions, events)."""
        return await self._get_cached("/bootstrap-static/")

    async def get_manager_info(self, manager_id: int) -> dict[str, Any]:
        return await self._get(f"/entry/{manager_id}/")

    async def get_manager_transfers(self, manager_id: int) -> list[dict[str, Any]]:
        return await self._get(f"/entry/{manager_id}/transfers/")

    async def get_gameweek_picks(self, manager_id: int, gameweek: int) -> dict[str, Any]:
        """Return the squad, armbands, chip and entry history for one gameweek."""
        return await self._get(f"/entry/{manager_id}/event/{gameweek}/picks/")

    async def get_live_gameweek(self, gameweek: int) -> dict[str, Any]:
        """Return per-player live stats for *gameweek*."""
        return await self._get_cached(f"/event/{gameweek}/live/")

    async def get_league_standings(self, league_id: int, page: int = 1) -> dict[str, Any]:
        return await self._get(
            f"/leagues-classic/{league_id}/standings/",
            params={"page_standings": page},
        )

    def clear_caches(self) -> None:
        self._cache.clear()

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    # -- Internal helpers ----------------------------------------------------

    async def _get_cached(self, path: str) -> Any:
        now = self._clock()
        entry = self._cache.get(path)
        if entry is not None and now - entry[0] < self._cache_ttl:
            return entry[1]
        data = await self._get(path)
        self._cache[path] = (now, data)
        return data

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET *path* with retry, returning the decoded JSON body.

        Raises
        ------
        FPLNotFoundError
            On HTTP 404.
        FPLClientError
            On any other 4xx, on a non-JSON body, or once retries for
            rate limits and server errors are exhausted.
        """

        async def _attempt() -> Any:
            try:
                response = await self._client.get(path, params=params)
            except httpx.TransportError as exc:
                raise UpstreamServerError(f"FPL API unreachable for {path}: {exc}") from exc

            if response.status_code == 429:
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                logger.warning("Rate limited on %s (retry after %s)", path, retry_after)
                raise RateLimitedError(f"FPL API rate limited {path}", retry_after=retry_after)
            if response.status_code >= 500:
                raise UpstreamServerError(
                    f"FPL API error {response.status_code} for {path}",
                    status_code=response.status_code,
                )
            if response.status_code == 404:
                raise FPLNotFoundError(f"FPL API returned 404 for {path}", status_code=404)
            if response.status_code >= 400:
                raise FPLClientError(
                    f"FPL API error {response.status_code} for {path}",
                    status_code=response.status_code,
                )

            try:
                return response.json()
            except ValueError as exc:
                raise FPLClientError(f"FPL API returned invalid JSON for {path}") from exc

        return await async_retry_with_backoff(
            _attempt,
            self._retry,
            retryable_exceptions=(RateLimitedError, UpstreamServerError),
        )
