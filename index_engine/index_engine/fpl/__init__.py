"""Fantasy Premier League API access."""

from index_engine.fpl.client import (
    FPLClient,
    FPLClientError,
    FPLNotFoundError,
    RateLimitedError,
    UpstreamServerError,
)
from index_engine.fpl.oracle import BootstrapOracle, current_gameweek_from_bootstrap
from index_engine.fpl.standings import resolve_league_manager_ids

__all__ = [
    "BootstrapOracle",
    "FPLClient",
    "FPLClientError",
    "FPLNotFoundError",
    "RateLimitedError",
    "UpstreamServerError",
    "current_gameweek_from_bootstrap",
    "resolve_league_manager_ids",
]
