"""Engine configuration loaded from environment variables."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Engine settings loaded from environment variables with INDEX_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="INDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    debug: bool = False

    # Upstream FPL API
    fpl_base_url: str = "https://fantasy.premierleague.com/api"
    fpl_timeout: float = 10.0
    fpl_user_agent: str = "FPL-Wrapped/1.0"
    fpl_max_retries: int = Field(default=3, ge=0)
    fpl_retry_base_delay: float = Field(default=1.0, gt=0.0)
    fpl_retry_max_delay: float = Field(default=30.0, gt=0.0)

    # Seconds a bootstrap-static or live gameweek payload is reused before refetching.
    cache_ttl_seconds: float = Field(default=300.0, ge=0.0)

    # Classic-league standings pages walked when resolving league members.
    standings_max_pages: int = Field(default=1, ge=1)

    # Assumed last gameweek when no event is flagged as current.
    fallback_current_gw: int = Field(default=38, ge=1)


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info("Loaded engine settings (FPL API at %s)", settings.fpl_base_url)

    return settings
