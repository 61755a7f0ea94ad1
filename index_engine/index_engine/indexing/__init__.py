"""Unit indexing of manager gameweeks."""

from index_engine.indexing.service import GameweekIndexer
from index_engine.indexing.transformer import current_season, transform_to_gameweek_decision

__all__ = ["GameweekIndexer", "current_season", "transform_to_gameweek_decision"]
