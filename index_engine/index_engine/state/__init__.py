"""Persistence layer: execution store backends and decision storage."""

from index_engine.state.memory import InMemoryExecutionStore
from index_engine.state.repository import ExecutionRepository, GameweekDecisionRepository
from index_engine.state.store import ExecutionConflictError, ExecutionStore

__all__ = [
    "ExecutionConflictError",
    "ExecutionRepository",
    "ExecutionStore",
    "GameweekDecisionRepository",
    "InMemoryExecutionStore",
]
