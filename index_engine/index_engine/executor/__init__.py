"""Execution creation and chunked step execution."""

from index_engine.executor.base import CurrentGameweekOracle, UnitIndexer
from index_engine.executor.factory import ExecutionFactory, ExecutionValidationError
from index_engine.executor.runner import ChunkRunner

__all__ = [
    "ChunkRunner",
    "CurrentGameweekOracle",
    "ExecutionFactory",
    "ExecutionValidationError",
    "UnitIndexer",
]
