"""Domain models for the indexing engine."""

from index_engine.models.decision import (
    CaptainPick,
    GameweekDecision,
    SquadSlot,
    TransferSummary,
    ViceCaptainPick,
    decision_id,
)
from index_engine.models.execution import (
    MAX_STEPS_PER_CHUNK,
    MIN_STEPS_PER_CHUNK,
    TERMINAL_STATUSES,
    ExecutionDocument,
    ExecutionStatus,
    ExecutionType,
    LeagueExecution,
    ManagerExecution,
    clamp_max_steps,
    parse_execution,
)

__all__ = [
    "MAX_STEPS_PER_CHUNK",
    "MIN_STEPS_PER_CHUNK",
    "TERMINAL_STATUSES",
    "CaptainPick",
    "ExecutionDocument",
    "ExecutionStatus",
    "ExecutionType",
    "GameweekDecision",
    "LeagueExecution",
    "ManagerExecution",
    "SquadSlot",
    "TransferSummary",
    "ViceCaptainPick",
    "clamp_max_steps",
    "decision_id",
    "parse_execution",
]
