"""Execution documents for resumable indexing jobs.

An execution tracks one indexing job from creation to a terminal state.  Two
job shapes exist: a *manager* job walks a single manager's gameweek range, a
*league* job walks the same range for every manager in a fixed list.  Both
share the counters and cursor fields declared on :class:`_ExecutionBase`; the
shape-specific fields only exist on their own variant so that, for example, a
manager execution can never carry ``manager_ids``.

Documents are mutated in place by the chunk runner and persisted through an
:class:`~index_engine.state.store.ExecutionStore`.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Self

from pydantic import BaseModel, Field, TypeAdapter, model_validator

# Bounds applied to the per-chunk step budget regardless of what callers ask for.
MIN_STEPS_PER_CHUNK = 1
MAX_STEPS_PER_CHUNK = 50
DEFAULT_STEPS_PER_CHUNK = 5


def _utcnow() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(UTC)


def clamp_max_steps(max_steps: int) -> int:
    """Normalise a requested step budget into ``[1, 50]``."""
    return max(MIN_STEPS_PER_CHUNK, min(max_steps, MAX_STEPS_PER_CHUNK))


def _round_percentage(numerator: int, denominator: int) -> int:
    # Half-up rounding so 2.5% reports as 3%, not banker's 2%.
    return math.floor(numerator / denominator * 100 + 0.5)


class ExecutionType(str, Enum):
    """Scope of an indexing job."""

    MANAGER = "manager"
    LEAGUE = "league"


class ExecutionStatus(str, Enum):
    """Lifecycle state of an execution.

    Transitions only move forward: PENDING -> RUNNING -> COMPLETED | FAILED.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES: frozenset[ExecutionStatus] = frozenset({ExecutionStatus.COMPLETED, ExecutionStatus.FAILED})


class _ExecutionBase(BaseModel):
    """Fields and behaviour shared by both execution variants."""

    execution_id: str = Field(..., min_length=1, description="Opaque identifier assigned at creation.")
    status: ExecutionStatus = Field(default=ExecutionStatus.PENDING)

    from_gw: int = Field(..., ge=1, description="First gameweek of the range (inclusive).")
    to_gw: int = Field(..., ge=1, description="Last gameweek of the range (inclusive).")
    current_gw: int = Field(..., ge=1, description="Gameweek cursor; next unit to process.")

    gameweeks_processed: int = Field(default=0, ge=0)
    gameweeks_success: int = Field(default=0, ge=0)
    gameweeks_failed: int = Field(default=0, ge=0)
    gameweeks_skipped: int = Field(default=0, ge=0)

    message: str = ""
    error: str | None = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    # Optimistic-concurrency counter, incremented by every successful save.
    version: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _validate_range(self) -> Self:
        if self.to_gw < self.from_gw:
            raise ValueError(f"to_gw ({self.to_gw}) must be >= from_gw ({self.from_gw})")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def gameweek_range_size(self) -> int:
        return self.to_gw - self.from_gw + 1

    @property
    def total_units(self) -> int:
        """Number of (manager, gameweek) units the job accounts for when done."""
        return self.gameweek_range_size

    @property
    def gameweeks_percentage(self) -> int:
        total = self.total_units
        if total <= 0:
            return 0
        return _round_percentage(self.gameweeks_processed, total)

    @property
    def managers_percentage(self) -> int | None:
        return None

    def mark_running(self) -> None:
        """Enter RUNNING, stamping ``started_at`` on the first call only."""
        if self.started_at is None:
            self.started_at = _utcnow()
        self.status = ExecutionStatus.RUNNING

    def mark_completed(self, message: str) -> None:
        self.status = ExecutionStatus.COMPLETED
        self.completed_at = _utcnow()
        self.message = message

    def mark_failed(self, error: BaseException | str) -> None:
        self.status = ExecutionStatus.FAILED
        self.completed_at = _utcnow()
        self.error = str(error) or type(error).__name__
        self.message = "Indexing failed"

    def record_outcome(self, *, skipped: bool = False, success: bool = False) -> None:
        """Account for one processed unit, keeping processed = success + failed + skipped."""
        if skipped:
            self.gameweeks_skipped += 1
        elif success:
            self.gameweeks_success += 1
        else:
            self.gameweeks_failed += 1
        self.gameweeks_processed += 1

    def outcome_summary(self) -> str:
        return f"{self.gameweeks_success} success, {self.gameweeks_failed} failed, {self.gameweeks_skipped} skipped"


class ManagerExecution(_ExecutionBase):
    """Indexing job for one manager across a gameweek range."""

    type: Literal["manager"] = "manager"
    manager_id: int = Field(..., ge=1)

    @model_validator(mode="after")
    def _validate_cursor(self) -> Self:
        if self.current_gw > self.to_gw + 1:
            raise ValueError("current_gw may not run more than one past to_gw")
        return self

    def progress_message(self) -> str:
        return (
            f"Indexing manager {self.manager_id}: "
            f"{self.gameweeks_processed}/{self.gameweek_range_size} gameweeks processed"
        )

    def completion_message(self) -> str:
        return f"Manager {self.manager_id} indexing complete: {self.outcome_summary()}"


class LeagueExecution(_ExecutionBase):
    """Indexing job for every manager of a classic league.

    ``manager_ids`` is resolved once at creation time and never changes; the
    job walks it in order, finishing one manager's full range before the next.
    """

    type: Literal["league"] = "league"
    league_id: int = Field(..., ge=1)
    manager_ids: list[int] = Field(..., min_length=1)
    current_manager_index: int = Field(default=0, ge=0)
    managers_processed: int = Field(default=0, ge=0)
    total_managers: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _fill_total_managers(self) -> Self:
        if self.total_managers == 0:
            self.total_managers = len(self.manager_ids)
        return self

    @property
    def current_manager_id(self) -> int | None:
        """Manager under the cursor, or ``None`` once the list is exhausted."""
        if self.current_manager_index >= len(self.manager_ids):
            return None
        return self.manager_ids[self.current_manager_index]

    @property
    def total_units(self) -> int:
        return self.gameweek_range_size * self.total_managers

    @property
    def managers_percentage(self) -> int | None:
        if self.total_managers <= 0:
            return None
        return _round_percentage(self.managers_processed, self.total_managers)

    def progress_message(self) -> str:
        return (
            f"Indexing league {self.league_id}: "
            f"{self.managers_processed}/{self.total_managers} managers, "
            f"{self.gameweeks_processed} gameweeks processed"
        )

    def completion_message(self) -> str:
        return (
            f"League {self.league_id} indexing complete: "
            f"{self.managers_processed}/{self.total_managers} managers, {self.outcome_summary()}"
        )


ExecutionDocument = Annotated[ManagerExecution | LeagueExecution, Field(discriminator="type")]

_DOCUMENT_ADAPTER: TypeAdapter[ManagerExecution | LeagueExecution] = TypeAdapter(ExecutionDocument)


def parse_execution(data: dict[str, Any]) -> ManagerExecution | LeagueExecution:
    """Build the right execution variant from a plain mapping."""
    return _DOCUMENT_ADAPTER.validate_python(data)
