"""Request bodies for the indexing endpoints."""

from __future__ import annotations

from typing import Literal, Self

from pydantic import BaseModel, Field, model_validator

from index_engine.models.execution import MAX_STEPS_PER_CHUNK, MIN_STEPS_PER_CHUNK

MAX_ITERATIONS = 30


class OrchestrateRequest(BaseModel):
    """Request body for ``POST /index/orchestrate``."""

    type: Literal["manager", "league"] = Field(..., description="Scope of the indexing job.")
    manager_id: int | None = Field(default=None, ge=1, description="FPL entry id; required for manager jobs.")
    league_id: int | None = Field(default=None, ge=1, description="Classic league id; required for league jobs.")
    from_gw: int = Field(default=1, ge=1, description="First gameweek to index (inclusive).")
    to_gw: int | None = Field(
        default=None,
        ge=1,
        description="Last gameweek to index (inclusive); defaults to the current gameweek.",
    )
    max_steps: int | None = Field(
        default=None,
        ge=MIN_STEPS_PER_CHUNK,
        le=MAX_STEPS_PER_CHUNK,
        description="Units processed per chunk.",
    )
    max_iterations: int | None = Field(
        default=None,
        ge=1,
        le=MAX_ITERATIONS,
        description="Chunks run before returning; remaining work is resumed via the run endpoint.",
    )

    @model_validator(mode="after")
    def _validate_target(self) -> Self:
        if self.type == "manager" and self.manager_id is None:
            raise ValueError("manager_id is required when type is 'manager'")
        if self.type == "league" and self.league_id is None:
            raise ValueError("league_id is required when type is 'league'")
        if self.to_gw is not None and self.to_gw < self.from_gw:
            raise ValueError("to_gw must be >= from_gw")
        return self


class RunRequest(BaseModel):
    """Optional request body for ``POST /index/run/{execution_id}``.

    ``max_steps`` is not range-checked: 0 or a missing value means the
    configured default, anything else is clamped by the chunk runner.
    """

    max_steps: int | None = Field(default=None, description="Units processed in this chunk.")
