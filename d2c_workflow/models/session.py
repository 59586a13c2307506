"""Phase execution ledger data structures."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Recommendation = Literal["continue", "next_phase", "complete", "stop", "user_confirm"]


class PhaseExecutionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: Literal[1, 2, 3]
    iteration: int = Field(ge=1)
    success_rate: float
    timestamp: str  # ISO timestamp


class PhaseEvaluationRequest(BaseModel):
    """Validated input of a single phase evaluation."""
    phase: Literal[1, 2, 3]
    success_rate: float = Field(ge=0, le=100)
    target_rate: float = Field(ge=0, le=100)
    iteration: int = Field(ge=1)
    max_iterations: int = Field(ge=1)
    previous_rates: list[float] = Field(default_factory=list)

    @field_validator("previous_rates")
    @classmethod
    def check_previous_rates(cls, v: list[float]) -> list[float]:
        for rate in v:
            if not 0 <= rate <= 100:
                raise ValueError(f"Previous rate out of range: {rate}")
        return v


class PhaseEvaluation(BaseModel):
    recommendation: Recommendation
    reason: str
    record: PhaseExecutionRecord


class SessionSnapshot(BaseModel):
    records: list[PhaseExecutionRecord] = Field(default_factory=list)
    phases_executed: dict[int, bool] = Field(
        default_factory=lambda: {1: False, 2: False, 3: False}
    )
    current_phase: Optional[int] = None
    started: bool = False
    completed: bool = False
    started_at: Optional[str] = None


class SessionSummary(BaseModel):
    records: list[PhaseExecutionRecord] = Field(default_factory=list)
    total_executions: int = 0
    phases_executed: list[int] = Field(default_factory=list)
    final_phase: Optional[int] = None
    final_success_rate: Optional[float] = None
    best_rate_per_phase: dict[int, float] = Field(default_factory=dict)
    notes: str = ""
    started_at: Optional[str] = None
    completed_at: str = ""
    completed: bool = False
