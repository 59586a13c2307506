"""Phase engine — turns a measurement into a gated recommendation for the next step.

Phases:
    1. re-extraction of the design (targets layout-level parity)
    2. image-diff-guided correction
    3. structure-diff-guided correction

Each phase is a bounded iteration loop driven by the caller; the engine only
decides what should happen after the measurement it is given.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from d2c_workflow.models.config import PhaseTargets
from d2c_workflow.models.session import (
    PhaseEvaluation,
    PhaseEvaluationRequest,
    PhaseExecutionRecord,
)

from .session import SessionState

logger = logging.getLogger(__name__)

# A drop of more than this many points against the previous rate is a regression.
REGRESSION_TOLERANCE = 10.0

FINAL_PHASE = 3

PHASE_CORRECTIONS = {
    1: "re-extract the design and regenerate the code",
    2: "fix the regions highlighted by the image diff",
    3: "fix the missing, extra and mismatched elements reported by the DOM diff",
}


def decide(request: PhaseEvaluationRequest) -> tuple[str, str]:
    """Apply the gating rules in priority order; the first match wins."""
    rate = request.success_rate
    if request.iteration >= request.max_iterations:
        return "user_confirm", (
            f"Max iterations reached ({request.iteration}/{request.max_iterations}) "
            f"at {rate:.2f}%; ask the user how to proceed"
        )

    if request.previous_rates:
        delta = rate - request.previous_rates[-1]
        if delta < -REGRESSION_TOLERANCE:
            return "stop", (
                f"Regression detected: {rate:.2f}% is {abs(delta):.2f} points below "
                f"the previous {request.previous_rates[-1]:.2f}%"
            )

    if rate >= request.target_rate:
        if request.phase == FINAL_PHASE:
            return "complete", f"Target met ({rate:.2f}% >= {request.target_rate:.2f}%); workflow complete"
        return "next_phase", (
            f"Target met ({rate:.2f}% >= {request.target_rate:.2f}%); "
            f"proceed to phase {request.phase + 1}"
        )

    return "continue", (
        f"Target not yet met ({rate:.2f}% < {request.target_rate:.2f}%); "
        f"{PHASE_CORRECTIONS[request.phase]} and re-measure"
    )


def combine_rates(success_rates: float | Sequence[float]) -> float:
    """Average several measurements of one iteration into a single rate."""
    if isinstance(success_rates, (str, bytes)):
        raise TypeError(f"Success rates must be numbers, got {type(success_rates).__name__}")
    if isinstance(success_rates, (int, float)):
        return float(success_rates)
    rates = [float(r) for r in success_rates]
    if not rates:
        raise ValueError("At least one success rate is required")
    return sum(rates) / len(rates)


class PhaseEngine:
    """Evaluates phase measurements and records each evaluation in the session."""

    def __init__(self, session: SessionState, targets: PhaseTargets | None = None, max_iterations: int = 5):
        self.session = session
        self.targets = targets or PhaseTargets()
        self.max_iterations = max_iterations

    def evaluate(
        self,
        phase: int,
        success_rate: float | Sequence[float],
        target_rate: Optional[float] = None,
        iteration: int = 1,
        max_iterations: Optional[int] = None,
        previous_rates: Optional[Sequence[float]] = None,
    ) -> PhaseEvaluation:
        """Decide the next action for a phase measurement and record it.

        ``previous_rates`` of None means "use what the session has recorded
        for this phase"; an empty list disables regression detection.
        Invalid input raises pydantic.ValidationError and records nothing.
        """
        with self.session.lock:
            history = previous_rates
            if history is None and phase in (1, 2, 3):
                history = self.session.rates_for_phase(phase)

            request = PhaseEvaluationRequest(
                phase=phase,
                success_rate=combine_rates(success_rate),
                target_rate=target_rate if target_rate is not None else self._target_for(phase),
                iteration=iteration,
                max_iterations=max_iterations if max_iterations is not None else self.max_iterations,
                previous_rates=list(history or []),
            )
            recommendation, reason = decide(request)

            record = PhaseExecutionRecord(
                phase=request.phase,
                iteration=request.iteration,
                success_rate=request.success_rate,
                timestamp=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            )
            self.session.append(record)

        logger.info("Phase %d iteration %d: %.2f%% -> %s",
                    request.phase, request.iteration, request.success_rate, recommendation)
        return PhaseEvaluation(recommendation=recommendation, reason=reason, record=record)

    def _target_for(self, phase: int) -> float:
        # Unknown phases fall through to request validation
        if phase in (1, 2, 3):
            return self.targets.for_phase(phase)
        return 0.0
