"""Workflow orchestrator — the inbound operations of the comparison-and-gating engine."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from d2c_workflow.comparison.dom_comparator import compare_dom
from d2c_workflow.comparison.image_comparator import ImageSource, compare_images
from d2c_workflow.harness.harness import TestHarness
from d2c_workflow.harness.runner import TestRunner
from d2c_workflow.models.comparison import (
    DomCompareResult,
    ImageCompareResult,
    MeasurementResult,
)
from d2c_workflow.models.config import ViewportConfig, WorkflowConfig
from d2c_workflow.models.session import PhaseEvaluation, SessionSnapshot, SessionSummary
from d2c_workflow.models.comparison_request import DomTestRequest, VisualTestRequest
from d2c_workflow.workflow.phase_engine import PhaseEngine
from d2c_workflow.workflow.session import SessionState

logger = logging.getLogger(__name__)


class Orchestrator:
    """Owns one workflow session and exposes the measurement and gating operations.

    Calls are synchronous. A failed measurement raises and leaves the session
    untouched; only successful phase evaluations are recorded.
    """

    def __init__(
        self,
        config: WorkflowConfig | None = None,
        session: SessionState | None = None,
        runner: TestRunner | None = None,
    ):
        self.config = config or WorkflowConfig()
        self.session = session or SessionState()
        self.harness = TestHarness(self.config, runner=runner)
        self.engine = PhaseEngine(
            self.session,
            targets=self.config.phase_targets,
            max_iterations=self.config.max_iterations,
        )

    def compare_images(
        self,
        original: ImageSource,
        rendered: ImageSource,
        threshold: Optional[float] = None,
        generate_diff: bool = False,
    ) -> ImageCompareResult:
        if threshold is None:
            threshold = self.config.visual.threshold
        return compare_images(original, rendered, threshold=threshold, generate_diff=generate_diff)

    def compare_dom(self, expected_tree: Any, actual_tree: Any) -> DomCompareResult:
        return compare_dom(expected_tree, actual_tree)

    def run_visual_test(
        self,
        test_name: str,
        target_url: str,
        baseline_path: str,
        max_diff_pixels: Optional[int] = None,
        threshold: Optional[float] = None,
        phase: int = 1,
        iteration: int = 1,
        viewport: Optional[ViewportConfig] = None,
    ) -> MeasurementResult:
        request = VisualTestRequest(
            test_name=test_name,
            target_url=target_url,
            baseline_path=baseline_path,
            max_diff_pixels=max_diff_pixels,
            threshold=threshold,
            phase=phase,
            iteration=iteration,
            viewport=viewport,
        )
        return self.harness.run_visual_test(request)

    def run_dom_test(
        self,
        test_name: str,
        target_url: str,
        golden_path: str,
        selectors: Optional[Sequence[str]] = None,
        phase: int = 3,
        iteration: int = 1,
    ) -> MeasurementResult:
        request = DomTestRequest(
            test_name=test_name,
            target_url=target_url,
            golden_path=golden_path,
            phase=phase,
            iteration=iteration,
            **({"selectors": list(selectors)} if selectors else {}),
        )
        return self.harness.run_dom_test(request)

    def evaluate_phase(
        self,
        phase: int,
        success_rates: float | Sequence[float],
        target_rate: Optional[float] = None,
        iteration: int = 1,
        max_iterations: Optional[int] = None,
        previous_rates: Optional[Sequence[float]] = None,
    ) -> PhaseEvaluation:
        return self.engine.evaluate(
            phase=phase,
            success_rate=success_rates,
            target_rate=target_rate,
            iteration=iteration,
            max_iterations=max_iterations,
            previous_rates=previous_rates,
        )

    def get_session_state(self) -> SessionSnapshot:
        return self.session.snapshot()

    def complete_session(self, notes: str = "") -> SessionSummary:
        return self.session.complete(notes)
