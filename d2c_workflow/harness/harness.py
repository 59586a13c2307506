"""Test harness — materializes comparison requests as test scripts, runs them, measures."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from d2c_workflow.errors import ArtifactNotFound, InvalidArtifact
from d2c_workflow.models.comparison import MeasurementResult
from d2c_workflow.models.config import WorkflowConfig
from d2c_workflow.models.comparison_request import DomTestRequest, VisualTestRequest

from .artifacts import write_dom_test, write_visual_test
from .output_parser import parse_dom_output, parse_visual_output
from .runner import TestRunner

logger = logging.getLogger(__name__)


def load_golden(golden_path: Path) -> list[dict]:
    """Load a golden DOM snapshot: a JSON list of element records.

    A ``{"elements": [...]}`` wrapper is accepted as well.
    """
    try:
        data = json.loads(golden_path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise InvalidArtifact(f"Golden snapshot {golden_path} is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("elements", [])
    if not isinstance(data, list):
        raise InvalidArtifact(f"Golden snapshot {golden_path} must be a list of elements")
    return [item for item in data if isinstance(item, dict)]


class TestHarness:
    """Generates, runs, and measures visual-regression and DOM-snapshot tests."""

    __test__ = False  # not a pytest test class

    def __init__(self, config: WorkflowConfig, runner: TestRunner | None = None):
        self.config = config
        self.runner = runner or TestRunner(config.runner_command, config.runner_timeout_seconds)
        self.output_dir = Path(config.output_dir)

    def run_visual_test(self, request: VisualTestRequest) -> MeasurementResult:
        """Screenshot the target, compare it with the baseline, and measure."""
        baseline = Path(request.baseline_path)
        if not baseline.is_file():
            raise ArtifactNotFound(str(baseline), kind="baseline image")

        defaults = self.config.visual
        max_diff_pixels = request.max_diff_pixels if request.max_diff_pixels is not None else defaults.max_diff_pixels
        threshold = request.threshold if request.threshold is not None else defaults.threshold
        viewport = request.viewport or defaults.viewport

        artifact = write_visual_test(
            tests_dir=self.config.tests_dir,
            screenshots_dir=self.config.screenshots_dir,
            test_name=request.test_name,
            target_url=request.target_url,
            baseline_path=baseline,
            max_diff_pixels=max_diff_pixels,
            threshold=threshold,
            viewport=viewport,
            phase=request.phase,
            iteration=request.iteration,
        )
        logger.info("Running visual test '%s' against %s", request.test_name, request.target_url)
        # A rerun within the same second reuses the summary path
        artifact.summary_path.unlink(missing_ok=True)
        run = self.runner.run(artifact.script_path, cwd=self.output_dir)
        result = parse_visual_output(run, artifact.summary_path, max_diff_pixels)
        result.raw_details.update({
            "script": str(artifact.script_path),
            "screenshot": str(artifact.screenshot_path),
        })
        logger.info(
            "Visual test '%s': %.2f%% (%d/%d passed)",
            request.test_name, result.success_rate, result.passed_count, result.total_count,
        )
        return result

    def run_dom_test(self, request: DomTestRequest) -> MeasurementResult:
        """Extract the selected elements from the target and match them to the golden snapshot."""
        golden_path = Path(request.golden_path)
        if not golden_path.is_file():
            raise ArtifactNotFound(str(golden_path), kind="golden snapshot")
        golden = load_golden(golden_path)

        artifact = write_dom_test(
            tests_dir=self.config.tests_dir,
            test_name=request.test_name,
            target_url=request.target_url,
            golden=golden,
            selectors=request.selectors,
            acceptance_floor=self.config.dom_acceptance_floor,
            text_max_length=self.config.dom_text_max_length,
            viewport=request.viewport or self.config.visual.viewport,
            phase=request.phase,
            iteration=request.iteration,
        )
        logger.info("Running DOM test '%s' against %s", request.test_name, request.target_url)
        run = self.runner.run(artifact.script_path, cwd=self.output_dir)
        result = parse_dom_output(run)
        result.raw_details["script"] = str(artifact.script_path)
        logger.info(
            "DOM test '%s': %.2f%% (%d/%d elements)",
            request.test_name, result.success_rate, result.passed_count, result.total_count,
        )
        return result
