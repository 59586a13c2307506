"""Runner output parsing — structured results first, text patterns as a last resort."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Optional

from d2c_workflow.errors import RunnerTimeout, UnparsableRunnerOutput
from d2c_workflow.harness.artifacts import DOM_RESULT_MARKER
from d2c_workflow.harness.runner import RunnerOutput
from d2c_workflow.models.comparison import MeasurementResult, success_rate

logger = logging.getLogger(__name__)

_PASSED_RE = re.compile(r"(\d+)\s+passed")
_FAILED_RE = re.compile(r"(\d+)\s+failed")
_ERROR_RE = re.compile(r"(\d+)\s+errors?\b")
_DIFF_PIXELS_RE = re.compile(r"(\d+)\s+pixels\s+\(ratio\s+[\d.]+\s+of all image pixels\)\s+are different")
_MAX_DIFF_RE = re.compile(r"maxDiffPixels\s*[=:]\s*(\d+)")
_DOM_RESULT_RE = re.compile(re.escape(DOM_RESULT_MARKER) + r"\s*(\{.*\})")


def _unparsable(run: RunnerOutput, message: str) -> Exception:
    if run.timed_out:
        return RunnerTimeout(run.timeout_seconds, run.output)
    return UnparsableRunnerOutput(run.output, message)


def from_summary_file(summary_path: Path) -> Optional[MeasurementResult]:
    """Read the JSON summary a visual test writes, if it exists and is valid."""
    if not summary_path.exists():
        return None
    try:
        data = json.loads(summary_path.read_text(encoding="utf-8"))
        passed = int(data.get("passed", 0))
        failed = int(data.get("failed", 0))
        rate = data.get("successRate")
        rate = success_rate(passed, passed + failed) if rate is None else float(rate)
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning("Ignoring unreadable summary %s: %s", summary_path, e)
        return None

    total = passed + failed
    logger.debug("Parsed summary file %s", summary_path)
    return MeasurementResult(
        kind="pixel",
        success_rate=max(0.0, min(100.0, rate)),
        passed_count=passed,
        total_count=total,
        raw_details={"source": "summary", **data},
    )


def from_count_pattern(output: str) -> Optional[MeasurementResult]:
    """Recover passed/failed counts from the runner's summary line."""
    passed_m = _PASSED_RE.search(output)
    failed_m = _FAILED_RE.search(output)
    if not passed_m and not failed_m:
        return None
    passed = int(passed_m.group(1)) if passed_m else 0
    failed = int(failed_m.group(1)) if failed_m else 0
    error_m = _ERROR_RE.search(output)
    errors = int(error_m.group(1)) if error_m else 0
    total = passed + failed + errors
    logger.debug("Parsed counts from output: %d passed, %d failed, %d errors", passed, failed, errors)
    return MeasurementResult(
        kind="pixel",
        success_rate=success_rate(passed, total),
        passed_count=passed,
        total_count=total,
        raw_details={"source": "counts", "passed": passed, "failed": failed, "errors": errors},
    )


def from_diff_pattern(output: str, max_diff_pixels: int) -> Optional[MeasurementResult]:
    """Derive a rate from a reported differing-pixel count and the pixel budget."""
    diff_m = _DIFF_PIXELS_RE.search(output)
    if not diff_m:
        return None
    diff_pixels = int(diff_m.group(1))
    max_m = _MAX_DIFF_RE.search(output)
    budget = int(max_m.group(1)) if max_m else max_diff_pixels
    if budget > 0:
        rate = max(0.0, 100 - diff_pixels / budget * 100)
    else:
        rate = 100.0 if diff_pixels == 0 else 0.0
    logger.debug("Parsed diff pixels from output: %d (budget %d)", diff_pixels, budget)
    return MeasurementResult(
        kind="pixel",
        success_rate=round(rate, 2),
        passed_count=1 if diff_pixels <= budget else 0,
        total_count=1,
        raw_details={"source": "diff_pixels", "diffPixels": diff_pixels, "maxDiffPixels": budget},
    )


def parse_visual_output(run: RunnerOutput, summary_path: Path, max_diff_pixels: int) -> MeasurementResult:
    """Turn a visual test run into a measurement.

    Tried in order: JSON summary file, passed/failed counts, differing-pixel
    count. Raises UnparsableRunnerOutput (RunnerTimeout for a killed run)
    when none applies.
    """
    for parse in (
        lambda: from_summary_file(summary_path),
        lambda: from_count_pattern(run.output),
        lambda: from_diff_pattern(run.output, max_diff_pixels),
    ):
        result = parse()
        if result is not None:
            result.raw_details.setdefault("exitCode", run.exit_code)
            result.raw_details["timedOut"] = run.timed_out
            return result
    raise _unparsable(run, "No summary file, test counts or pixel counts in runner output")


def parse_dom_output(run: RunnerOutput) -> MeasurementResult:
    """Extract the DOM comparison result line printed by a DOM snapshot test."""
    match = _DOM_RESULT_RE.search(run.output)
    if not match:
        raise _unparsable(run, f"No '{DOM_RESULT_MARKER}' line in runner output")
    try:
        data = json.loads(match.group(1))
        percentage = float(data["matchPercentage"])
    except (ValueError, KeyError, TypeError) as e:
        raise UnparsableRunnerOutput(run.output, f"Malformed DOM result line: {e}") from e

    return MeasurementResult(
        kind="dom",
        success_rate=max(0.0, min(100.0, percentage)),
        passed_count=int(data.get("matched", 0)),
        total_count=int(data.get("total", 0)),
        raw_details={
            "source": "result_line",
            "exitCode": run.exit_code,
            "timedOut": run.timed_out,
            **data,
        },
    )
