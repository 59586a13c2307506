"""Test artifact generation — renders self-contained pytest/Playwright scripts."""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from string import Template

from d2c_workflow.models.config import ViewportConfig

logger = logging.getLogger(__name__)

DOM_RESULT_MARKER = "DOM_COMPARISON_RESULT:"

_VISUAL_TEMPLATE = Template('''\
$docstring

import json
import shutil
from pathlib import Path

from playwright.sync_api import sync_playwright

from d2c_workflow.comparison.image_comparator import compare_images

TARGET_URL = $target_url
BASELINE_PATH = Path($baseline_path)
SCREENSHOT_PATH = Path($screenshot_path)
BASELINE_COPY_PATH = Path($baseline_copy_path)
SUMMARY_PATH = Path($summary_path)
MAX_DIFF_PIXELS = $max_diff_pixels
THRESHOLD = $threshold
VIEWPORT = {"width": $width, "height": $height}
DEVICE_SCALE_FACTOR = $device_scale_factor


def test_$func_name():
    with sync_playwright() as p:
        browser = p.chromium.launch()
        try:
            page = browser.new_page(viewport=VIEWPORT, device_scale_factor=DEVICE_SCALE_FACTOR)
            page.goto(TARGET_URL)
            page.wait_for_load_state("networkidle")
            SCREENSHOT_PATH.parent.mkdir(parents=True, exist_ok=True)
            page.screenshot(path=str(SCREENSHOT_PATH), full_page=False)
        finally:
            browser.close()

    shutil.copyfile(BASELINE_PATH, BASELINE_COPY_PATH)
    result = compare_images(BASELINE_COPY_PATH, SCREENSHOT_PATH, threshold=THRESHOLD)
    passed = result.diff_pixels <= MAX_DIFF_PIXELS
    SUMMARY_PATH.write_text(json.dumps({
        "passed": 1 if passed else 0,
        "failed": 0 if passed else 1,
        "diffPixels": result.diff_pixels,
        "totalPixels": result.total_pixels,
        "maxDiffPixels": MAX_DIFF_PIXELS,
        "successRate": result.success_rate,
        "screenshot": str(SCREENSHOT_PATH),
        "baseline": str(BASELINE_COPY_PATH),
    }))
    ratio = result.diff_pixels / result.total_pixels if result.total_pixels else 0.0
    assert passed, (
        f"{result.diff_pixels} pixels (ratio {ratio:.2f} of all image pixels) are different. "
        f"Expected at most {MAX_DIFF_PIXELS} (maxDiffPixels={MAX_DIFF_PIXELS})."
    )
''')

_DOM_TEMPLATE = Template('''\
$docstring

import json

from playwright.sync_api import sync_playwright

TARGET_URL = $target_url
SELECTORS = $selectors
GOLDEN = $golden
ACCEPTANCE_FLOOR = $acceptance_floor
TEXT_MAX_LENGTH = $text_max_length
VIEWPORT = {"width": $width, "height": $height}
DEVICE_SCALE_FACTOR = $device_scale_factor

EXTRACT_JS = """([selectors, maxLen]) => {
    const out = [];
    for (const selector of selectors) {
        for (const el of document.querySelectorAll(selector)) {
            out.push({
                selector: selector,
                tag: el.tagName.toLowerCase(),
                id: el.id || "",
                className: typeof el.className === "string" ? el.className : "",
                text: (el.textContent || "").trim().substring(0, maxLen),
            });
        }
    }
    return out;
}"""

FIELDS = ("tag", "id", "className", "text")


def test_$func_name():
    with sync_playwright() as p:
        browser = p.chromium.launch()
        try:
            page = browser.new_page(viewport=VIEWPORT, device_scale_factor=DEVICE_SCALE_FACTOR)
            page.goto(TARGET_URL)
            page.wait_for_load_state("networkidle")
            actual = page.evaluate(EXTRACT_JS, [SELECTORS, TEXT_MAX_LENGTH])
        finally:
            browser.close()

    total = max(len(GOLDEN), len(actual))
    matched = 0
    mismatches = []
    for index in range(total):
        expected = GOLDEN[index] if index < len(GOLDEN) else None
        got = actual[index] if index < len(actual) else None
        if expected is not None and got is not None and all(
            str(expected.get(f, "")) == str(got.get(f, "")) for f in FIELDS
        ):
            matched += 1
        else:
            mismatches.append({"index": index, "expected": expected, "actual": got})

    percentage = round(matched / total * 100, 2) if total else 100.0
    print("$marker " + json.dumps({
        "matchPercentage": percentage,
        "matched": matched,
        "total": total,
        "mismatches": mismatches[:20],
    }))
    assert percentage >= ACCEPTANCE_FLOOR, (
        f"DOM match {percentage}% is below the acceptance floor of {ACCEPTANCE_FLOOR}%"
    )
''')


@dataclass
class VisualArtifact:
    script_path: Path
    screenshot_path: Path
    baseline_copy_path: Path
    summary_path: Path


@dataclass
class DomArtifact:
    script_path: Path


def timestamp() -> str:
    # Second granularity: repeated calls within one second reuse names
    return time.strftime("%Y%m%d-%H%M%S")


def slugify(name: str) -> str:
    slug = re.sub(r"[^0-9a-zA-Z]+", "_", name).strip("_").lower()
    return slug or "test"


def artifact_name(phase: int, iteration: int, kind: str, stamp: str, ext: str = "png") -> str:
    """File name of the form ``phase<N>-v<iteration>-<kind>-<timestamp>.<ext>``."""
    return f"phase{phase}-v{iteration}-{kind}-{stamp}.{ext}"


def write_visual_test(
    tests_dir: Path,
    screenshots_dir: Path,
    test_name: str,
    target_url: str,
    baseline_path: Path,
    max_diff_pixels: int,
    threshold: float,
    viewport: ViewportConfig,
    phase: int,
    iteration: int,
) -> VisualArtifact:
    """Write a visual regression test script and return its artifact paths."""
    stamp = timestamp()
    slug = slugify(test_name)
    tests_dir.mkdir(parents=True, exist_ok=True)
    screenshots_dir.mkdir(parents=True, exist_ok=True)

    script_path = tests_dir / f"test_{slug}_visual_{stamp.replace('-', '_')}.py"
    artifact = VisualArtifact(
        script_path=script_path,
        screenshot_path=screenshots_dir / artifact_name(phase, iteration, "rendered", stamp),
        baseline_copy_path=screenshots_dir / artifact_name(phase, iteration, "baseline", stamp),
        summary_path=script_path.with_suffix(".results.json"),
    )
    source = _VISUAL_TEMPLATE.substitute(
        docstring=repr(f"Generated visual regression test: {test_name}"),
        func_name=slug,
        target_url=repr(target_url),
        baseline_path=repr(str(baseline_path.resolve())),
        screenshot_path=repr(str(artifact.screenshot_path.resolve())),
        baseline_copy_path=repr(str(artifact.baseline_copy_path.resolve())),
        summary_path=repr(str(artifact.summary_path.resolve())),
        max_diff_pixels=int(max_diff_pixels),
        threshold=repr(float(threshold)),
        width=int(viewport.width),
        height=int(viewport.height),
        device_scale_factor=repr(float(viewport.device_scale_factor)),
    )
    script_path.write_text(source, encoding="utf-8")
    logger.debug("Wrote visual test %s", script_path)
    return artifact


def write_dom_test(
    tests_dir: Path,
    test_name: str,
    target_url: str,
    golden: list[dict],
    selectors: list[str],
    acceptance_floor: float,
    text_max_length: int,
    viewport: ViewportConfig,
    phase: int,
    iteration: int,
) -> DomArtifact:
    """Write a DOM snapshot test script with the golden snapshot embedded."""
    stamp = timestamp()
    slug = slugify(test_name)
    tests_dir.mkdir(parents=True, exist_ok=True)

    script_path = tests_dir / f"test_{slug}_dom_p{phase}_v{iteration}_{stamp.replace('-', '_')}.py"
    source = _DOM_TEMPLATE.substitute(
        docstring=repr(f"Generated DOM snapshot test: {test_name}"),
        func_name=slug,
        target_url=repr(target_url),
        selectors=repr(list(selectors)),
        golden=repr(json.loads(json.dumps(golden))),
        acceptance_floor=repr(float(acceptance_floor)),
        text_max_length=int(text_max_length),
        width=int(viewport.width),
        height=int(viewport.height),
        device_scale_factor=repr(float(viewport.device_scale_factor)),
        marker=DOM_RESULT_MARKER,
    )
    script_path.write_text(source, encoding="utf-8")
    logger.debug("Wrote DOM test %s", script_path)
    return DomArtifact(script_path=script_path)
