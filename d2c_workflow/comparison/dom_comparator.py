"""DOM comparator — aligns two element trees by derived selector and scores the match."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from d2c_workflow.errors import InvalidDomInput
from d2c_workflow.models.comparison import (
    AttributeDiff,
    DomCompareResult,
    DomNode,
    TextDiff,
    success_rate,
)

logger = logging.getLogger(__name__)

IMPORTANT_ATTRIBUTES = ("class", "style", "href", "src", "alt", "role", "aria-label")


@dataclass
class _Tally:
    total: int = 0
    matched: int = 0
    missing: list[str] = field(default_factory=list)
    extra: list[str] = field(default_factory=list)
    attribute_diffs: list[AttributeDiff] = field(default_factory=list)
    text_diffs: list[TextDiff] = field(default_factory=list)


def node_selector(node: DomNode, index: int, parent_selector: str = "") -> str:
    """Selector for the node at sibling position ``index`` (0-based).

    Ids are used verbatim; anything else is addressed by tag, classes and
    position under the parent, so reordered siblings do not align.
    """
    if node.id:
        return f"#{node.id}"
    selector = node.tag + "".join(f".{c}" for c in node.classes) + f":nth-child({index + 1})"
    if parent_selector:
        return f"{parent_selector} > {selector}"
    return selector


def parse_dom_input(value: Any, name: str = "tree") -> list[DomNode]:
    """Normalize a top-level DOM argument into a list of nodes.

    JSON text is decoded first; anything that is not a list afterwards is
    rejected with InvalidDomInput.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise InvalidDomInput(f"{name} is not valid JSON: {e}") from e
    if not isinstance(value, (list, tuple)):
        raise InvalidDomInput(f"{name} must be a list of nodes, got {type(value).__name__}")
    return [DomNode.from_raw(item) for item in value]


def _attribute(node: DomNode, name: str) -> str:
    value = node.attributes.get(name)
    if value is None and name == "class":
        return " ".join(node.classes)
    return value or ""


def _compare_level(
    expected: Sequence[DomNode],
    actual: Sequence[DomNode],
    parent_selector: str,
    tally: _Tally,
) -> None:
    expected_map = {node_selector(n, i, parent_selector): n for i, n in enumerate(expected)}
    actual_map = {node_selector(n, i, parent_selector): n for i, n in enumerate(actual)}

    for selector, exp in expected_map.items():
        tally.total += 1
        act = actual_map.pop(selector, None)
        if act is None:
            tally.missing.append(selector)
            continue

        matched = exp.tag == act.tag

        for attr in IMPORTANT_ATTRIBUTES:
            exp_val = _attribute(exp, attr)
            act_val = _attribute(act, attr)
            if exp_val and exp_val != act_val:
                matched = False
                tally.attribute_diffs.append(AttributeDiff(
                    selector=selector, attribute=attr, expected=exp_val, actual=act_val or None,
                ))

        if not exp.children and not act.children:
            exp_text = (exp.text or "").strip()
            act_text = (act.text or "").strip()
            if exp_text and exp_text != act_text:
                matched = False
                tally.text_diffs.append(TextDiff(
                    selector=selector, expected=exp_text, actual=act_text or None,
                ))

        if matched:
            tally.matched += 1

        if exp.children or act.children:
            _compare_level(exp.children, act.children, selector, tally)

    tally.extra.extend(actual_map.keys())


def compare_dom(expected: Any, actual: Any) -> DomCompareResult:
    """Compare the expected (design) element forest against the rendered one.

    The comparison is asymmetric: ``expected`` decides which checks apply
    and empty expected values are never flagged, while ``actual`` only
    contributes extra elements.
    """
    expected_nodes = parse_dom_input(expected, "expected")
    actual_nodes = parse_dom_input(actual, "actual")

    tally = _Tally()
    _compare_level(expected_nodes, actual_nodes, "", tally)

    result = DomCompareResult(
        success_rate=success_rate(tally.matched, tally.total),
        total_elements=tally.total,
        matched_elements=tally.matched,
        missing_elements=tally.missing,
        extra_elements=tally.extra,
        attribute_diffs=tally.attribute_diffs,
        text_diffs=tally.text_diffs,
    )
    logger.debug(
        "DOM compare: %d/%d matched, %d missing, %d extra",
        result.matched_elements, result.total_elements,
        len(result.missing_elements), len(result.extra_elements),
    )
    return result
