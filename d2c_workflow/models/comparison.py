"""Comparison result data structures shared by the pixel and DOM comparators."""

from __future__ import annotations

import math
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


def success_rate(matched: float, total: float) -> float:
    """Percentage of ``matched`` over ``total`` with two decimals, rounded half up.

    An empty comparison (``total == 0``) is a full match.
    """
    if total <= 0:
        return 100.0
    return math.floor(matched / total * 10000 + 0.5) / 100


class ImageCompareResult(BaseModel):
    success_rate: float = Field(ge=0, le=100)
    total_pixels: int
    diff_pixels: int
    width: int
    height: int
    diff_image: Optional[str] = None  # base64 PNG


class DomNode(BaseModel):
    tag: str = "div"
    id: Optional[str] = None
    classes: list[str] = Field(default_factory=list)
    attributes: dict[str, str] = Field(default_factory=dict)
    text: Optional[str] = None
    children: list["DomNode"] = Field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Any) -> "DomNode":
        """Build a node from loosely shaped extraction output.

        Live-page extraction is noisy, so missing or mistyped fields fall
        back to defaults instead of failing.
        """
        if isinstance(raw, DomNode):
            return raw
        if not isinstance(raw, dict):
            return cls()

        tag = raw.get("tag") or raw.get("tagName") or "div"
        node_id = raw.get("id") or None

        classes = raw.get("classes", raw.get("classList", raw.get("className")))
        if isinstance(classes, str):
            classes = classes.split()
        elif not isinstance(classes, (list, tuple)):
            classes = []

        attributes = raw.get("attributes")
        if not isinstance(attributes, dict):
            attributes = {}

        text = raw.get("text", raw.get("textContent"))
        children = raw.get("children")
        if not isinstance(children, (list, tuple)):
            children = []

        return cls(
            tag=str(tag).lower(),
            id=str(node_id) if node_id is not None else None,
            classes=[str(c) for c in classes if c],
            attributes={str(k): "" if v is None else str(v) for k, v in attributes.items()},
            text=None if text is None else str(text),
            children=[cls.from_raw(child) for child in children],
        )


class AttributeDiff(BaseModel):
    selector: str
    attribute: str
    expected: str
    actual: Optional[str] = None


class TextDiff(BaseModel):
    selector: str
    expected: str
    actual: Optional[str] = None


class DomCompareResult(BaseModel):
    success_rate: float = Field(ge=0, le=100)
    total_elements: int = 0
    matched_elements: int = 0
    missing_elements: list[str] = Field(default_factory=list)
    extra_elements: list[str] = Field(default_factory=list)
    attribute_diffs: list[AttributeDiff] = Field(default_factory=list)
    text_diffs: list[TextDiff] = Field(default_factory=list)


class MeasurementResult(BaseModel):
    """Normalized harness output, whichever comparator or runner produced it."""
    kind: Literal["pixel", "dom"]
    success_rate: float = Field(ge=0, le=100)
    passed_count: int = 0
    total_count: int = 0
    raw_details: dict[str, Any] = Field(default_factory=dict)
