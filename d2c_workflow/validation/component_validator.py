"""Static checks on generated component source code."""

from __future__ import annotations

import logging
import re
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

PASCAL_CASE_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
A11Y_PATTERNS = ("aria-", "role=", "tabIndex", "alt=", "title=")
RESPONSIVE_PATTERNS = ("@media", "sm:", "md:", "lg:", "xl:", "responsive")


class ValidationIssue(BaseModel):
    severity: Literal["error", "warning", "suggestion"]
    message: str


class ComponentValidation(BaseModel):
    component_name: str
    valid: bool = True
    passed: list[str] = Field(default_factory=list)
    issues: list[ValidationIssue] = Field(default_factory=list)
    code_length: int = 0


def validate_component(code: str, component_name: str) -> ComponentValidation:
    """Check naming, props typing, accessibility and responsiveness of a component.

    Only naming violations make a component invalid; the other checks are
    reported as warnings or suggestions.
    """
    result = ComponentValidation(component_name=component_name, code_length=len(code))

    if PASCAL_CASE_RE.match(component_name):
        result.passed.append("Component name is PascalCase")
    else:
        result.issues.append(ValidationIssue(severity="error", message="Component name is not PascalCase"))

    if "Props" in code and "interface" in code:
        result.passed.append("Props interface defined")
    elif ": {" in code or "Props" in code:
        result.passed.append("Props type defined")
    else:
        result.issues.append(ValidationIssue(severity="warning", message="No explicit props interface"))

    if any(p in code for p in A11Y_PATTERNS):
        result.passed.append("Accessibility attributes present")
    else:
        result.issues.append(ValidationIssue(
            severity="warning", message="No accessibility attributes (aria-*, role, alt, ...)",
        ))

    if any(p in code for p in RESPONSIVE_PATTERNS):
        result.passed.append("Responsive styles present")
    else:
        result.issues.append(ValidationIssue(
            severity="suggestion", message="No responsive styles detected (add if needed)",
        ))

    result.valid = not any(i.severity == "error" for i in result.issues)
    logger.debug("Validated %s: valid=%s, %d issues", component_name, result.valid, len(result.issues))
    return result
