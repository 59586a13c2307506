"""Named comparison requests materialized by the test harness."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from d2c_workflow.models.config import ViewportConfig


class VisualTestRequest(BaseModel):
    test_name: str
    target_url: str
    baseline_path: str
    max_diff_pixels: Optional[int] = Field(default=None, ge=0)
    threshold: Optional[float] = Field(default=None, ge=0, le=1)
    viewport: Optional[ViewportConfig] = None
    # phase/iteration only feed artifact file names
    phase: int = 1
    iteration: int = 1


class DomTestRequest(BaseModel):
    test_name: str
    target_url: str
    golden_path: str
    selectors: list[str] = Field(default_factory=lambda: ["body *"])
    viewport: Optional[ViewportConfig] = None
    phase: int = 3
    iteration: int = 1
