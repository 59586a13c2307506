"""Configuration models for the design-to-code workflow."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "D2C_CONFIG_PATH"


class ViewportConfig(BaseModel):
    width: int = Field(default=1280, gt=0)
    height: int = Field(default=720, gt=0)
    device_scale_factor: float = Field(default=1.0, gt=0)


class PhaseTargets(BaseModel):
    """Reference success rate per phase (0-100)."""
    phase1: float = 60.0  # re-extraction
    phase2: float = 70.0  # image-diff-guided correction
    phase3: float = 90.0  # structure-diff-guided correction

    @field_validator("phase1", "phase2", "phase3")
    @classmethod
    def check_range(cls, v: float) -> float:
        if not 0 <= v <= 100:
            raise ValueError(f"Phase target must be between 0 and 100, got {v}")
        return v

    def for_phase(self, phase: int) -> float:
        return {1: self.phase1, 2: self.phase2, 3: self.phase3}[phase]


class VisualTestDefaults(BaseModel):
    max_diff_pixels: int = Field(default=100, ge=0)
    threshold: float = Field(default=0.1, ge=0, le=1)
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)


def _default_runner_command() -> list[str]:
    return [sys.executable, "-m", "pytest", "-q", "-s", "-p", "no:cacheprovider"]


class WorkflowConfig(BaseModel):
    # Artifacts
    output_dir: str = "./d2c-output"

    # External test runner
    runner_command: list[str] = Field(default_factory=_default_runner_command)
    runner_timeout_seconds: float = Field(default=60.0, gt=0)

    # Phase gating
    phase_targets: PhaseTargets = Field(default_factory=PhaseTargets)
    max_iterations: int = Field(default=5, ge=1)

    # Visual regression
    visual: VisualTestDefaults = Field(default_factory=VisualTestDefaults)

    # DOM snapshot
    dom_acceptance_floor: float = Field(default=80.0, ge=0, le=100)
    dom_text_max_length: int = Field(default=100, gt=0)

    @property
    def tests_dir(self) -> Path:
        return Path(self.output_dir) / "tests"

    @property
    def screenshots_dir(self) -> Path:
        return Path(self.output_dir) / "screenshots"

    @classmethod
    def load(cls, path: str | Path) -> "WorkflowConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    @classmethod
    def from_env(cls) -> "WorkflowConfig":
        """Load config from $D2C_CONFIG_PATH, or use defaults when unset."""
        path = os.environ.get(CONFIG_PATH_ENV, "")
        if not path:
            return cls()
        logger.debug("Loading config from %s", path)
        return cls.load(path)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
