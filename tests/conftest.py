"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path

import pytest
from PIL import Image

from d2c_workflow.models.config import PhaseTargets, ViewportConfig, WorkflowConfig
from d2c_workflow.workflow.phase_engine import PhaseEngine
from d2c_workflow.workflow.session import SessionState


# ============================================================================
# Image Fixtures
# ============================================================================


def write_png(path: Path, size: tuple[int, int], color: tuple[int, int, int, int]) -> Path:
    """Write a solid-colour RGBA PNG and return its path."""
    Image.new("RGBA", size, color).save(path, format="PNG")
    return path


@pytest.fixture
def make_png(tmp_path: Path):
    """Factory writing solid-colour PNGs into tmp_path."""
    def _make(name: str, size: tuple[int, int], color: tuple[int, int, int, int]) -> Path:
        return write_png(tmp_path / name, size, color)
    return _make


@pytest.fixture
def white_10(tmp_path: Path) -> Path:
    return write_png(tmp_path / "white_10.png", (10, 10), (255, 255, 255, 255))


@pytest.fixture
def black_10(tmp_path: Path) -> Path:
    return write_png(tmp_path / "black_10.png", (10, 10), (0, 0, 0, 255))


@pytest.fixture
def white_20(tmp_path: Path) -> Path:
    return write_png(tmp_path / "white_20.png", (20, 20), (255, 255, 255, 255))


@pytest.fixture
def half_black_10(tmp_path: Path) -> Path:
    """10x10 white image whose left half is black."""
    img = Image.new("RGBA", (10, 10), (255, 255, 255, 255))
    for x in range(5):
        for y in range(10):
            img.putpixel((x, y), (0, 0, 0, 255))
    path = tmp_path / "half_black_10.png"
    img.save(path, format="PNG")
    return path


# ============================================================================
# DOM Fixtures
# ============================================================================


@pytest.fixture
def dom_tree() -> list[dict]:
    """A small header/main page tree in extraction format."""
    return [
        {
            "tag": "header",
            "id": "top",
            "classes": ["site-header"],
            "children": [
                {"tag": "a", "classes": ["logo"], "attributes": {"href": "/"}, "text": "Home"},
                {"tag": "nav", "classes": ["menu"], "children": [
                    {"tag": "a", "attributes": {"href": "/about"}, "text": "About"},
                    {"tag": "a", "attributes": {"href": "/contact"}, "text": "Contact"},
                ]},
            ],
        },
        {
            "tag": "main",
            "children": [
                {"tag": "h1", "classes": ["title"], "text": "Welcome"},
                {"tag": "img", "attributes": {"src": "/hero.png", "alt": "Hero"}},
            ],
        },
    ]


@pytest.fixture
def golden_file(tmp_path: Path) -> Path:
    path = tmp_path / "golden.json"
    path.write_text(json.dumps([
        {"tag": "h1", "id": "", "className": "title", "text": "Welcome"},
        {"tag": "button", "id": "cta", "className": "btn", "text": "Start"},
    ]))
    return path


# ============================================================================
# Workflow Fixtures
# ============================================================================


@pytest.fixture
def workflow_config(tmp_path: Path) -> WorkflowConfig:
    return WorkflowConfig(
        output_dir=str(tmp_path / "d2c-output"),
        runner_timeout_seconds=30,
        phase_targets=PhaseTargets(phase1=60, phase2=70, phase3=90),
        max_iterations=5,
    )


@pytest.fixture
def viewport_config() -> ViewportConfig:
    return ViewportConfig(width=800, height=600, device_scale_factor=1.0)


@pytest.fixture
def session() -> SessionState:
    return SessionState()


@pytest.fixture
def engine(session: SessionState) -> PhaseEngine:
    return PhaseEngine(session)
