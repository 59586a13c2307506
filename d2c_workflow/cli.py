"""CLI entry point for the design-to-code workflow engine."""

from __future__ import annotations

import base64
import logging
import sys
from pathlib import Path

import click
from pydantic import BaseModel, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from d2c_workflow.errors import D2CError
from d2c_workflow.models.config import WorkflowConfig
from d2c_workflow.orchestrator import Orchestrator
from d2c_workflow.validation.component_validator import validate_component

console = Console()

RECOMMENDATION_STYLES = {
    "continue": "yellow",
    "next_phase": "green",
    "complete": "bold green",
    "stop": "red",
    "user_confirm": "magenta",
}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str | None) -> WorkflowConfig:
    """Load the config, exiting with a readable error if it is missing or invalid."""
    try:
        if config:
            return WorkflowConfig.load(config)
        return WorkflowConfig.from_env()
    except (FileNotFoundError, TypeError, ValueError) as e:
        console.print(f"[red]Invalid config: {e}[/red]")
        sys.exit(1)


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


def _print_json(model: BaseModel) -> None:
    click.echo(model.model_dump_json(indent=2))


def _rate_table(title: str, rows: list[tuple[str, str]]) -> Table:
    table = Table(title=title)
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    for metric, value in rows:
        table.add_row(metric, value)
    return table


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Design-to-code comparison and phase gating"""
    setup_logging(verbose)


@cli.command()
@click.option("--output", "-o", default="d2c-config.json", help="Config file to create")
def init(output: str) -> None:
    """Create a default configuration file."""
    config_path = Path(output)
    if config_path.exists():
        if not click.confirm(f"{output} already exists. Overwrite?"):
            return
    WorkflowConfig().save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print(f"Point [blue]D2C_CONFIG_PATH[/blue] at it or pass [blue]--config {output}[/blue].")


@cli.command("compare-images")
@click.argument("original")
@click.argument("rendered")
@click.option("--threshold", "-t", type=float, default=None, help="Perceptual threshold (0-1)")
@click.option("--diff-out", type=click.Path(dir_okay=False), default=None, help="Write the diff image here")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
@click.option("--config", "-c", default=None, help="Config file path")
def compare_images_cmd(original: str, rendered: str, threshold: float | None,
                       diff_out: str | None, as_json: bool, config: str | None) -> None:
    """Compare a design image with a rendered screenshot."""
    orchestrator = Orchestrator(_load_config(config))
    try:
        result = orchestrator.compare_images(original, rendered, threshold, generate_diff=bool(diff_out))
    except (D2CError, ValueError) as e:
        _fail(str(e))
        return

    if diff_out and result.diff_image:
        Path(diff_out).write_bytes(base64.b64decode(result.diff_image))

    if as_json:
        _print_json(result)
        return
    console.print(_rate_table("Image Comparison", [
        ("Success rate", f"{result.success_rate:.2f}%"),
        ("Canvas", f"{result.width}x{result.height}"),
        ("Differing pixels", f"{result.diff_pixels}/{result.total_pixels}"),
    ]))
    if diff_out:
        console.print(f"  Diff image: [blue]{diff_out}[/blue]")


@cli.command("compare-dom")
@click.argument("expected", type=click.Path(exists=True, dir_okay=False))
@click.argument("actual", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
def compare_dom_cmd(expected: str, actual: str, as_json: bool) -> None:
    """Compare two DOM trees stored as JSON files."""
    orchestrator = Orchestrator(WorkflowConfig())
    try:
        result = orchestrator.compare_dom(
            Path(expected).read_text(encoding="utf-8"),
            Path(actual).read_text(encoding="utf-8"),
        )
    except D2CError as e:
        _fail(str(e))
        return

    if as_json:
        _print_json(result)
        return
    console.print(_rate_table("DOM Comparison", [
        ("Success rate", f"{result.success_rate:.2f}%"),
        ("Matched", f"{result.matched_elements}/{result.total_elements}"),
        ("Missing", str(len(result.missing_elements))),
        ("Extra", str(len(result.extra_elements))),
        ("Attribute diffs", str(len(result.attribute_diffs))),
        ("Text diffs", str(len(result.text_diffs))),
    ]))
    for selector in result.missing_elements[:10]:
        console.print(f"  [red]missing[/red] {selector}")
    for selector in result.extra_elements[:10]:
        console.print(f"  [yellow]extra[/yellow] {selector}")


@cli.command("visual-test")
@click.option("--name", "-n", required=True, help="Test name")
@click.option("--url", "-u", required=True, help="Target URL to render")
@click.option("--baseline", "-b", required=True, help="Baseline image path")
@click.option("--max-diff-pixels", type=int, default=None, help="Allowed differing pixels")
@click.option("--threshold", "-t", type=float, default=None, help="Perceptual threshold (0-1)")
@click.option("--phase", type=int, default=1, help="Phase number (artifact naming)")
@click.option("--iteration", type=int, default=1, help="Iteration number (artifact naming)")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
@click.option("--config", "-c", default=None, help="Config file path")
def visual_test(name: str, url: str, baseline: str, max_diff_pixels: int | None,
                threshold: float | None, phase: int, iteration: int,
                as_json: bool, config: str | None) -> None:
    """Generate and run a visual regression test."""
    orchestrator = Orchestrator(_load_config(config))
    try:
        result = orchestrator.run_visual_test(
            name, url, baseline, max_diff_pixels, threshold, phase=phase, iteration=iteration,
        )
    except (D2CError, ValidationError) as e:
        _fail(str(e))
        return
    _print_measurement(result, as_json)


@cli.command("dom-test")
@click.option("--name", "-n", required=True, help="Test name")
@click.option("--url", "-u", required=True, help="Target URL to render")
@click.option("--golden", "-g", required=True, help="Golden DOM snapshot (JSON)")
@click.option("--selector", "-s", "selectors", multiple=True, help="Selector to extract (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
@click.option("--config", "-c", default=None, help="Config file path")
def dom_test(name: str, url: str, golden: str, selectors: tuple[str, ...],
             as_json: bool, config: str | None) -> None:
    """Generate and run a DOM snapshot test."""
    orchestrator = Orchestrator(_load_config(config))
    try:
        result = orchestrator.run_dom_test(name, url, golden, list(selectors) or None)
    except (D2CError, ValidationError) as e:
        _fail(str(e))
        return
    _print_measurement(result, as_json)


def _print_measurement(result, as_json: bool) -> None:
    if as_json:
        _print_json(result)
        return
    console.print(_rate_table(f"{result.kind.upper()} Measurement", [
        ("Success rate", f"{result.success_rate:.2f}%"),
        ("Passed", f"{result.passed_count}/{result.total_count}"),
        ("Source", str(result.raw_details.get("source", ""))),
    ]))


@cli.command()
@click.option("--phase", "-p", type=int, required=True, help="Phase (1-3)")
@click.option("--rate", "-r", "rates", type=float, multiple=True, required=True,
              help="Measured success rate (repeat to average several)")
@click.option("--target", type=float, default=None, help="Target rate (defaults to the phase target)")
@click.option("--iteration", "-i", type=int, default=1, help="Current iteration")
@click.option("--max-iterations", type=int, default=None, help="Iteration limit")
@click.option("--previous", "previous", type=float, multiple=True, help="Earlier rates, oldest first")
@click.option("--config", "-c", default=None, help="Config file path")
def evaluate(phase: int, rates: tuple[float, ...], target: float | None, iteration: int,
             max_iterations: int | None, previous: tuple[float, ...], config: str | None) -> None:
    """Recommend the next step for a phase measurement."""
    orchestrator = Orchestrator(_load_config(config))
    try:
        evaluation = orchestrator.evaluate_phase(
            phase, list(rates), target, iteration, max_iterations, list(previous),
        )
    except (ValidationError, ValueError) as e:
        _fail(str(e))
        return
    style = RECOMMENDATION_STYLES.get(evaluation.recommendation, "white")
    console.print(f"[{style}]{evaluation.recommendation}[/{style}]: {evaluation.reason}")


@cli.command()
@click.argument("code_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", "-n", required=True, help="Component name")
def validate(code_file: str, name: str) -> None:
    """Check a generated component against the basic design rules."""
    result = validate_component(Path(code_file).read_text(encoding="utf-8"), name)
    status = "[green]valid[/green]" if result.valid else "[red]needs changes[/red]"
    console.print(f"{name}: {status}")
    for item in result.passed:
        console.print(f"  [green]ok[/green] {item}")
    for issue in result.issues:
        color = {"error": "red", "warning": "yellow"}.get(issue.severity, "blue")
        console.print(f"  [{color}]{issue.severity}[/{color}] {issue.message}")
    if not result.valid:
        sys.exit(1)


if __name__ == "__main__":
    cli()
