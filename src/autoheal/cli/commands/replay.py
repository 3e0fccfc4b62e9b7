"""
autoheal replay command.
Feeds a recorded sample script through a fresh engine, one health cycle per entry.

Sample script (YAML or JSON):

    cycles:
      - cpu: 60
        memory: 40
      - cpu: 75
        dependencies:
          - {service: api, success: false}
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from autoheal.cli.commands._render import render_status
from autoheal.healing.config import HealingConfig, load_healing_config
from autoheal.healing.engine import HealingEngine
from autoheal.shared.domain.exceptions import AutohealError, ConfigurationError
from autoheal.shared.infrastructure.config import settings
from autoheal.shared.infrastructure.logging import get_logger

console = Console()
logger = get_logger(__name__)

DEPENDENCIES_KEY = "dependencies"


def replay(
    samples: Path = typer.Argument(..., help="YAML/JSON sample script"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Engine configuration YAML"),
    predict: bool = typer.Option(True, "--predict/--no-predict", help="Run predictive analysis after each cycle"),
    as_json: bool = typer.Option(False, "--json", help="Print runs and final status as JSON"),
):
    """
    Replay recorded health samples through the engine.

    Step delays are skipped, so the replay finishes immediately.

    Example:
        autoheal replay samples.yaml --no-predict
    """
    if not samples.exists():
        console.print(f"[red]Error:[/red] File not found: {samples}")
        raise typer.Exit(code=1)

    try:
        healing_config = load_healing_config(config or settings.config_path)
        cycles = load_cycles(samples)
    except ConfigurationError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(code=1)

    try:
        outcome = asyncio.run(run_replay(healing_config, cycles, predict=predict))
    except (AutohealError, ValueError, TypeError, KeyError) as e:
        console.print(f"[red]Replay Error:[/red] {e}")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(json.dumps(outcome, default=str))
        return

    table = Table(title="Healing Runs", box=box.ROUNDED)
    table.add_column("Cycle", justify="right")
    table.add_column("Issue", style="cyan")
    table.add_column("Severity")
    table.add_column("Playbook")
    table.add_column("Steps")
    table.add_column("Result")
    for run in outcome["runs"]:
        steps = " → ".join(s["action"] for s in run["steps"]) or "-"
        result = "[green]healed[/green]" if run["success"] else "[red]failed[/red]"
        table.add_row(
            str(run["cycle"]),
            run["issue_key"],
            run["issue"]["severity"],
            run["playbook"],
            steps,
            result,
        )
    console.print(table)

    for cycle, report in outcome["predictions"]:
        for risk in report["risks"]:
            target = risk.get("resource") or risk.get("pattern")
            console.print(f"[yellow]Cycle {cycle}: predicted {risk['type']} for {target}[/yellow]")

    render_status(console, outcome["status"])


def load_cycles(path: Path) -> list[dict]:
    """Parse a sample script into a list of cycle mappings."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid sample script {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("cycles")
    if not isinstance(data, list):
        raise ConfigurationError(f"Sample script {path} must be a list of cycles or a mapping with 'cycles'")

    for index, cycle in enumerate(data, start=1):
        if not isinstance(cycle, dict):
            raise ConfigurationError(f"Cycle {index} in {path} must be a mapping")
    return data


async def _no_wait(_seconds: float) -> None:
    return None


async def run_replay(healing_config: HealingConfig, cycles: list[dict], predict: bool = True) -> dict:
    """Run every cycle through a fresh engine; returns runs, predictions and final status."""
    engine = HealingEngine(sleep=_no_wait)
    await engine.initialize(healing_config, start=False)

    runs = []
    predictions = []
    for index, cycle in enumerate(cycles, start=1):
        for resource, value in cycle.items():
            if resource == DEPENDENCIES_KEY:
                continue
            engine.ingest_health_sample(resource, float(value))
        for outcome in cycle.get(DEPENDENCIES_KEY) or []:
            await engine.report_dependency_outcome(outcome["service"], bool(outcome.get("success", True)))

        _, cycle_runs = await engine.run_cycle()
        for run in cycle_runs:
            runs.append({"cycle": index, "issue_key": run.issue.key, **run.to_dict()})

        if predict:
            report = await engine.run_prediction()
            if report is not None and report.risks:
                predictions.append((index, report.to_dict()))
        logger.debug("replay_cycle_complete", cycle=index)

    status = engine.get_status()
    await engine.shutdown()
    return {"runs": runs, "predictions": predictions, "status": status}
