"""
autoheal status command.
Builds an engine from configuration and prints its status tables.
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from autoheal.cli.commands._render import render_status
from autoheal.healing.config import HealingConfig, load_healing_config
from autoheal.healing.engine import HealingEngine
from autoheal.shared.domain.exceptions import ConfigurationError
from autoheal.shared.infrastructure.config import settings

console = Console()


def status(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Engine configuration YAML"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw status as JSON"),
):
    """
    Show engine status.

    Example:
        autoheal status --config autoheal.yaml
    """
    try:
        healing_config = load_healing_config(config or settings.config_path)
    except ConfigurationError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(code=1)

    engine_status = asyncio.run(collect_status(healing_config))

    if as_json:
        console.print_json(json.dumps(engine_status, default=str))
        return
    render_status(console, engine_status)


async def collect_status(healing_config: HealingConfig) -> dict:
    engine = HealingEngine()
    await engine.initialize(healing_config, start=False)
    engine_status = engine.get_status()
    await engine.shutdown()
    return engine_status
