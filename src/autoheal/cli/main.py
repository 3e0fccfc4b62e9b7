"""
autoheal CLI - autonomous healing engine
Main entry point for the command-line interface

Usage:
    autoheal status                     # Show engine status with default config
    autoheal replay samples.yaml        # Feed recorded samples through the engine
    autoheal forecast 10 20 30 40 50    # Fit a utilization trend
"""

import typer
from rich.console import Console
from rich.panel import Panel

from autoheal import __version__
from autoheal.cli.commands import forecast, replay, status
from autoheal.shared.infrastructure.logging import configure_logging

app = typer.Typer(
    name="autoheal",
    help="autoheal - autonomous healing and remediation engine",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show engine logs (INFO and above)"),
):
    """autoheal - autonomous healing and remediation engine"""
    configure_logging(level="INFO" if verbose else "WARNING")


# Register commands
app.command(name="status", help="Show engine status tables")(status.status)
app.command(name="replay", help="Replay recorded health samples through the engine")(replay.replay)
app.command(name="forecast", help="Fit a utilization trend and forecast ahead")(forecast.forecast)


@app.command()
def version():
    """Show autoheal version information"""
    console.print(Panel.fit(
        "[bold cyan]autoheal[/bold cyan]\n"
        f"[dim]Version:[/dim] {__version__}\n",
        title="About autoheal",
        border_style="cyan"
    ))


def main():
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
