"""
autoheal forecast command.
Fits the least-squares utilization trend used by the predictor.
"""

from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from autoheal.healing.predictor import fit_trend

console = Console()


def forecast(
    values: List[float] = typer.Argument(..., help="Utilization samples, oldest first"),
    horizon: int = typer.Option(10, "--horizon", "-k", min=1, help="Steps ahead to forecast"),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", help="Report when the forecast exceeds this"),
):
    """
    Fit a utilization trend and forecast HORIZON steps ahead.

    Example:
        autoheal forecast 60 65 70 75 80 --horizon 5 --threshold 70
    """
    fit = fit_trend(values, horizon)
    if fit is None:
        console.print("[red]Error:[/red] at least two samples are required")
        raise typer.Exit(code=1)

    table = Table(title="Trend Forecast", box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan bold")
    table.add_column("Value")
    table.add_row("Samples", str(fit.samples))
    table.add_row("Slope", f"{fit.slope:g}")
    table.add_row("Intercept", f"{fit.intercept:g}")
    table.add_row(f"Predicted (+{horizon})", f"{fit.predicted:g}")
    table.add_row("Confidence (R²)", f"{fit.confidence:.3f}")
    console.print(table)

    if threshold is not None:
        if fit.slope > 0 and fit.predicted > threshold:
            console.print(f"[yellow]Forecast exceeds threshold {threshold:g}[/yellow]")
        else:
            console.print(f"[green]Forecast stays within threshold {threshold:g}[/green]")
