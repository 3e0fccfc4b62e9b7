"""Rich rendering helpers shared by the autoheal commands."""

from rich import box
from rich.console import Console
from rich.table import Table

from autoheal.healing.models import ComponentStatus

STATE_STYLES = {
    "healthy": "green",
    "degraded": "yellow",
    "critical": "red",
    "CLOSED": "green",
    "HALF_OPEN": "yellow",
    "OPEN": "red",
}


def _styled(value: str) -> str:
    style = STATE_STYLES.get(value)
    return f"[{style}]{value}[/{style}]" if style else value


def render_status(console: Console, status: dict) -> None:
    """Print the engine status as resource, breaker and summary tables."""
    console.print(
        f"[bold]Phase:[/bold] {status['current_state']}    "
        f"[bold]Overall health:[/bold] {status['system_health']['overall']:.2f}"
    )

    resources = Table(title="Resources", box=box.ROUNDED)
    resources.add_column("Resource", style="cyan bold")
    resources.add_column("Utilization", justify="right")
    resources.add_column("Threshold", justify="right")
    resources.add_column("Limit", justify="right")
    resources.add_column("Health", justify="right")
    resources.add_column("Status")
    for r in status["resources"]:
        resources.add_row(
            r["name"],
            f"{r['utilization']:g}",
            f"{r['healing_threshold']:g}",
            f"{r['limit']:g}",
            f"{r['health']:.2f}",
            _styled(ComponentStatus.from_health(r["health"]).value),
        )
    console.print(resources)

    breakers = Table(title="Circuit Breakers", box=box.ROUNDED)
    breakers.add_column("Service", style="cyan bold")
    breakers.add_column("State")
    breakers.add_column("Failures", justify="right")
    for b in status["circuit_breakers"]:
        breakers.add_row(b["service"], _styled(b["state"]), str(b["failures"]))
    console.print(breakers)

    actions = status["healing_actions"]
    intelligence = status["intelligence"]
    metrics = status["metrics"]
    summary = Table(title="Summary", box=box.ROUNDED, show_header=False)
    summary.add_column("Metric", style="cyan bold")
    summary.add_column("Value")
    summary.add_row("Registered actions", str(actions["total"]))
    summary.add_row("Action executions", str(actions["executed"]))
    summary.add_row("Action success rate", f"{actions['success_rate'] * 100:.1f}%")
    summary.add_row("Healing runs", str(metrics["total_runs"]))
    summary.add_row("Escalations", str(metrics["escalations"]))
    summary.add_row("Learned patterns", str(intelligence["patterns"]))
    summary.add_row("Suggestions", str(intelligence["suggestions"]))
    summary.add_row("Predictive runs", str(status["prediction"]["runs"]))
    console.print(summary)
