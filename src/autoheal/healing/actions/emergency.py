"""Fixed, non-parameterized operations run by emergency protocols."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from autoheal.shared.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from autoheal.healing.context import EngineContext

logger = get_logger(__name__)

EmergencyOperation = Callable[["EngineContext"], Awaitable[None]]

# Services that stay up when everything non-critical is isolated.
CRITICAL_SERVICES = frozenset({"database", "api"})


async def isolate_all_non_critical(ctx: EngineContext) -> None:
    logger.warning("isolating_non_critical_services")
    await ctx.simulate_latency(2.0)
    for service in ctx.breakers.services():
        if service not in CRITICAL_SERVICES:
            ctx.ledger.isolated.add(service)


async def activate_disaster_recovery(ctx: EngineContext) -> None:
    logger.warning("disaster_recovery_activating")
    await ctx.simulate_latency(5.0)
    ctx.ledger.disaster_recovery_active = True


async def freeze_all_writes(ctx: EngineContext) -> None:
    logger.warning("freezing_writes")
    await ctx.simulate_latency(1.0)
    ctx.ledger.writes_frozen = True


async def rotate_all_credentials(ctx: EngineContext) -> None:
    logger.warning("rotating_credentials")
    await ctx.simulate_latency(3.0)
    ctx.ledger.credential_rotations += 1


async def initiate_recovery_mode(ctx: EngineContext) -> None:
    await ctx.simulate_latency(1.0)
    ctx.ledger.recovery_mode = True


async def prepare_full_backup(ctx: EngineContext) -> None:
    await ctx.simulate_latency(2.0)
    ctx.ledger.notifications.append("full backup prepared")


async def activate_backup_validation(ctx: EngineContext) -> None:
    await ctx.simulate_latency(1.0)
    ctx.ledger.notifications.append("backup validation active")


async def isolate_affected_systems(ctx: EngineContext) -> None:
    await ctx.simulate_latency(1.5)
    for service in ctx.breakers.open_services():
        ctx.ledger.isolated.add(service)


async def initiate_forensics(ctx: EngineContext) -> None:
    await ctx.simulate_latency(1.0)
    ctx.ledger.notifications.append("forensics initiated")


async def throttle_workloads(ctx: EngineContext) -> None:
    await ctx.simulate_latency(1.0)
    ctx.ledger.notifications.append("workloads throttled")


async def drain_connections(ctx: EngineContext) -> None:
    await ctx.simulate_latency(1.0)
    connections = ctx.resources.get("connections")
    if connections is not None:
        connections.current = 0.0


def _notifier(team: str) -> EmergencyOperation:
    async def notify(ctx: EngineContext) -> None:
        ctx.ledger.notifications.append(f"{team} notified")

    notify.__qualname__ = f"notify_{team.replace(' ', '_')}"
    return notify


EMERGENCY_OPERATIONS: dict[str, EmergencyOperation] = {
    "isolate_all_non_critical": isolate_all_non_critical,
    "activate_disaster_recovery": activate_disaster_recovery,
    "freeze_all_writes": freeze_all_writes,
    "rotate_all_credentials": rotate_all_credentials,
    "notify_emergency_team": _notifier("emergency team"),
    "prepare_full_backup": prepare_full_backup,
    "activate_backup_validation": activate_backup_validation,
    "initiate_recovery_mode": initiate_recovery_mode,
    "alert_data_team": _notifier("data team"),
    "isolate_affected_systems": isolate_affected_systems,
    "initiate_forensics": initiate_forensics,
    "throttle_workloads": throttle_workloads,
    "drain_connections": drain_connections,
}
