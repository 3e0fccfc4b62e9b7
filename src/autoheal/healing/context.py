"""Engine context: the explicit bundle of registries every component shares.

Components receive an ``EngineContext`` instead of reaching for module-level
singletons, so several engines can live side by side (one per test, say).
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from autoheal.healing.config import HealingConfig
from autoheal.healing.events import HealingEventBus
from autoheal.healing.models import ResourceState
from autoheal.shared.domain.exceptions import UnknownResourceError

if TYPE_CHECKING:
    from autoheal.healing.circuit_breaker import CircuitBreakerTable
    from autoheal.healing.playbooks import PlaybookLibrary, ProtocolLibrary
    from autoheal.healing.registry import ActionRegistry

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class ResourceTable:
    """Current utilization, limit and healing threshold per resource."""

    def __init__(self, resources: list[ResourceState] | None = None) -> None:
        self._resources: dict[str, ResourceState] = {}
        for resource in resources or []:
            self._resources[resource.name] = resource

    @classmethod
    def from_config(cls, config: HealingConfig) -> ResourceTable:
        return cls(
            [
                ResourceState(name=r.name, limit=r.limit, healing_threshold=r.healing_threshold)
                for r in config.resources
            ]
        )

    def get(self, name: str) -> ResourceState | None:
        return self._resources.get(name)

    def require(self, name: str) -> ResourceState:
        resource = self._resources.get(name)
        if resource is None:
            raise UnknownResourceError(f"Resource '{name}' is not tracked", context={"resource": name})
        return resource

    def names(self) -> list[str]:
        return list(self._resources)

    def all(self) -> list[ResourceState]:
        return list(self._resources.values())

    def ingest(self, name: str, utilization: float) -> ResourceState:
        if utilization < 0:
            raise ValueError(f"utilization must be >= 0, got {utilization}")
        resource = self.require(name)
        resource.current = float(utilization)
        return resource

    def snapshot(self) -> list[dict]:
        return [r.to_dict() for r in self._resources.values()]


@dataclass
class OperationalLedger:
    """Observable side effects of remediation and emergency operations."""

    restarts: dict[str, int] = field(default_factory=dict)
    isolated: set[str] = field(default_factory=set)
    shutdown: dict[str, str] = field(default_factory=dict)
    failovers: dict[str, str] = field(default_factory=dict)
    cache_clears: dict[str, int] = field(default_factory=dict)
    connection_resets: dict[str, int] = field(default_factory=dict)
    config_version: str | None = None
    writes_frozen: bool = False
    disaster_recovery_active: bool = False
    recovery_mode: bool = False
    credential_rotations: int = 0
    notifications: list[str] = field(default_factory=list)
    emergency_log: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "restarts": dict(self.restarts),
            "isolated": sorted(self.isolated),
            "shutdown": dict(self.shutdown),
            "failovers": dict(self.failovers),
            "cache_clears": dict(self.cache_clears),
            "connection_resets": dict(self.connection_resets),
            "config_version": self.config_version,
            "writes_frozen": self.writes_frozen,
            "disaster_recovery_active": self.disaster_recovery_active,
            "recovery_mode": self.recovery_mode,
            "credential_rotations": self.credential_rotations,
            "notifications": list(self.notifications),
        }


@dataclass
class EngineContext:
    """Shared state handed to every engine component."""

    config: HealingConfig
    actions: ActionRegistry
    playbooks: PlaybookLibrary
    protocols: ProtocolLibrary
    breakers: CircuitBreakerTable
    resources: ResourceTable
    events: HealingEventBus
    ledger: OperationalLedger = field(default_factory=OperationalLedger)
    clock: Clock = time.time
    sleep: Sleeper = asyncio.sleep

    async def pause(self, seconds: float) -> None:
        """Suspend for ``seconds`` through the injectable sleeper."""
        if seconds > 0:
            await self.sleep(seconds)

    async def simulate_latency(self, seconds: float) -> None:
        """Stand-in for the time a real remediation would take."""
        if self.config.simulate_action_latency:
            await self.pause(seconds)


def create_context(
    config: HealingConfig | None = None,
    *,
    clock: Clock = time.time,
    sleep: Sleeper = asyncio.sleep,
    events: HealingEventBus | None = None,
) -> EngineContext:
    """Build an empty context: registries exist but hold no defaults yet."""
    from autoheal.healing.circuit_breaker import CircuitBreakerTable
    from autoheal.healing.playbooks import PlaybookLibrary, ProtocolLibrary
    from autoheal.healing.registry import ActionRegistry

    config = config or HealingConfig()
    breaker_cfg = config.circuit_breaker
    return EngineContext(
        config=config,
        actions=ActionRegistry(clock=clock),
        playbooks=PlaybookLibrary(),
        protocols=ProtocolLibrary(),
        breakers=CircuitBreakerTable(
            threshold=breaker_cfg.threshold,
            timeout=breaker_cfg.timeout,
            reset_timeout=breaker_cfg.reset_timeout,
            clock=clock,
        ),
        resources=ResourceTable.from_config(config),
        events=events or HealingEventBus(clock=clock),
        clock=clock,
        sleep=sleep,
    )
