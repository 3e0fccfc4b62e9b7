"""Built-in remediation actions registered at engine start-up."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from autoheal.healing.actions.base import ContextAction
from autoheal.healing.models import ActionResult, DurationClass, RiskLevel
from autoheal.shared.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from autoheal.healing.context import EngineContext

logger = get_logger(__name__)


class ServiceRestartAction(ContextAction):
    latency = 2.0

    @property
    def name(self) -> str:
        return "service_restart"

    @property
    def description(self) -> str:
        return "Restart a service or component"

    @property
    def required_params(self) -> tuple[str, ...]:
        return ("service_name",)

    async def execute(self, params: dict[str, Any]) -> ActionResult:
        service = str(params["service_name"])
        if service in self._ctx.ledger.shutdown:
            return ActionResult(
                success=False,
                message=f"Service {service} is shut down ({self._ctx.ledger.shutdown[service]})",
            )
        logger.info("service_restarting", service=service)
        await self._ctx.simulate_latency(self.latency)
        self._ctx.ledger.restarts[service] = self._ctx.ledger.restarts.get(service, 0) + 1
        return ActionResult(success=True, message=f"Service {service} restarted successfully")


class ResourceScaleAction(ContextAction):
    latency = 3.0

    @property
    def name(self) -> str:
        return "resource_scale"

    @property
    def description(self) -> str:
        return "Scale resources up or down"

    @property
    def duration(self) -> DurationClass:
        return DurationClass.MEDIUM

    @property
    def required_params(self) -> tuple[str, ...]:
        return ("resource_type", "scale_factor")

    async def execute(self, params: dict[str, Any]) -> ActionResult:
        resource_type = str(params["resource_type"])
        try:
            factor = float(params["scale_factor"])
        except (TypeError, ValueError):
            return ActionResult(success=False, message=f"Invalid scale factor: {params['scale_factor']!r}")
        if factor <= 0:
            return ActionResult(success=False, message=f"Scale factor must be positive, got {factor}")

        resource = self._ctx.resources.get(resource_type)
        if resource is None:
            return ActionResult(success=False, message=f"Unknown resource: {resource_type}")

        old_limit = resource.limit
        new_limit = round(old_limit * factor)
        logger.info("resource_scaling", resource=resource_type, factor=factor, old=old_limit, new=new_limit)
        resource.limit = new_limit
        await self._ctx.simulate_latency(self.latency)
        return ActionResult(
            success=True,
            message=f"Scaled {resource_type} from {old_limit:g} to {new_limit:g}",
            data={"old_value": old_limit, "new_value": new_limit},
        )


class CacheClearAction(ContextAction):
    latency = 1.0

    @property
    def name(self) -> str:
        return "cache_clear"

    @property
    def description(self) -> str:
        return "Clear system caches"

    @property
    def required_params(self) -> tuple[str, ...]:
        return ("cache_type",)

    async def execute(self, params: dict[str, Any]) -> ActionResult:
        cache_type = str(params["cache_type"])
        await self._ctx.simulate_latency(self.latency)
        self._ctx.ledger.cache_clears[cache_type] = self._ctx.ledger.cache_clears.get(cache_type, 0) + 1
        return ActionResult(success=True, message=f"{cache_type} cache cleared")


class ConnectionResetAction(ContextAction):
    latency = 2.0

    @property
    def name(self) -> str:
        return "connection_reset"

    @property
    def description(self) -> str:
        return "Reset connection pools"

    @property
    def risk(self) -> RiskLevel:
        return RiskLevel.MEDIUM

    @property
    def required_params(self) -> tuple[str, ...]:
        return ("pool_name",)

    async def execute(self, params: dict[str, Any]) -> ActionResult:
        pool = str(params["pool_name"])
        connections = self._ctx.resources.get("connections")
        if connections is not None:
            connections.current = float(int(connections.current * 0.5))
        await self._ctx.simulate_latency(self.latency)
        self._ctx.ledger.connection_resets[pool] = self._ctx.ledger.connection_resets.get(pool, 0) + 1
        return ActionResult(success=True, message=f"Connection pool {pool} reset")


class FailoverAction(ContextAction):
    latency = 5.0

    @property
    def name(self) -> str:
        return "failover"

    @property
    def description(self) -> str:
        return "Failover to backup system"

    @property
    def risk(self) -> RiskLevel:
        return RiskLevel.MEDIUM

    @property
    def duration(self) -> DurationClass:
        return DurationClass.MEDIUM

    @property
    def required_params(self) -> tuple[str, ...]:
        return ("primary_system", "backup_system")

    async def execute(self, params: dict[str, Any]) -> ActionResult:
        primary = str(params["primary_system"])
        backup = str(params["backup_system"])
        if primary == backup:
            return ActionResult(success=False, message=f"Backup for {primary} is the same system")
        logger.info("failover_started", primary=primary, backup=backup)
        await self._ctx.simulate_latency(self.latency)
        self._ctx.ledger.failovers[primary] = backup
        return ActionResult(
            success=True,
            message=f"Successfully failed over to {backup}",
            data={"downtime": self.latency},
        )


class ConfigRollbackAction(ContextAction):
    latency = 4.0

    @property
    def name(self) -> str:
        return "config_rollback"

    @property
    def description(self) -> str:
        return "Rollback to previous configuration"

    @property
    def risk(self) -> RiskLevel:
        return RiskLevel.MEDIUM

    @property
    def duration(self) -> DurationClass:
        return DurationClass.MEDIUM

    @property
    def required_params(self) -> tuple[str, ...]:
        return ("config_version",)

    async def execute(self, params: dict[str, Any]) -> ActionResult:
        version = str(params["config_version"])
        await self._ctx.simulate_latency(self.latency)
        self._ctx.ledger.config_version = version
        return ActionResult(success=True, message=f"Rolled back to configuration v{version}")


class ServiceIsolateAction(ContextAction):
    latency = 1.5

    @property
    def name(self) -> str:
        return "service_isolate"

    @property
    def description(self) -> str:
        return "Isolate problematic service"

    @property
    def required_params(self) -> tuple[str, ...]:
        return ("service_name",)

    async def execute(self, params: dict[str, Any]) -> ActionResult:
        service = str(params["service_name"])
        await self._ctx.simulate_latency(self.latency)
        self._ctx.ledger.isolated.add(service)
        return ActionResult(success=True, message=f"Service {service} isolated from cluster")


class EmergencyShutdownAction(ContextAction):
    latency = 0.5

    @property
    def name(self) -> str:
        return "emergency_shutdown"

    @property
    def description(self) -> str:
        return "Emergency shutdown of component"

    @property
    def risk(self) -> RiskLevel:
        return RiskLevel.HIGH

    @property
    def required_params(self) -> tuple[str, ...]:
        return ("component_name", "reason")

    async def execute(self, params: dict[str, Any]) -> ActionResult:
        component = str(params["component_name"])
        reason = str(params["reason"])
        logger.warning("emergency_shutdown", component=component, reason=reason)
        await self._ctx.simulate_latency(self.latency)
        self._ctx.ledger.shutdown[component] = reason
        return ActionResult(
            success=True,
            message=f"Emergency shutdown completed for {component}",
            data={"severity": "critical"},
        )


STANDARD_ACTIONS = (
    ServiceRestartAction,
    ResourceScaleAction,
    CacheClearAction,
    ConnectionResetAction,
    FailoverAction,
    ConfigRollbackAction,
    ServiceIsolateAction,
    EmergencyShutdownAction,
)


def register_standard_actions(context: EngineContext) -> None:
    for action_cls in STANDARD_ACTIONS:
        context.actions.register(action_cls(context))
