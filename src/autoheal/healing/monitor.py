"""Health monitor: samples resources and breakers into health reports."""

from __future__ import annotations

import time
from collections import deque

from autoheal.healing.context import EngineContext
from autoheal.healing.detector import IssueDetector
from autoheal.healing.events import HEALTH_CHECK_COMPLETE
from autoheal.healing.models import ComponentHealth, ComponentStatus, HealthReport
from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class HealthMonitor:
    """Builds one ``HealthReport`` per cycle and keeps a bounded history.

    Utilization values come from ``ingest`` (the external telemetry feed);
    ``sample`` reads whatever was last ingested for each resource.
    """

    def __init__(self, context: EngineContext, detector: IssueDetector | None = None) -> None:
        self._ctx = context
        self._detector = detector or IssueDetector()
        self._history: deque[HealthReport] = deque(maxlen=context.config.health_history_limit)
        self._overall = 1.0

    @property
    def history(self) -> list[HealthReport]:
        return list(self._history)

    @property
    def overall_health(self) -> float:
        return self._overall

    @property
    def latest(self) -> HealthReport | None:
        return self._history[-1] if self._history else None

    def ingest(self, resource: str, utilization: float) -> None:
        self._ctx.resources.ingest(resource, utilization)

    def build_report(self) -> HealthReport:
        """Snapshot current resource and breaker state without recording it."""
        report = HealthReport(timestamp=self._ctx.clock())

        for resource in self._ctx.resources.all():
            health = resource.health
            report.components[resource.name] = ComponentHealth(
                utilization=resource.current,
                limit=resource.limit,
                healing_threshold=resource.healing_threshold,
                health=health,
                status=ComponentStatus.from_health(health),
            )

        report.open_breakers = self._ctx.breakers.open_services()
        report.issues = self._detector.detect(report)

        if report.components:
            report.overall_health = sum(c.health for c in report.components.values()) / len(report.components)
        else:
            report.overall_health = 0.0
        return report

    async def sample(self) -> HealthReport:
        """Run one monitoring cycle: report, append to history, emit ``healthCheckComplete``."""
        started = time.perf_counter()
        report = self.build_report()
        self._history.append(report)
        self._overall = report.overall_health

        duration_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            "health_check_complete",
            overall_health=round(report.overall_health, 4),
            issues=len(report.issues),
        )
        await self._ctx.events.emit(
            HEALTH_CHECK_COMPLETE,
            {
                "overall_health": report.overall_health,
                "issue_count": len(report.issues),
                "duration_ms": duration_ms,
                "timestamp": report.timestamp,
            },
        )
        return report

    def recent_utilization(self, resource: str, window: int) -> list[float]:
        """Utilization of ``resource`` over the last ``window`` reports.

        Zero readings are skipped: a resource reads 0 until its first sample is
        ingested, and those placeholders must not look like a rising trend.
        """
        values = []
        for report in list(self._history)[-window:]:
            value = report.utilization(resource)
            if value is not None and value > 0:
                values.append(value)
        return values

    def component_snapshot(self) -> dict:
        latest = self.latest
        return {name: c.to_dict() for name, c in latest.components.items()} if latest else {}
