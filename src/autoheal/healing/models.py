"""Domain models for the healing engine."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class HealingState(Enum):
    """Phases of the remediation state machine."""

    HEALTHY = "healthy"
    MONITORING = "monitoring"
    DIAGNOSING = "diagnosing"
    HEALING = "healing"
    RECOVERING = "recovering"
    FAILED = "failed"


class Severity(Enum):
    """Issue severity. Lower rank sorts first."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}


class IssueType(Enum):
    RESOURCE = "resource"
    CIRCUIT_BREAKER = "circuit_breaker"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DurationClass(Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class ComponentStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"

    @classmethod
    def from_health(cls, health: float) -> ComponentStatus:
        if health > 0.3:
            return cls.HEALTHY
        if health > 0.1:
            return cls.DEGRADED
        return cls.CRITICAL


@dataclass
class ActionResult:
    """Outcome reported by a remediation action."""

    success: bool
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message, **self.data}


@dataclass
class Issue:
    """A detected deviation warranting remediation."""

    type: IssueType
    severity: Severity
    message: str
    resource: str | None = None
    service: str | None = None
    detected_at: float = field(default_factory=time.time)

    @property
    def key(self) -> str:
        """Learning key, e.g. ``resource_cpu`` or ``circuit_breaker_api``."""
        return f"{self.type.value}_{self.resource or self.service or 'general'}"

    @property
    def target(self) -> str | None:
        return self.resource or self.service

    def template_context(self) -> dict[str, Any]:
        """Values available to ``{{name}}`` placeholders in playbook steps."""
        context: dict[str, Any] = {
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.resource is not None:
            context["resource"] = self.resource
        if self.service is not None:
            context["service"] = self.service
        return context

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "resource": self.resource,
            "service": self.service,
            "severity": self.severity.value,
            "message": self.message,
            "detected_at": self.detected_at,
        }


@dataclass(frozen=True)
class PlaybookStep:
    """One ordered step of a playbook."""

    action: str
    params: dict[str, Any] = field(default_factory=dict)
    delay: float = 0.0


@dataclass(frozen=True)
class PlaybookTrigger:
    """What a playbook responds to: a metric threshold or an event."""

    metric: str | None = None
    threshold: float | None = None
    duration: float | None = None
    pattern: str | None = None
    event: str | None = None
    severity: str | None = None


@dataclass(frozen=True)
class Playbook:
    """A named, ordered remediation recipe for an issue category."""

    key: str
    name: str
    trigger: PlaybookTrigger
    steps: tuple[PlaybookStep, ...]
    escalation: str | None = None


@dataclass(frozen=True)
class EmergencyProtocol:
    """Static best-effort response run when a playbook fails."""

    key: str
    name: str
    actions: tuple[str, ...]
    priority: str
    trigger_conditions: tuple[dict[str, Any], ...] = ()


@dataclass
class StepResult:
    """Result of a single executed step within a healing run."""

    action: str
    params: dict[str, Any]
    success: bool
    result: ActionResult | None = None
    error: str | None = None
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at) * 1000)

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "params": self.params,
            "success": self.success,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass
class HealingRun:
    """Transient context for one remediation attempt."""

    issue: Issue
    playbook: str
    steps: list[StepResult] = field(default_factory=list)
    success: bool = True
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None

    @property
    def total_duration(self) -> float:
        if self.finished_at is None:
            return 0.0
        return self.finished_at - self.started_at

    @property
    def failed_step(self) -> StepResult | None:
        for step in self.steps:
            if not step.success:
                return step
        return None

    def action_sequence(self) -> list[tuple[str, dict[str, Any]]]:
        return [(s.action, dict(s.params)) for s in self.steps]

    def to_dict(self) -> dict:
        return {
            "issue": self.issue.to_dict(),
            "playbook": self.playbook,
            "steps": [s.to_dict() for s in self.steps],
            "success": self.success,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "total_duration": self.total_duration,
        }


@dataclass
class ResourceState:
    """Tracked resource with its limit and healing threshold."""

    name: str
    limit: float
    healing_threshold: float
    current: float = 0.0

    @property
    def health(self) -> float:
        if self.limit <= 0:
            return 0.0
        return 1 - (self.current / self.limit)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "utilization": self.current,
            "limit": self.limit,
            "healing_threshold": self.healing_threshold,
            "health": self.health,
        }


@dataclass
class ComponentHealth:
    """Per-resource entry of a health report."""

    utilization: float
    limit: float
    healing_threshold: float
    health: float
    status: ComponentStatus

    def to_dict(self) -> dict:
        return {
            "utilization": self.utilization,
            "limit": self.limit,
            "healing_threshold": self.healing_threshold,
            "health": self.health,
            "status": self.status.value,
        }


@dataclass
class HealthReport:
    """Point-in-time snapshot produced by one monitoring cycle."""

    timestamp: float
    components: dict[str, ComponentHealth] = field(default_factory=dict)
    open_breakers: list[str] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    overall_health: float = 0.0

    def utilization(self, resource: str) -> float | None:
        component = self.components.get(resource)
        return component.utilization if component else None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "components": {k: v.to_dict() for k, v in self.components.items()},
            "open_breakers": list(self.open_breakers),
            "issues": [i.to_dict() for i in self.issues],
            "overall_health": self.overall_health,
        }
