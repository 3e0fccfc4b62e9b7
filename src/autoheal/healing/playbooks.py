"""Playbook and emergency-protocol libraries with the stock definitions."""

from __future__ import annotations

from autoheal.healing.models import (
    EmergencyProtocol,
    Issue,
    IssueType,
    Playbook,
    PlaybookStep,
    PlaybookTrigger,
)
from autoheal.shared.domain.exceptions import DuplicateRegistrationError
from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SERVICE_DOWN_EVENT = "service_down"


class PlaybookLibrary:
    """Playbooks keyed by issue category, immutable once registered."""

    def __init__(self) -> None:
        self._playbooks: dict[str, Playbook] = {}

    def register(self, playbook: Playbook) -> None:
        if playbook.key in self._playbooks:
            raise DuplicateRegistrationError(
                f"Playbook '{playbook.key}' is already registered",
                context={"playbook": playbook.key},
            )
        self._playbooks[playbook.key] = playbook
        logger.debug("playbook_registered", playbook=playbook.key, steps=len(playbook.steps))

    def get(self, key: str) -> Playbook | None:
        return self._playbooks.get(key)

    def all(self) -> list[Playbook]:
        return list(self._playbooks.values())

    def __len__(self) -> int:
        return len(self._playbooks)

    def match(self, issue: Issue) -> Playbook | None:
        """Find the playbook whose trigger covers ``issue``.

        Resource issues match on ``trigger.metric``; circuit-breaker issues
        match the ``service_down`` event.
        """
        for playbook in self._playbooks.values():
            trigger = playbook.trigger
            if issue.type is IssueType.RESOURCE and trigger.metric == issue.resource:
                return playbook
            if issue.type is IssueType.CIRCUIT_BREAKER and trigger.event == SERVICE_DOWN_EVENT:
                return playbook
        return None


class ProtocolLibrary:
    """Emergency protocols keyed by name."""

    def __init__(self) -> None:
        self._protocols: dict[str, EmergencyProtocol] = {}

    def register(self, protocol: EmergencyProtocol) -> None:
        if protocol.key in self._protocols:
            raise DuplicateRegistrationError(
                f"Emergency protocol '{protocol.key}' is already registered",
                context={"protocol": protocol.key},
            )
        self._protocols[protocol.key] = protocol

    def get(self, key: str) -> EmergencyProtocol | None:
        return self._protocols.get(key)

    def all(self) -> list[EmergencyProtocol]:
        return list(self._protocols.values())

    def __len__(self) -> int:
        return len(self._protocols)


DEFAULT_PLAYBOOKS = (
    Playbook(
        key="high_cpu",
        name="High CPU Usage",
        trigger=PlaybookTrigger(metric="cpu", threshold=80, duration=60.0),
        steps=(
            PlaybookStep("cache_clear", {"cache_type": "application"}, delay=0.0),
            PlaybookStep("resource_scale", {"resource_type": "cpu", "scale_factor": 1.5}, delay=5.0),
            PlaybookStep("service_restart", {"service_name": "worker"}, delay=10.0),
        ),
        escalation="emergency_cpu_protocol",
    ),
    Playbook(
        key="memory_leak",
        name="Memory Leak Detection",
        trigger=PlaybookTrigger(metric="memory", pattern="increasing", duration=300.0),
        steps=(
            PlaybookStep("cache_clear", {"cache_type": "memory"}, delay=0.0),
            PlaybookStep("connection_reset", {"pool_name": "database"}, delay=2.0),
            PlaybookStep("service_restart", {"service_name": "application"}, delay=5.0),
        ),
        escalation="memory_critical_protocol",
    ),
    Playbook(
        key="network_congestion",
        name="Network Congestion",
        trigger=PlaybookTrigger(metric="network", threshold=85, duration=30.0),
        steps=(
            PlaybookStep("connection_reset", {"pool_name": "api"}, delay=0.0),
            PlaybookStep("resource_scale", {"resource_type": "network", "scale_factor": 1.3}, delay=3.0),
            PlaybookStep("service_isolate", {"service_name": "heavy_consumer"}, delay=5.0),
        ),
        escalation="network_emergency_protocol",
    ),
    Playbook(
        key="service_failure",
        name="Service Failure",
        trigger=PlaybookTrigger(event=SERVICE_DOWN_EVENT, severity="critical"),
        steps=(
            PlaybookStep("service_restart", {"service_name": "{{service}}"}, delay=0.0),
            PlaybookStep(
                "failover",
                {"primary_system": "{{service}}", "backup_system": "{{service}}_backup"},
                delay=5.0,
            ),
            PlaybookStep("config_rollback", {"config_version": "last_stable"}, delay=10.0),
        ),
        escalation="service_critical_protocol",
    ),
)


DEFAULT_PROTOCOLS = (
    EmergencyProtocol(
        key="system_critical",
        name="System Critical Emergency",
        trigger_conditions=(
            {"type": "health", "threshold": 0.3},
            {"type": "failures", "count": 10, "window": 60},
            {"type": "resources", "exhausted": True},
        ),
        actions=(
            "isolate_all_non_critical",
            "activate_disaster_recovery",
            "notify_emergency_team",
            "prepare_full_backup",
        ),
        priority="MAXIMUM",
    ),
    EmergencyProtocol(
        key="data_corruption",
        name="Data Corruption Emergency",
        trigger_conditions=(
            {"type": "checksum_failure", "count": 3},
            {"type": "integrity_violation", "severity": "high"},
        ),
        actions=(
            "freeze_all_writes",
            "activate_backup_validation",
            "initiate_recovery_mode",
            "alert_data_team",
        ),
        priority="CRITICAL",
    ),
    EmergencyProtocol(
        key="security_breach",
        name="Security Breach Emergency",
        trigger_conditions=(
            {"type": "unauthorized_access", "detected": True},
            {"type": "anomaly_score", "threshold": 0.9},
        ),
        actions=(
            "isolate_affected_systems",
            "rotate_all_credentials",
            "activate_honeypots",
            "initiate_forensics",
        ),
        priority="CRITICAL",
    ),
    EmergencyProtocol(
        key="emergency_cpu_protocol",
        name="CPU Exhaustion Emergency",
        trigger_conditions=({"type": "playbook_failed", "playbook": "high_cpu"},),
        actions=("throttle_workloads", "isolate_all_non_critical", "notify_emergency_team"),
        priority="HIGH",
    ),
    EmergencyProtocol(
        key="memory_critical_protocol",
        name="Memory Critical Emergency",
        trigger_conditions=({"type": "playbook_failed", "playbook": "memory_leak"},),
        actions=("drain_connections", "prepare_full_backup", "notify_emergency_team"),
        priority="HIGH",
    ),
    EmergencyProtocol(
        key="network_emergency_protocol",
        name="Network Emergency",
        trigger_conditions=({"type": "playbook_failed", "playbook": "network_congestion"},),
        actions=("throttle_workloads", "isolate_all_non_critical"),
        priority="HIGH",
    ),
    EmergencyProtocol(
        key="service_critical_protocol",
        name="Service Critical Emergency",
        trigger_conditions=({"type": "playbook_failed", "playbook": "service_failure"},),
        actions=("isolate_affected_systems", "activate_disaster_recovery", "notify_emergency_team"),
        priority="CRITICAL",
    ),
)
