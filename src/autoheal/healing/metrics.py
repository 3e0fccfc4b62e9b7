"""Remediation metrics collector for tracking run outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field

from autoheal.healing.models import HealingRun, IssueType


@dataclass
class RemediationMetrics:
    """Aggregated metrics from remediation runs."""

    total_runs: int = 0
    total_healed: int = 0
    total_failed: int = 0
    escalations: int = 0
    fallback_runs: int = 0
    preemptive_actions: int = 0
    by_issue_type: dict[str, int] = field(default_factory=dict)
    by_playbook: dict[str, int] = field(default_factory=dict)
    total_duration_ms: int = 0

    @property
    def success_rate(self) -> float:
        if self.total_runs == 0:
            return 0.0
        return self.total_healed / self.total_runs

    @property
    def average_duration_ms(self) -> float:
        if self.total_runs == 0:
            return 0.0
        return self.total_duration_ms / self.total_runs

    def to_dict(self) -> dict:
        return {
            "total_runs": self.total_runs,
            "total_healed": self.total_healed,
            "total_failed": self.total_failed,
            "success_rate": round(self.success_rate, 3),
            "escalations": self.escalations,
            "fallback_runs": self.fallback_runs,
            "preemptive_actions": self.preemptive_actions,
            "by_issue_type": self.by_issue_type,
            "by_playbook": self.by_playbook,
            "total_duration_ms": self.total_duration_ms,
            "average_duration_ms": round(self.average_duration_ms, 1),
        }


class RemediationMetricsCollector:
    """Collects metrics from remediation runs."""

    def __init__(self) -> None:
        self._metrics = RemediationMetrics()

    def record_attempt(self, issue_type: IssueType) -> None:
        self._metrics.total_runs += 1
        key = issue_type.value
        self._metrics.by_issue_type[key] = self._metrics.by_issue_type.get(key, 0) + 1

    def record_result(self, run: HealingRun) -> None:
        if run.success:
            self._metrics.total_healed += 1
        else:
            self._metrics.total_failed += 1

        self._metrics.by_playbook[run.playbook] = self._metrics.by_playbook.get(run.playbook, 0) + 1
        self._metrics.total_duration_ms += int(run.total_duration * 1000)

    def record_escalation(self) -> None:
        self._metrics.escalations += 1

    def record_fallback(self) -> None:
        self._metrics.fallback_runs += 1

    def record_preemptive(self) -> None:
        self._metrics.preemptive_actions += 1

    def get_metrics(self) -> RemediationMetrics:
        return self._metrics

    def reset(self) -> None:
        self._metrics = RemediationMetrics()
