"""Issue detection: thresholds a health report into prioritized issues."""

from __future__ import annotations

from collections.abc import Iterable

from autoheal.healing.models import HealthReport, Issue, IssueType, Severity


def prioritize(issues: Iterable[Issue]) -> list[Issue]:
    """Sort severity-first (critical, warning, info), keeping detection order on ties."""
    return sorted(issues, key=lambda issue: issue.severity.rank)


class IssueDetector:
    """Stateless: the same report always yields the same issues."""

    def detect(self, report: HealthReport) -> list[Issue]:
        issues: list[Issue] = []

        for resource, component in report.components.items():
            if component.utilization > component.healing_threshold:
                severity = Severity.CRITICAL if component.utilization > component.limit else Severity.WARNING
                issues.append(
                    Issue(
                        type=IssueType.RESOURCE,
                        resource=resource,
                        severity=severity,
                        message=f"{resource} utilization at {component.utilization:g}%",
                        detected_at=report.timestamp,
                    )
                )

        for service in report.open_breakers:
            issues.append(
                Issue(
                    type=IssueType.CIRCUIT_BREAKER,
                    service=service,
                    severity=Severity.CRITICAL,
                    message=f"Circuit breaker OPEN for {service}",
                    detected_at=report.timestamp,
                )
            )

        return prioritize(issues)
