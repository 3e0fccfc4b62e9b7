"""Tests for HealthMonitor and IssueDetector."""

from __future__ import annotations

import pytest

from autoheal.healing.detector import IssueDetector, prioritize
from autoheal.healing.events import HEALTH_CHECK_COMPLETE
from autoheal.healing.config import HealingConfig, ResourceConfig
from autoheal.healing.context import create_context
from autoheal.healing.models import (
    ComponentHealth,
    ComponentStatus,
    HealthReport,
    Issue,
    IssueType,
    Severity,
)
from autoheal.healing.monitor import HealthMonitor
from autoheal.shared.domain.exceptions import UnknownResourceError


def _component(utilization, limit=80.0, threshold=70.0):
    health = 1 - utilization / limit
    return ComponentHealth(
        utilization=utilization,
        limit=limit,
        healing_threshold=threshold,
        health=health,
        status=ComponentStatus.from_health(health),
    )


class TestIssueDetector:
    def test_warning_above_threshold(self):
        report = HealthReport(timestamp=1.0, components={"cpu": _component(75)})
        issues = IssueDetector().detect(report)

        assert len(issues) == 1
        assert issues[0].type is IssueType.RESOURCE
        assert issues[0].resource == "cpu"
        assert issues[0].severity is Severity.WARNING
        assert issues[0].message == "cpu utilization at 75%"

    def test_critical_above_limit(self):
        report = HealthReport(timestamp=1.0, components={"cpu": _component(85)})
        assert IssueDetector().detect(report)[0].severity is Severity.CRITICAL

    def test_at_threshold_is_not_an_issue(self):
        report = HealthReport(timestamp=1.0, components={"cpu": _component(70)})
        assert IssueDetector().detect(report) == []

    def test_open_breakers_become_critical_issues(self):
        report = HealthReport(timestamp=1.0, open_breakers=["api"])
        issues = IssueDetector().detect(report)

        assert issues[0].type is IssueType.CIRCUIT_BREAKER
        assert issues[0].service == "api"
        assert issues[0].severity is Severity.CRITICAL
        assert issues[0].key == "circuit_breaker_api"

    def test_sorted_severity_first(self):
        report = HealthReport(
            timestamp=1.0,
            components={"memory": _component(80, limit=85, threshold=75), "cpu": _component(90)},
        )
        issues = IssueDetector().detect(report)
        assert [i.resource for i in issues] == ["cpu", "memory"]

    def test_prioritize_is_stable(self):
        issues = [
            Issue(type=IssueType.RESOURCE, severity=Severity.INFO, message="a", resource="a"),
            Issue(type=IssueType.RESOURCE, severity=Severity.WARNING, message="b", resource="b"),
            Issue(type=IssueType.RESOURCE, severity=Severity.CRITICAL, message="c", resource="c"),
            Issue(type=IssueType.RESOURCE, severity=Severity.WARNING, message="d", resource="d"),
            Issue(type=IssueType.RESOURCE, severity=Severity.CRITICAL, message="e", resource="e"),
        ]
        assert [i.resource for i in prioritize(issues)] == ["c", "e", "b", "d", "a"]


class TestComponentStatus:
    @pytest.mark.parametrize(
        "health,expected",
        [
            (0.9, ComponentStatus.HEALTHY),
            (0.31, ComponentStatus.HEALTHY),
            (0.3, ComponentStatus.DEGRADED),
            (0.11, ComponentStatus.DEGRADED),
            (0.1, ComponentStatus.CRITICAL),
            (-0.2, ComponentStatus.CRITICAL),
        ],
    )
    def test_classification(self, health, expected):
        assert ComponentStatus.from_health(health) is expected


class TestHealthMonitor:
    @pytest.mark.asyncio
    async def test_sample_builds_report(self, context):
        monitor = HealthMonitor(context)
        monitor.ingest("cpu", 40)

        report = await monitor.sample()

        cpu = report.components["cpu"]
        assert cpu.health == pytest.approx(0.5)
        assert cpu.status is ComponentStatus.HEALTHY
        assert report.issues == []
        assert monitor.latest is report

    @pytest.mark.asyncio
    async def test_overall_health_is_mean(self, clock, sleeper):
        config = HealingConfig(
            resources=[
                ResourceConfig(name="cpu", limit=100, healing_threshold=90),
                ResourceConfig(name="memory", limit=100, healing_threshold=90),
            ]
        )
        ctx = create_context(config, clock=clock, sleep=sleeper)
        monitor = HealthMonitor(ctx)
        monitor.ingest("cpu", 20)
        monitor.ingest("memory", 60)

        report = await monitor.sample()

        assert report.overall_health == pytest.approx(0.6)
        assert monitor.overall_health == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_no_components_means_zero_health(self, clock, sleeper):
        ctx = create_context(HealingConfig(resources=[]), clock=clock, sleep=sleeper)
        report = await HealthMonitor(ctx).sample()
        assert report.overall_health == 0.0

    @pytest.mark.asyncio
    async def test_open_breaker_is_reported(self, context):
        for _ in range(context.breakers.threshold):
            context.breakers.report_failure("cache")

        report = await HealthMonitor(context).sample()

        assert report.open_breakers == ["cache"]
        assert [i.key for i in report.issues] == ["circuit_breaker_cache"]

    @pytest.mark.asyncio
    async def test_emits_health_check_complete(self, context):
        events = []
        context.events.subscribe(HEALTH_CHECK_COMPLETE, events.append)
        monitor = HealthMonitor(context)
        monitor.ingest("cpu", 75)

        await monitor.sample()

        assert len(events) == 1
        payload = events[0].payload
        assert payload["issue_count"] == 1
        assert "overall_health" in payload
        assert payload["duration_ms"] >= 0

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, clock, sleeper):
        ctx = create_context(HealingConfig(health_history_limit=3), clock=clock, sleep=sleeper)
        monitor = HealthMonitor(ctx)
        for value in [10, 20, 30, 40, 50]:
            monitor.ingest("cpu", value)
            await monitor.sample()

        assert len(monitor.history) == 3
        assert monitor.recent_utilization("cpu", 20) == [30, 40, 50]

    def test_ingest_unknown_resource(self, context):
        with pytest.raises(UnknownResourceError):
            HealthMonitor(context).ingest("gpu", 10)

    def test_ingest_rejects_negative(self, context):
        with pytest.raises(ValueError):
            HealthMonitor(context).ingest("cpu", -1)
