"""Tests for HealingEngine wiring, cycles and lifecycle."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from autoheal.healing.circuit_breaker import BreakerState
from autoheal.healing.config import HealingConfig
from autoheal.healing.engine import HealingEngine
from autoheal.healing.events import (
    CIRCUIT_BREAKER_STATE_CHANGE,
    HEALING_RUN_COMPLETE,
    HEALING_SYSTEM_SHUTDOWN,
    INITIALIZED,
)
from autoheal.healing.models import HealingState, IssueType
from autoheal.shared.domain.exceptions import AutohealError, DuplicateRegistrationError


async def _engine(clock, sleeper, config=None):
    engine = HealingEngine(clock=clock, sleep=sleeper)
    await engine.initialize(config or HealingConfig(), start=False)
    return engine


class TestInitialize:
    @pytest.mark.asyncio
    async def test_registers_defaults(self, clock, sleeper):
        engine = await _engine(clock, sleeper)
        ctx = engine.context

        assert "service_restart" in ctx.actions
        assert len(ctx.actions.all()) == 8
        assert [p.key for p in ctx.playbooks.all()] == [
            "high_cpu",
            "memory_leak",
            "network_congestion",
            "service_failure",
        ]
        assert ctx.protocols.get("system_critical") is not None
        assert ctx.breakers.services() == ["database", "api", "cache", "queue", "storage"]
        assert engine.is_running is False
        assert len(engine.events.recent(INITIALIZED)) == 1
        assert engine.events.recent(INITIALIZED)[0].timestamp == clock.now

    @pytest.mark.asyncio
    async def test_second_initialize_is_rejected(self, clock, sleeper):
        engine = await _engine(clock, sleeper)

        with pytest.raises(DuplicateRegistrationError):
            await engine.initialize(HealingConfig(), start=False)

    def test_context_before_initialize(self):
        engine = HealingEngine()

        assert engine.is_initialized is False
        with pytest.raises(AutohealError):
            _ = engine.context
        with pytest.raises(AutohealError):
            engine.ingest_health_sample("cpu", 50)

    @pytest.mark.asyncio
    async def test_engines_do_not_share_registries(self, clock, sleeper):
        first = await _engine(clock, sleeper)
        second = await _engine(clock, sleeper)

        first.ingest_health_sample("cpu", 55)

        assert first.context.actions is not second.context.actions
        assert second.context.resources.require("cpu").current == 0.0


class TestHealingCycles:
    @pytest.mark.asyncio
    async def test_rising_cpu_is_healed_by_high_cpu_playbook(self, clock, sleeper):
        engine = await _engine(clock, sleeper)
        runs_by_cycle = []

        for value in [60, 65, 70, 75, 80]:
            engine.ingest_health_sample("cpu", value)
            _, runs = await engine.run_cycle()
            runs_by_cycle.append(runs)

        assert [len(r) for r in runs_by_cycle[:3]] == [0, 0, 0]
        first = runs_by_cycle[3][0]
        assert first.issue.key == "resource_cpu"
        assert first.playbook == "high_cpu"
        assert first.success is True
        assert [s.action for s in first.steps] == ["cache_clear", "resource_scale", "service_restart"]
        assert first.steps[1].params == {"resource_type": "cpu", "scale_factor": 1.5}
        assert first.steps[1].result.data == {"old_value": 80.0, "new_value": 120}
        assert engine.state is HealingState.HEALTHY
        assert engine.learner.success_rate("resource_cpu") == 1.0

    @pytest.mark.asyncio
    async def test_step_delays_go_through_the_sleeper(self, clock, sleeper):
        engine = await _engine(clock, sleeper)
        engine.ingest_health_sample("cpu", 75)

        await engine.run_health_check()

        assert 5.0 in sleeper.calls
        assert 10.0 in sleeper.calls

    @pytest.mark.asyncio
    async def test_open_breaker_queues_one_issue(self, clock, sleeper):
        engine = await _engine(clock, sleeper)
        changes = []
        engine.events.subscribe(CIRCUIT_BREAKER_STATE_CHANGE, changes.append)

        for _ in range(4):
            assert await engine.report_dependency_outcome("api", success=False) is BreakerState.CLOSED
        state = await engine.report_dependency_outcome("api", success=False)

        assert state is BreakerState.OPEN
        assert [i.key for i in engine.pending_issues] == ["circuit_breaker_api"]
        assert changes[0].payload["old_state"] == "CLOSED"
        assert changes[0].payload["new_state"] == "OPEN"
        assert engine.allow("api") is False

        _, runs = await engine.run_cycle()

        assert len(runs) == 1
        assert runs[0].issue.type is IssueType.CIRCUIT_BREAKER
        assert runs[0].playbook == "service_failure"
        assert runs[0].steps[1].params == {"primary_system": "api", "backup_system": "api_backup"}
        assert engine.context.ledger.failovers == {"api": "api_backup"}
        assert engine.pending_issues == []

    @pytest.mark.asyncio
    async def test_heal_pending_dedupes(self, clock, sleeper):
        engine = await _engine(clock, sleeper)
        for _ in range(5):
            await engine.report_dependency_outcome("queue", success=False)
        engine.context.breakers.reset("queue")
        for _ in range(5):
            await engine.report_dependency_outcome("queue", success=False)

        assert len(engine.pending_issues) == 2
        runs = await engine.heal_pending()

        assert len(runs) == 1
        assert await engine.heal_pending() == []

    @pytest.mark.asyncio
    async def test_critical_issues_are_healed_first(self, clock, sleeper):
        engine = await _engine(clock, sleeper)
        engine.ingest_health_sample("memory", 80)
        engine.ingest_health_sample("cpu", 95)

        _, runs = await engine.run_cycle()

        assert [r.issue.key for r in runs] == ["resource_cpu", "resource_memory"]

    @pytest.mark.asyncio
    async def test_every_run_is_reported(self, clock, sleeper):
        engine = await _engine(clock, sleeper)
        engine.ingest_health_sample("network", 90)

        await engine.run_health_check()

        completed = engine.events.recent(HEALING_RUN_COMPLETE)
        assert len(completed) == 1
        assert completed[0].payload["playbook"] == "network_congestion"
        assert engine.metrics.get_metrics().total_runs == 1


class TestPredictionAndChaos:
    @pytest.mark.asyncio
    async def test_prediction_errors_are_swallowed(self, clock, sleeper):
        engine = await _engine(clock, sleeper)

        with patch.object(engine.predictor, "run", new=AsyncMock(side_effect=RuntimeError("boom"))):
            assert await engine.run_prediction() is None

    @pytest.mark.asyncio
    async def test_prediction_runs_after_cycles(self, clock, sleeper):
        engine = await _engine(clock, sleeper)
        for value in [10, 12, 14, 16, 18]:
            engine.ingest_health_sample("memory", value)
            await engine.run_cycle()

        report = await engine.run_prediction()

        assert report is not None
        assert engine.predictor.runs == 1

    @pytest.mark.asyncio
    async def test_chaos_disabled_by_default(self, clock, sleeper):
        engine = await _engine(clock, sleeper)

        assert await engine.run_chaos_experiment("resource_spike") is None
        assert engine.chaos.experiments == []

    @pytest.mark.asyncio
    async def test_resource_spike_recovers(self, clock, sleeper):
        engine = await _engine(clock, sleeper, HealingConfig(chaos_enabled=True))

        experiment = await engine.run_chaos_experiment("resource_spike")

        assert experiment.recovered is True
        assert experiment.result["final_limit"] == 120
        assert engine.chaos.resilience_score == 1.0

    @pytest.mark.asyncio
    async def test_service_failure_leaves_breaker_open(self, clock, sleeper):
        engine = await _engine(clock, sleeper, HealingConfig(chaos_enabled=True))

        await engine.run_chaos_experiment("resource_spike")
        experiment = await engine.run_chaos_experiment("service_failure")

        assert experiment.recovered is False
        assert experiment.result["final_state"] == "OPEN"
        assert engine.chaos.resilience_score == 0.5
        assert engine.events.recent(CIRCUIT_BREAKER_STATE_CHANGE)

    @pytest.mark.asyncio
    async def test_unknown_experiment(self, clock, sleeper):
        engine = await _engine(clock, sleeper, HealingConfig(chaos_enabled=True))

        with pytest.raises(ValueError):
            await engine.run_chaos_experiment("meteor_strike")


class TestStatusAndShutdown:
    @pytest.mark.asyncio
    async def test_status_shape(self, clock, sleeper):
        engine = await _engine(clock, sleeper)
        engine.ingest_health_sample("cpu", 40)
        await engine.run_health_check()

        status = engine.get_status()

        assert status["current_state"] == "healthy"
        assert status["system_health"]["history_size"] == 1
        assert status["system_health"]["components"]["cpu"]["utilization"] == 40
        assert status["circuit_breakers"][0] == {"service": "database", "state": "CLOSED", "failures": 0}
        assert status["healing_actions"]["total"] == 8
        assert status["intelligence"]["learning_enabled"] is True
        assert status["chaos"]["enabled"] is False
        assert status["pending_issues"] == 0
        assert status["running"] is False
        assert status["timestamp"] == clock.now

    @pytest.mark.asyncio
    async def test_shutdown_emits_final_state(self, clock, sleeper):
        engine = await _engine(clock, sleeper)
        engine.ingest_health_sample("cpu", 75)
        await engine.run_health_check()

        final_state = await engine.shutdown()

        assert set(final_state) == {
            "healing_patterns",
            "success_history",
            "failure_history",
            "system_health",
            "resource_states",
            "timestamp",
        }
        assert "resource_cpu" in final_state["healing_patterns"]
        assert {"name": "cpu", "current": 75.0, "limit": 120} in final_state["resource_states"]
        events = engine.events.recent(HEALING_SYSTEM_SHUTDOWN)
        assert events[0].payload is final_state
        assert engine.state is HealingState.HEALTHY

    @pytest.mark.asyncio
    async def test_shutdown_before_initialize(self):
        engine = HealingEngine()

        with pytest.raises(AutohealError):
            await engine.shutdown()

    @pytest.mark.asyncio
    async def test_loops_start_and_stop(self):
        engine = HealingEngine()
        config = HealingConfig(health_check_interval=0.01, prediction_interval=0.01, sweep_interval=0.01)
        await engine.initialize(config)

        assert engine.is_running is True
        await asyncio.sleep(0.05)
        await engine.shutdown()

        assert engine.is_running is False
        assert len(engine.monitor.history) >= 1
