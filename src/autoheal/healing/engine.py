"""
Healing engine: wires the components together and runs the periodic loops.

Host-facing surface:
    engine = HealingEngine()
    await engine.initialize(config)          # registers defaults, starts loops
    engine.ingest_health_sample("cpu", 72.5)
    await engine.report_dependency_outcome("database", success=False)
    status = engine.get_status()
    final_state = await engine.shutdown()
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable

from autoheal.healing.actions import register_standard_actions
from autoheal.healing.chaos import ChaosExperiment, ChaosLab
from autoheal.healing.circuit_breaker import BreakerState
from autoheal.healing.config import HealingConfig
from autoheal.healing.context import Clock, EngineContext, Sleeper, create_context
from autoheal.healing.detector import prioritize
from autoheal.healing.escalation import EscalationDispatcher
from autoheal.healing.events import (
    CIRCUIT_BREAKER_STATE_CHANGE,
    HEALING_SYSTEM_SHUTDOWN,
    INITIALIZED,
    HealingEventBus,
)
from autoheal.healing.executor import PlaybookExecutor
from autoheal.healing.learner import AdaptiveLearner
from autoheal.healing.metrics import RemediationMetricsCollector
from autoheal.healing.models import HealingRun, HealingState, HealthReport, Issue, IssueType, Severity
from autoheal.healing.monitor import HealthMonitor
from autoheal.healing.playbooks import DEFAULT_PLAYBOOKS, DEFAULT_PROTOCOLS
from autoheal.healing.predictor import PredictionReport, TrendPredictor
from autoheal.shared.domain.exceptions import AutohealError, UnknownActionError
from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class HealingEngine:
    """Autonomous healing engine.

    Each engine owns its own ``EngineContext``; engines never share
    registries, so several can run in one process.
    """

    def __init__(
        self,
        *,
        clock: Clock = time.time,
        sleep: Sleeper = asyncio.sleep,
        events: HealingEventBus | None = None,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._events = events or HealingEventBus(clock=clock)
        self._ctx: EngineContext | None = None
        self._remediation_lock = asyncio.Lock()
        self._pending: deque[Issue] = deque()
        self._transitions: deque[tuple[str, BreakerState, BreakerState]] = deque()
        self._tasks: list[asyncio.Task] = []

        self.metrics = RemediationMetricsCollector()
        self.monitor: HealthMonitor | None = None
        self.learner: AdaptiveLearner | None = None
        self.escalation: EscalationDispatcher | None = None
        self.executor: PlaybookExecutor | None = None
        self.predictor: TrendPredictor | None = None
        self.chaos: ChaosLab | None = None

    # ── Lifecycle ────────────────────────────────────────────────────────

    @property
    def context(self) -> EngineContext:
        if self._ctx is None:
            raise AutohealError("Healing engine is not initialized")
        return self._ctx

    @property
    def events(self) -> HealingEventBus:
        return self._events

    @property
    def is_initialized(self) -> bool:
        return self._ctx is not None

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    @property
    def state(self) -> HealingState:
        return self.executor.state if self.executor else HealingState.HEALTHY

    async def initialize(self, config: HealingConfig | None = None, *, start: bool = True) -> None:
        """Register default actions, playbooks, protocols and breakers.

        Registration is strict: calling this twice raises
        ``DuplicateRegistrationError`` on the first repeated name.
        """
        if self._ctx is None:
            self._ctx = create_context(config, clock=self._clock, sleep=self._sleep, events=self._events)
            self._build_components()
        ctx = self._ctx

        register_standard_actions(ctx)
        for protocol in DEFAULT_PROTOCOLS:
            ctx.protocols.register(protocol)
        for playbook in DEFAULT_PLAYBOOKS:
            for step in playbook.steps:
                if step.action not in ctx.actions:
                    raise UnknownActionError(
                        f"Playbook '{playbook.key}' references unknown action '{step.action}'",
                        context={"playbook": playbook.key, "action": step.action},
                    )
            ctx.playbooks.register(playbook)
        for service in ctx.config.circuit_breaker.services:
            ctx.breakers.add(service)

        logger.info(
            "healing_engine_initialized",
            actions=len(ctx.actions.all()),
            playbooks=len(ctx.playbooks),
            protocols=len(ctx.protocols),
            breakers=len(ctx.breakers.services()),
        )
        await self._events.emit(
            INITIALIZED,
            {
                "actions": [a.name for a in ctx.actions.all()],
                "playbooks": [p.key for p in ctx.playbooks.all()],
                "breakers": ctx.breakers.services(),
            },
        )

        if start:
            self.start()

    def _build_components(self) -> None:
        ctx = self.context
        self.monitor = HealthMonitor(ctx)
        self.learner = AdaptiveLearner(ctx)
        self.escalation = EscalationDispatcher(ctx)
        self.executor = PlaybookExecutor(
            ctx,
            self.learner,
            self.escalation,
            metrics=self.metrics,
            remediation_lock=self._remediation_lock,
        )
        self.predictor = TrendPredictor(
            ctx,
            self.monitor,
            self.learner,
            metrics=self.metrics,
            remediation_lock=self._remediation_lock,
        )
        self.chaos = ChaosLab(ctx, self.run_health_check)
        ctx.breakers.add_listener(self._on_breaker_transition)

    def start(self) -> None:
        """Start the periodic health, prediction and (optional) sweep loops."""
        if self.is_running:
            return
        config = self.context.config
        self._tasks = [
            asyncio.create_task(self._periodic("health_check", config.health_check_interval, self.run_health_check)),
            asyncio.create_task(self._periodic("predictive_analysis", config.prediction_interval, self.run_prediction)),
        ]
        if config.sweep_interval:
            self._tasks.append(
                asyncio.create_task(self._periodic("auto_heal_sweep", config.sweep_interval, self.heal_pending))
            )
        logger.info("healing_loops_started", loops=len(self._tasks))

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info("healing_loops_stopped", loops=len(tasks))

    async def _periodic(self, name: str, interval: float, tick: Callable[[], Awaitable[object]]) -> None:
        while True:
            await self._sleep(interval)
            try:
                await tick()
            except Exception as e:
                logger.error("periodic_task_failed", task=name, error=str(e), error_type=type(e).__name__)

    # ── Inputs ───────────────────────────────────────────────────────────

    def ingest_health_sample(self, resource: str, utilization: float) -> None:
        """Record the latest utilization for ``resource`` (read by the next health check)."""
        self._require_monitor().ingest(resource, utilization)

    def allow(self, service: str) -> bool:
        return self.context.breakers.allow(service)

    async def report_dependency_outcome(self, service: str, success: bool) -> BreakerState | None:
        """Feed a dependency call outcome into the breaker table; returns the new state."""
        breakers = self.context.breakers
        if success:
            breakers.report_success(service)
        else:
            breakers.report_failure(service)
        await self._flush_transitions()
        return breakers.state(service)

    def _on_breaker_transition(self, service: str, old: BreakerState, new: BreakerState) -> None:
        self._transitions.append((service, old, new))
        if old is BreakerState.CLOSED and new is BreakerState.OPEN:
            self._pending.append(
                Issue(
                    type=IssueType.CIRCUIT_BREAKER,
                    service=service,
                    severity=Severity.CRITICAL,
                    message=f"Circuit breaker OPEN for {service}",
                    detected_at=self._clock(),
                )
            )

    async def _flush_transitions(self) -> None:
        while self._transitions:
            service, old, new = self._transitions.popleft()
            await self._events.emit(
                CIRCUIT_BREAKER_STATE_CHANGE,
                {"service": service, "old_state": old.value, "new_state": new.value, "timestamp": self._clock()},
            )

    # ── Cycles ───────────────────────────────────────────────────────────

    def _require_monitor(self) -> HealthMonitor:
        if self.monitor is None:
            raise AutohealError("Healing engine is not initialized")
        return self.monitor

    @property
    def pending_issues(self) -> list[Issue]:
        return list(self._pending)

    def _drain_pending(self) -> list[Issue]:
        issues = []
        while self._pending:
            issues.append(self._pending.popleft())
        return issues

    async def run_health_check(self) -> HealthReport:
        """Sample health, then heal the detected and pending issues one at a time."""
        report, _ = await self.run_cycle()
        return report

    async def run_cycle(self) -> tuple[HealthReport, list[HealingRun]]:
        report = await self._require_monitor().sample()
        await self._flush_transitions()

        issues: dict[str, Issue] = {}
        for issue in self._drain_pending() + report.issues:
            issues.setdefault(issue.key, issue)
        runs = await self.handle_health_issues(prioritize(issues.values())) if issues else []
        return report, runs

    async def handle_health_issues(self, issues: list[Issue]) -> list[HealingRun]:
        runs = []
        for issue in issues:
            runs.append(await self.executor.heal_issue(issue))
            await self._flush_transitions()
        return runs

    async def heal_pending(self) -> list[HealingRun]:
        """Heal breaker-opened issues queued since the last cycle."""
        issues = self._drain_pending()
        if not issues:
            return []
        unique: dict[str, Issue] = {}
        for issue in issues:
            unique.setdefault(issue.key, issue)
        return await self.handle_health_issues(prioritize(unique.values()))

    async def run_prediction(self) -> PredictionReport | None:
        try:
            return await self.predictor.run()
        except Exception as e:
            logger.warning("predictive_analysis_failed", error=str(e), error_type=type(e).__name__)
            return None

    async def run_chaos_experiment(self, experiment_type: str) -> ChaosExperiment | None:
        experiment = await self.chaos.run(experiment_type)
        await self._flush_transitions()
        return experiment

    # ── Reporting ────────────────────────────────────────────────────────

    def get_status(self) -> dict:
        ctx = self.context
        monitor = self._require_monitor()
        last_prediction = self.predictor.last_report
        return {
            "current_state": self.state.value,
            "system_health": {
                "overall": monitor.overall_health,
                "components": monitor.component_snapshot(),
                "history_size": len(monitor.history),
            },
            "resources": ctx.resources.snapshot(),
            "circuit_breakers": [
                {"service": b["service"], "state": b["state"], "failures": b["failures"]}
                for b in ctx.breakers.summary()
            ],
            "healing_actions": ctx.actions.totals(),
            "intelligence": {
                "learning_enabled": ctx.config.learner.enabled,
                "patterns": len(self.learner.patterns),
                "suggestions": len(self.learner.suggestions),
            },
            "prediction": {
                "runs": self.predictor.runs,
                "risks": len(last_prediction.risks) if last_prediction else 0,
                "recommendations": len(last_prediction.recommendations) if last_prediction else 0,
            },
            "metrics": self.metrics.get_metrics().to_dict(),
            "chaos": self.chaos.summary(),
            "pending_issues": len(self._pending),
            "running": self.is_running,
            "timestamp": self._clock(),
        }

    async def shutdown(self) -> dict:
        """Stop the loops and emit ``healingSystemShutdown`` with the final learned state."""
        ctx = self.context
        logger.info("healing_engine_shutting_down")
        await self.stop()

        learned = self.learner.export()
        final_state = {
            "healing_patterns": learned["healing_patterns"],
            "success_history": learned["success_history"],
            "failure_history": learned["failure_history"],
            "system_health": self.monitor.overall_health,
            "resource_states": [
                {"name": r.name, "current": r.current, "limit": r.limit} for r in ctx.resources.all()
            ],
            "timestamp": self._clock(),
        }
        await self._events.emit(HEALING_SYSTEM_SHUTDOWN, final_state)
        self.executor.reset_state()
        logger.info("healing_engine_shutdown_complete")
        return final_state
