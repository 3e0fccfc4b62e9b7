"""Chaos experiments: inject a failure, run a healing cycle, check recovery."""

from __future__ import annotations

from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from autoheal.healing.circuit_breaker import BreakerState
from autoheal.healing.context import EngineContext
from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

RESOURCE_SPIKE = "resource_spike"
SERVICE_FAILURE = "service_failure"

SPIKE_RESOURCE = "cpu"
SPIKE_UTILIZATION = 95.0
TRIPPED_SERVICE = "api"
RESILIENCE_WINDOW = 3600.0
EXPERIMENT_HISTORY_LIMIT = 100


@dataclass
class ChaosExperiment:
    type: str
    started_at: float
    injected_failures: list[dict[str, Any]] = field(default_factory=list)
    result: dict[str, Any] | None = None

    @property
    def recovered(self) -> bool:
        return bool(self.result and self.result.get("recovered"))

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "started_at": self.started_at,
            "injected_failures": list(self.injected_failures),
            "result": self.result,
        }


class ChaosLab:
    """Runs chaos experiments against a live engine context.

    ``heal_cycle`` is the engine's health-check-and-heal coroutine; each
    experiment injects its failure and then awaits one cycle.
    """

    def __init__(
        self,
        context: EngineContext,
        heal_cycle: Callable[[], Awaitable[Any]],
        history_limit: int = EXPERIMENT_HISTORY_LIMIT,
    ) -> None:
        self._ctx = context
        self._heal_cycle = heal_cycle
        self._experiments: deque[ChaosExperiment] = deque(maxlen=history_limit)
        self._total_experiments = 0
        self._resilience_score = 1.0
        self._last_test: float | None = None

    @property
    def enabled(self) -> bool:
        return self._ctx.config.chaos_enabled

    @property
    def resilience_score(self) -> float:
        return self._resilience_score

    @property
    def experiments(self) -> list[ChaosExperiment]:
        return list(self._experiments)

    async def run(self, experiment_type: str) -> ChaosExperiment | None:
        if not self.enabled:
            logger.warning("chaos_disabled", experiment=experiment_type)
            return None

        runners = {RESOURCE_SPIKE: self._resource_spike, SERVICE_FAILURE: self._service_failure}
        runner = runners.get(experiment_type)
        if runner is None:
            raise ValueError(f"Unknown chaos experiment: {experiment_type}")

        logger.info("chaos_experiment_started", experiment=experiment_type)
        experiment = ChaosExperiment(type=experiment_type, started_at=self._ctx.clock())
        await runner(experiment)

        self._experiments.append(experiment)
        self._total_experiments += 1
        self._last_test = self._ctx.clock()
        self._resilience_score = self._score()
        logger.info(
            "chaos_experiment_complete",
            experiment=experiment_type,
            recovered=experiment.recovered,
            resilience_score=round(self._resilience_score, 3),
        )
        return experiment

    async def _resource_spike(self, experiment: ChaosExperiment) -> None:
        resource = self._ctx.resources.require(SPIKE_RESOURCE)
        original = resource.current
        resource.current = SPIKE_UTILIZATION
        experiment.injected_failures.append({"type": "cpu_spike", "from": original, "to": SPIKE_UTILIZATION})

        await self._heal_cycle()

        experiment.result = {
            "recovered": resource.current < resource.limit,
            "final_value": resource.current,
            "final_limit": resource.limit,
            "healing_time": self._ctx.clock() - experiment.started_at,
        }

    async def _service_failure(self, experiment: ChaosExperiment) -> None:
        breakers = self._ctx.breakers
        for _ in range(breakers.threshold):
            breakers.report_failure(TRIPPED_SERVICE)
        experiment.injected_failures.append({"type": "circuit_breaker_trip", "service": TRIPPED_SERVICE})

        await self._heal_cycle()

        state = breakers.state(TRIPPED_SERVICE)
        experiment.result = {
            "recovered": state is BreakerState.CLOSED,
            "final_state": state.value if state else None,
            "healing_time": self._ctx.clock() - experiment.started_at,
        }

    def _score(self) -> float:
        cutoff = self._ctx.clock() - RESILIENCE_WINDOW
        recent = [e for e in self._experiments if e.started_at >= cutoff]
        if not recent:
            return 1.0
        return sum(1 for e in recent if e.recovered) / len(recent)

    def summary(self) -> dict:
        return {
            "enabled": self.enabled,
            "resilience_score": self._resilience_score,
            "experiments": self._total_experiments,
            "last_test": self._last_test,
        }
