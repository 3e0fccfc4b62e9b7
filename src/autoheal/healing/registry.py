"""Action registry: named remediation operations with execution statistics."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from autoheal.healing.actions.base import IRemediationAction
from autoheal.healing.models import ActionResult
from autoheal.shared.domain.exceptions import (
    DuplicateRegistrationError,
    MissingParameterError,
    UnknownActionError,
)
from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

INVOCATION_LOG_LIMIT = 200


@dataclass(frozen=True)
class Invocation:
    """Start/end timestamps of one action invocation."""

    action: str
    started_at: float
    finished_at: float
    success: bool


@dataclass
class ActionStats:
    """Mutable run statistics of a registered action."""

    execution_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    average_latency_ms: float = 0.0
    last_execution: float | None = None
    invocations: deque[Invocation] = field(default_factory=lambda: deque(maxlen=INVOCATION_LOG_LIMIT))

    def record(self, invocation: Invocation) -> None:
        self.execution_count += 1
        if invocation.success:
            self.success_count += 1
        else:
            self.failure_count += 1
        latency_ms = (invocation.finished_at - invocation.started_at) * 1000
        # incremental mean
        self.average_latency_ms += (latency_ms - self.average_latency_ms) / self.execution_count
        self.last_execution = invocation.finished_at
        self.invocations.append(invocation)

    def to_dict(self) -> dict:
        return {
            "execution_count": self.execution_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "average_latency_ms": round(self.average_latency_ms, 3),
            "last_execution": self.last_execution,
        }


class ActionRegistry:
    """Per-engine registry mapping action names to implementations."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._actions: dict[str, IRemediationAction] = {}
        self._stats: dict[str, ActionStats] = {}

    def register(self, action: IRemediationAction) -> None:
        """Register an action. Names are unique for the registry's lifetime."""
        if action.name in self._actions:
            raise DuplicateRegistrationError(
                f"Action '{action.name}' is already registered",
                context={"action": action.name},
            )
        self._actions[action.name] = action
        self._stats[action.name] = ActionStats()
        logger.debug("action_registered", action=action.name, risk=action.risk.value)

    def get(self, name: str) -> IRemediationAction | None:
        return self._actions.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._actions

    def all(self) -> list[IRemediationAction]:
        return list(self._actions.values())

    def stats(self, name: str) -> ActionStats:
        if name not in self._stats:
            raise UnknownActionError(f"Action '{name}' is not registered", context={"action": name})
        return self._stats[name]

    async def invoke(self, name: str, params: dict[str, Any]) -> ActionResult:
        """Validate parameters, run the action and fold the outcome into its statistics.

        Raises:
            UnknownActionError: ``name`` is not registered.
            MissingParameterError: a required parameter is absent.
        """
        action = self._actions.get(name)
        if action is None:
            raise UnknownActionError(f"Action '{name}' is not registered", context={"action": name})

        missing = [p for p in action.required_params if p not in params]
        if missing:
            raise MissingParameterError(name, missing)

        stats = self._stats[name]
        started = self._clock()
        try:
            result = await action.execute(params)
        except Exception:
            stats.record(Invocation(name, started, self._clock(), success=False))
            raise

        stats.record(Invocation(name, started, self._clock(), success=result.success))
        logger.debug("action_invoked", action=name, success=result.success, message=result.message)
        return result

    def totals(self) -> dict:
        executed = sum(s.execution_count for s in self._stats.values())
        succeeded = sum(s.success_count for s in self._stats.values())
        return {
            "total": len(self._actions),
            "executed": executed,
            "success_rate": succeeded / executed if executed else 0.0,
        }

    def invocation_log(self) -> list[Invocation]:
        """All retained invocations across actions, oldest first."""
        merged = [inv for stats in self._stats.values() for inv in stats.invocations]
        return sorted(merged, key=lambda inv: inv.started_at)
