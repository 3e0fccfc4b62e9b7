"""Observer channel through which the engine tells its host what happened."""

from __future__ import annotations

import inspect
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Union

from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

HEALTH_CHECK_COMPLETE = "healthCheckComplete"
EMERGENCY_ESCALATION = "emergencyEscalation"
PREDICTIVE_ANALYSIS = "predictiveAnalysis"
HEALING_SYSTEM_SHUTDOWN = "healingSystemShutdown"
HEALING_RUN_COMPLETE = "healingRunComplete"
CIRCUIT_BREAKER_STATE_CHANGE = "circuitBreakerStateChange"
PREEMPTIVE_HEALING = "preemptiveHealing"
INITIALIZED = "initialized"

ALL_EVENTS = "*"


@dataclass(frozen=True)
class HealingEvent:
    """Structured event payload delivered to subscribers."""

    kind: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


Subscriber = Callable[[HealingEvent], Union[None, Awaitable[None]]]


class HealingEventBus:
    """Fan-out of engine events to plain or async subscribers.

    Keeps a bounded history of emitted events so late consumers (status
    endpoints, tests) can inspect what happened. Events are stamped with
    ``clock``, normally the owning engine's clock.
    """

    def __init__(self, history_limit: int = 500, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._subscribers: dict[str, list[Subscriber]] = {}
        self._history: deque[HealingEvent] = deque(maxlen=history_limit)

    def subscribe(self, kind: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for ``kind`` (``"*"`` for every event).

        Returns a handle that removes the subscription.
        """
        self._subscribers.setdefault(kind, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(kind, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    async def emit(self, kind: str, payload: dict[str, Any] | None = None) -> HealingEvent:
        event = HealingEvent(kind=kind, payload=payload or {}, timestamp=self._clock())
        self._history.append(event)

        callbacks = list(self._subscribers.get(kind, [])) + list(self._subscribers.get(ALL_EVENTS, []))
        for callback in callbacks:
            try:
                outcome = callback(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.warning(
                    "event_subscriber_failed",
                    kind=kind,
                    subscriber=getattr(callback, "__qualname__", repr(callback)),
                    error=str(e),
                )
        return event

    def recent(self, kind: str | None = None) -> list[HealingEvent]:
        if kind is None:
            return list(self._history)
        return [e for e in self._history if e.kind == kind]

    def clear(self) -> None:
        self._history.clear()
