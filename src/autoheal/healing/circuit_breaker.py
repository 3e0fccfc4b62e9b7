"""
Per-dependency circuit breaker table.

States:
    CLOSED    - Dependency is healthy, calls flow normally.
    OPEN      - Failure threshold reached, calls are rejected until ``next_retry``.
    HALF_OPEN - Cooldown elapsed, one probe call is let through.

Usage:
    table = CircuitBreakerTable(threshold=5, timeout=60, reset_timeout=120)
    table.add("database")
    if table.allow("database"):
        try:
            query()
            table.report_success("database")
        except DatabaseError:
            table.report_failure("database")

Mutations are serialized with a lock: dependency reporters may run on other
threads than the healing loop, and HALF_OPEN assumes a single probe.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class BreakerState(Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class CircuitBreaker:
    """Failure-tracking state for one dependency."""

    service: str
    state: BreakerState = BreakerState.CLOSED
    failures: int = 0
    last_failure: float | None = None
    next_retry: float | None = None
    success_count: int = 0

    def to_dict(self) -> dict:
        return {
            "service": self.service,
            "state": self.state.value,
            "failures": self.failures,
            "last_failure": self.last_failure,
            "next_retry": self.next_retry,
            "success_count": self.success_count,
        }


# (service, old_state, new_state)
TransitionListener = Callable[[str, BreakerState, BreakerState], None]


class CircuitBreakerTable:
    """Tracks CLOSED/OPEN/HALF_OPEN per dependency.

    Parameters:
        threshold: Failures in CLOSED state before the circuit opens.
        timeout: Seconds an opened circuit waits before allowing a probe.
        reset_timeout: Seconds to wait after a failed HALF_OPEN probe.
    """

    def __init__(
        self,
        threshold: int = 5,
        timeout: float = 60.0,
        reset_timeout: float = 120.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.threshold = threshold
        self.timeout = timeout
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: dict[str, CircuitBreaker] = {}
        self._listeners: list[TransitionListener] = []

    def add(self, service: str) -> CircuitBreaker:
        with self._lock:
            if service not in self._breakers:
                self._breakers[service] = CircuitBreaker(service=service)
            return self._breakers[service]

    def add_listener(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    def get(self, service: str) -> CircuitBreaker | None:
        return self._breakers.get(service)

    def services(self) -> list[str]:
        return list(self._breakers)

    def state(self, service: str) -> BreakerState | None:
        breaker = self._breakers.get(service)
        return breaker.state if breaker else None

    def open_services(self) -> list[str]:
        """Services whose breaker is currently OPEN (no time-based transition applied)."""
        return [s for s, b in self._breakers.items() if b.state is BreakerState.OPEN]

    def allow(self, service: str) -> bool:
        """Whether a call to ``service`` may proceed.

        An OPEN breaker whose cooldown has elapsed moves to HALF_OPEN and
        admits the probe. Untracked services are always allowed.
        """
        transition = None
        with self._lock:
            breaker = self._breakers.get(service)
            if breaker is None:
                return True
            if breaker.state is BreakerState.CLOSED:
                return True
            if breaker.state is BreakerState.HALF_OPEN:
                return True
            if breaker.next_retry is not None and self._clock() < breaker.next_retry:
                return False
            breaker.state = BreakerState.HALF_OPEN
            transition = (service, BreakerState.OPEN, BreakerState.HALF_OPEN)
            logger.info("circuit_half_open", service=service)

        self._notify(*transition)
        return True

    def report_success(self, service: str) -> None:
        """HALF_OPEN closes the circuit; otherwise the success is counted."""
        transition = None
        with self._lock:
            breaker = self._breakers.get(service)
            if breaker is None:
                logger.debug("circuit_unknown_service", service=service, outcome="success")
                return
            if breaker.state is BreakerState.HALF_OPEN:
                breaker.state = BreakerState.CLOSED
                breaker.failures = 0
                breaker.success_count = 0
                breaker.next_retry = None
                transition = (service, BreakerState.HALF_OPEN, BreakerState.CLOSED)
                logger.info("circuit_closed", service=service, message="Dependency recovered")
            else:
                breaker.success_count += 1

        if transition:
            self._notify(*transition)

    def report_failure(self, service: str) -> None:
        """Count a failure; opens the circuit from CLOSED at threshold, or re-opens from HALF_OPEN."""
        transition = None
        with self._lock:
            breaker = self._breakers.get(service)
            if breaker is None:
                logger.debug("circuit_unknown_service", service=service, outcome="failure")
                return
            now = self._clock()
            breaker.failures += 1
            breaker.last_failure = now

            if breaker.state is BreakerState.HALF_OPEN:
                breaker.state = BreakerState.OPEN
                breaker.next_retry = now + self.reset_timeout
                breaker.success_count = 0
                transition = (service, BreakerState.HALF_OPEN, BreakerState.OPEN)
                logger.warning(
                    "circuit_reopened",
                    service=service,
                    retry_in_seconds=self.reset_timeout,
                    message="Half-open probe failed, circuit re-opened",
                )
            elif breaker.state is BreakerState.CLOSED and breaker.failures >= self.threshold:
                breaker.state = BreakerState.OPEN
                breaker.next_retry = now + self.timeout
                breaker.success_count = 0
                transition = (service, BreakerState.CLOSED, BreakerState.OPEN)
                logger.warning(
                    "circuit_opened",
                    service=service,
                    failures=breaker.failures,
                    retry_in_seconds=self.timeout,
                )

        if transition:
            self._notify(*transition)

    def reset(self, service: str) -> None:
        """Manually return a breaker to CLOSED."""
        with self._lock:
            if service in self._breakers:
                self._breakers[service] = CircuitBreaker(service=service)
        logger.info("circuit_reset", service=service)

    def summary(self) -> list[dict]:
        return [b.to_dict() for b in self._breakers.values()]

    def _notify(self, service: str, old: BreakerState, new: BreakerState) -> None:
        for listener in list(self._listeners):
            try:
                listener(service, old, new)
            except Exception as e:
                logger.warning("circuit_listener_failed", service=service, error=str(e))
