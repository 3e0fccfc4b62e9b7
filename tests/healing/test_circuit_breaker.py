"""Tests for CircuitBreakerTable."""

from __future__ import annotations

from autoheal.healing.circuit_breaker import BreakerState, CircuitBreakerTable


def _table(clock, threshold=3, timeout=60.0, reset_timeout=120.0):
    table = CircuitBreakerTable(threshold=threshold, timeout=timeout, reset_timeout=reset_timeout, clock=clock)
    table.add("api")
    return table


class TestCircuitBreakerTable:
    def test_starts_closed_and_allows(self, clock):
        table = _table(clock)
        assert table.state("api") is BreakerState.CLOSED
        assert table.allow("api") is True

    def test_opens_after_threshold_failures(self, clock):
        table = _table(clock, threshold=3)
        table.report_failure("api")
        table.report_failure("api")
        assert table.state("api") is BreakerState.CLOSED

        table.report_failure("api")

        breaker = table.get("api")
        assert breaker.state is BreakerState.OPEN
        assert breaker.failures == 3
        assert breaker.next_retry == clock.now + 60.0
        assert table.open_services() == ["api"]

    def test_open_rejects_until_cooldown(self, clock):
        table = _table(clock, threshold=1)
        table.report_failure("api")

        clock.advance(59)
        assert table.allow("api") is False
        assert table.state("api") is BreakerState.OPEN

    def test_cooldown_grants_half_open_probe(self, clock):
        table = _table(clock, threshold=1)
        table.report_failure("api")
        clock.advance(60)

        assert table.allow("api") is True
        assert table.state("api") is BreakerState.HALF_OPEN

    def test_half_open_success_closes_and_resets(self, clock):
        table = _table(clock, threshold=2)
        table.report_failure("api")
        table.report_failure("api")
        clock.advance(60)
        table.allow("api")

        table.report_success("api")

        breaker = table.get("api")
        assert breaker.state is BreakerState.CLOSED
        assert breaker.failures == 0
        assert breaker.next_retry is None

    def test_half_open_failure_reopens_with_reset_timeout(self, clock):
        table = _table(clock, threshold=1, timeout=60, reset_timeout=120)
        table.report_failure("api")
        clock.advance(60)
        table.allow("api")

        table.report_failure("api")

        breaker = table.get("api")
        assert breaker.state is BreakerState.OPEN
        assert breaker.next_retry == clock.now + 120

    def test_success_while_closed_only_counts(self, clock):
        table = _table(clock, threshold=3)
        table.report_failure("api")
        table.report_success("api")

        breaker = table.get("api")
        assert breaker.state is BreakerState.CLOSED
        assert breaker.success_count == 1
        assert breaker.failures == 1

    def test_unknown_service_is_allowed_and_ignored(self, clock):
        table = _table(clock)
        assert table.allow("ghost") is True
        table.report_failure("ghost")
        table.report_success("ghost")
        assert table.get("ghost") is None

    def test_listeners_see_transitions(self, clock):
        table = _table(clock, threshold=1)
        seen = []
        table.add_listener(lambda service, old, new: seen.append((service, old, new)))

        table.report_failure("api")
        clock.advance(60)
        table.allow("api")
        table.report_success("api")

        assert seen == [
            ("api", BreakerState.CLOSED, BreakerState.OPEN),
            ("api", BreakerState.OPEN, BreakerState.HALF_OPEN),
            ("api", BreakerState.HALF_OPEN, BreakerState.CLOSED),
        ]

    def test_failing_listener_does_not_break_reporting(self, clock):
        table = _table(clock, threshold=1)

        def broken(service, old, new):
            raise RuntimeError("listener down")

        table.add_listener(broken)
        table.report_failure("api")

        assert table.state("api") is BreakerState.OPEN

    def test_reset(self, clock):
        table = _table(clock, threshold=1)
        table.report_failure("api")
        table.reset("api")
        assert table.state("api") is BreakerState.CLOSED
        assert table.get("api").failures == 0
