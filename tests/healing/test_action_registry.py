"""Tests for ActionRegistry."""

from __future__ import annotations

import pytest

from autoheal.healing.actions import FunctionAction
from autoheal.healing.models import ActionResult
from autoheal.healing.registry import ActionRegistry
from autoheal.shared.domain.exceptions import (
    DuplicateRegistrationError,
    MissingParameterError,
    UnknownActionError,
)


def _action(name="probe", result=None, required=("target",), calls=None):
    async def run(params):
        if calls is not None:
            calls.append(params)
        return result or ActionResult(success=True, message="ok", data={"target": params.get("target")})

    return FunctionAction(name, run, description="test action", required_params=required)


class TestRegistration:
    def test_register_and_get(self, clock):
        registry = ActionRegistry(clock=clock)
        action = _action()
        registry.register(action)
        assert registry.get("probe") is action
        assert "probe" in registry
        assert registry.all() == [action]

    def test_duplicate_name_fails(self, clock):
        registry = ActionRegistry(clock=clock)
        registry.register(_action())
        with pytest.raises(DuplicateRegistrationError) as exc:
            registry.register(_action())
        assert exc.value.context == {"action": "probe"}

    def test_stats_for_unknown_action(self, clock):
        registry = ActionRegistry(clock=clock)
        with pytest.raises(UnknownActionError):
            registry.stats("nope")


class TestInvoke:
    @pytest.mark.asyncio
    async def test_returns_result_unchanged(self, clock):
        registry = ActionRegistry(clock=clock)
        expected = ActionResult(success=True, message="done", data={"extra": 1})
        registry.register(_action(result=expected))

        result = await registry.invoke("probe", {"target": "x"})

        assert result is expected

    @pytest.mark.asyncio
    async def test_missing_parameter_fails_before_running(self, clock):
        calls = []
        registry = ActionRegistry(clock=clock)
        registry.register(_action(required=("target", "mode"), calls=calls))

        with pytest.raises(MissingParameterError) as exc:
            await registry.invoke("probe", {"target": "x"})

        assert exc.value.action == "probe"
        assert exc.value.missing == ["mode"]
        assert calls == []
        assert registry.stats("probe").execution_count == 0

    @pytest.mark.asyncio
    async def test_unknown_action(self, clock):
        registry = ActionRegistry(clock=clock)
        with pytest.raises(UnknownActionError):
            await registry.invoke("ghost", {})

    @pytest.mark.asyncio
    async def test_statistics_track_outcomes(self, clock):
        registry = ActionRegistry(clock=clock)
        registry.register(_action(name="good"))
        registry.register(_action(name="bad", result=ActionResult(success=False, message="nope")))

        await registry.invoke("good", {"target": 1})
        await registry.invoke("good", {"target": 2})
        await registry.invoke("bad", {"target": 3})

        good = registry.stats("good")
        assert good.execution_count == 2
        assert good.success_count == 2
        assert good.failure_count == 0
        assert good.last_execution == clock.now

        bad = registry.stats("bad")
        assert bad.failure_count == 1

        totals = registry.totals()
        assert totals["total"] == 2
        assert totals["executed"] == 3
        assert totals["success_rate"] == pytest.approx(2 / 3)

    @pytest.mark.asyncio
    async def test_average_latency_is_incremental_mean(self, clock):
        registry = ActionRegistry(clock=clock)
        delays = iter([1.0, 3.0])

        async def slow(params):
            clock.advance(next(delays))
            return ActionResult(success=True)

        registry.register(FunctionAction("slow", slow))
        await registry.invoke("slow", {})
        await registry.invoke("slow", {})

        assert registry.stats("slow").average_latency_ms == pytest.approx(2000.0)

    @pytest.mark.asyncio
    async def test_exception_is_recorded_and_reraised(self, clock):
        registry = ActionRegistry(clock=clock)

        async def boom(params):
            raise RuntimeError("disk on fire")

        registry.register(FunctionAction("boom", boom))

        with pytest.raises(RuntimeError, match="disk on fire"):
            await registry.invoke("boom", {})

        stats = registry.stats("boom")
        assert stats.execution_count == 1
        assert stats.failure_count == 1

    @pytest.mark.asyncio
    async def test_invocation_log_is_ordered_by_start(self, clock):
        registry = ActionRegistry(clock=clock)
        registry.register(_action(name="a", required=()))
        registry.register(_action(name="b", required=()))

        await registry.invoke("b", {})
        clock.advance(1)
        await registry.invoke("a", {})

        assert [inv.action for inv in registry.invocation_log()] == ["b", "a"]
