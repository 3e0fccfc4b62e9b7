"""Shared test fixtures for the autoheal test suite."""

import asyncio

import pytest

from autoheal.healing.actions import register_standard_actions
from autoheal.healing.config import HealingConfig
from autoheal.healing.context import create_context
from autoheal.healing.playbooks import DEFAULT_PLAYBOOKS, DEFAULT_PROTOCOLS


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Sleeper that records requested delays and advances the fake clock instead of waiting."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper(clock):
    return RecordingSleep(clock)


@pytest.fixture
def healing_config():
    return HealingConfig()


@pytest.fixture
def context(healing_config, clock, sleeper):
    """Context with the standard actions, default playbooks, protocols and breakers."""
    ctx = create_context(healing_config, clock=clock, sleep=sleeper)
    register_standard_actions(ctx)
    for playbook in DEFAULT_PLAYBOOKS:
        ctx.playbooks.register(playbook)
    for protocol in DEFAULT_PROTOCOLS:
        ctx.protocols.register(protocol)
    for service in healing_config.circuit_breaker.services:
        ctx.breakers.add(service)
    return ctx


@pytest.fixture
def bare_context(healing_config, clock, sleeper):
    """Context with empty registries."""
    return create_context(healing_config, clock=clock, sleep=sleeper)
