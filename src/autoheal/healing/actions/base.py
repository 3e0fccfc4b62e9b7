"""Abstract base class for remediation actions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from autoheal.healing.models import ActionResult, DurationClass, RiskLevel

if TYPE_CHECKING:
    from autoheal.healing.context import EngineContext


class IRemediationAction(ABC):
    """A named, parameterized, idempotent remediation operation.

    Implementations must be safe to retry; the registry does not enforce it.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique action identifier, e.g. 'service_restart'."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable summary."""

    @property
    def risk(self) -> RiskLevel:
        return RiskLevel.LOW

    @property
    def duration(self) -> DurationClass:
        return DurationClass.SHORT

    @property
    def required_params(self) -> tuple[str, ...]:
        return ()

    @abstractmethod
    async def execute(self, params: dict[str, Any]) -> ActionResult:
        """Run the operation. Parameters are already validated."""


class FunctionAction(IRemediationAction):
    """Adapter that turns an async callable into a registered action."""

    def __init__(
        self,
        name: str,
        func,
        *,
        description: str = "",
        risk: RiskLevel = RiskLevel.LOW,
        duration: DurationClass = DurationClass.SHORT,
        required_params: tuple[str, ...] = (),
    ) -> None:
        self._name = name
        self._func = func
        self._description = description
        self._risk = risk
        self._duration = duration
        self._required = tuple(required_params)

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def risk(self) -> RiskLevel:
        return self._risk

    @property
    def duration(self) -> DurationClass:
        return self._duration

    @property
    def required_params(self) -> tuple[str, ...]:
        return self._required

    async def execute(self, params: dict[str, Any]) -> ActionResult:
        return await self._func(params)


class ContextAction(IRemediationAction):
    """Base for built-in actions that act on the engine context."""

    latency: float = 0.0

    def __init__(self, context: EngineContext) -> None:
        self._ctx = context
