"""Adaptive learner: outcome history, healing patterns and fallback healing."""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from autoheal.healing.circuit_breaker import BreakerState
from autoheal.healing.context import EngineContext
from autoheal.healing.models import HealingRun, Issue, IssueType, StepResult
from autoheal.healing.templating import resolve_parameters
from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

PREEMPTIVE_KEY = "preemptive"
LEARNED_REPLAY = "learned_replay"
GENERIC_SEQUENCE = "generic_sequence"


def action_signature(action: str, params: dict[str, Any]) -> str:
    """Stable key for an (action, parameters) pair."""
    return f"{action}:{json.dumps(params, sort_keys=True, default=str)}"


@dataclass
class OutcomeRecord:
    """One remembered healing run (success or failure)."""

    issue: Issue
    playbook: str
    actions: list[tuple[str, dict[str, Any]]]
    duration: float
    timestamp: float
    failed_step: str | None = None

    def to_dict(self) -> dict:
        return {
            "issue": self.issue.to_dict(),
            "playbook": self.playbook,
            "actions": [{"name": name, "params": params} for name, params in self.actions],
            "duration": self.duration,
            "timestamp": self.timestamp,
            "failed_step": self.failed_step,
        }


@dataclass
class HealingPattern:
    """Learned success/failure statistics for one issue key."""

    successful_actions: dict[str, int] = field(default_factory=dict)
    failed_actions: dict[str, int] = field(default_factory=dict)
    successes: int = 0
    failures: int = 0
    avg_success_time: float = 0.0
    last_update: float = 0.0

    @property
    def observations(self) -> int:
        return self.successes + self.failures

    @property
    def success_rate(self) -> float:
        if self.observations == 0:
            return 0.0
        return self.successes / self.observations

    def to_dict(self) -> dict:
        return {
            "successful_actions": dict(self.successful_actions),
            "failed_actions": dict(self.failed_actions),
            "successes": self.successes,
            "failures": self.failures,
            "avg_success_time": self.avg_success_time,
            "success_rate": round(self.success_rate, 4),
            "last_update": self.last_update,
        }


GENERIC_SEQUENCE_STEPS: tuple[tuple[str, dict[str, Any]], ...] = (
    ("cache_clear", {"cache_type": "all"}),
    ("connection_reset", {"pool_name": "all"}),
    ("service_restart", {"service_name": "{{service}}"}),
)


class AdaptiveLearner:
    """Remembers which remediation sequences worked and replays them.

    Histories are bounded per key (``learner.history_limit``).
    """

    def __init__(self, context: EngineContext) -> None:
        self._ctx = context
        self._settings = context.config.learner
        self._success_history: dict[str, deque[OutcomeRecord]] = {}
        self._failure_history: dict[str, deque[OutcomeRecord]] = {}
        self._preemptive: deque[dict] = deque(maxlen=self._settings.history_limit)
        self._patterns: dict[str, HealingPattern] = {}
        self._suggestions: dict[str, dict] = {}

    # ── Outcome recording ────────────────────────────────────────────────

    def record_outcome(self, issue_key: str, success: bool, run: HealingRun) -> HealingPattern | None:
        failed = run.failed_step
        record = OutcomeRecord(
            issue=run.issue,
            playbook=run.playbook,
            actions=run.action_sequence(),
            duration=run.total_duration,
            timestamp=self._ctx.clock(),
            failed_step=failed.action if failed else None,
        )
        history = self._success_history if success else self._failure_history
        history.setdefault(issue_key, deque(maxlen=self._settings.history_limit)).append(record)

        if not self._settings.enabled:
            return None
        return self._learn(issue_key, success, run)

    def record_preemptive(self, resource: str, scale_factor: float, trend: dict) -> None:
        self._preemptive.append(
            {
                "resource": resource,
                "action": "scale",
                "scale_factor": scale_factor,
                "trend": trend,
                "timestamp": self._ctx.clock(),
            }
        )

    def _learn(self, issue_key: str, success: bool, run: HealingRun) -> HealingPattern:
        pattern = self._patterns.setdefault(issue_key, HealingPattern())

        if success:
            for step in run.steps:
                sig = action_signature(step.action, step.params)
                pattern.successful_actions[sig] = pattern.successful_actions.get(sig, 0) + 1
            pattern.successes += 1
            pattern.avg_success_time += (run.total_duration - pattern.avg_success_time) / pattern.successes
        else:
            failed = run.failed_step
            if failed is not None:
                sig = action_signature(failed.action, failed.params)
                pattern.failed_actions[sig] = pattern.failed_actions.get(sig, 0) + 1
            pattern.failures += 1

        pattern.last_update = self._ctx.clock()

        if (
            pattern.observations > self._settings.min_observations
            and pattern.success_rate < self._settings.low_success_rate
        ):
            self._suggestions[issue_key] = {
                "type": "improvement",
                "action": "review_playbook",
                "target": issue_key,
                "urgency": "low",
                "description": (
                    f"Playbook for {issue_key} has low success rate ({pattern.success_rate * 100:.1f}%)"
                ),
            }
            logger.info("optimization_suggested", issue_key=issue_key, success_rate=pattern.success_rate)

        return pattern

    # ── Queries ───────────────────────────────────────────────────────────

    def pattern(self, issue_key: str) -> HealingPattern | None:
        return self._patterns.get(issue_key)

    def success_rate(self, issue_key: str) -> float:
        pattern = self._patterns.get(issue_key)
        return pattern.success_rate if pattern else 0.0

    @property
    def patterns(self) -> dict[str, HealingPattern]:
        return dict(self._patterns)

    @property
    def suggestions(self) -> list[dict]:
        return list(self._suggestions.values())

    @property
    def preemptive_history(self) -> list[dict]:
        return list(self._preemptive)

    def successes(self, issue_key: str) -> list[OutcomeRecord]:
        return list(self._success_history.get(issue_key, ()))

    def failures(self, issue_key: str) -> list[OutcomeRecord]:
        return list(self._failure_history.get(issue_key, ()))

    def similar_successes(self, issue: Issue) -> list[OutcomeRecord]:
        """Last ``replay_window`` successful runs for the issue's key, oldest first."""
        return self.successes(issue.key)[-self._settings.replay_window:]

    def recent_failures(self, window: float) -> list[OutcomeRecord]:
        cutoff = self._ctx.clock() - window
        return [r for records in self._failure_history.values() for r in records if r.timestamp >= cutoff]

    # ── Fallback healing ─────────────────────────────────────────────────

    async def fallback_heal(self, issue: Issue) -> HealingRun:
        """Heal an issue no playbook covers.

        Replays the most recent successful sequence for the same key. If there
        is none, or the replay fails, runs the generic sequence and stops at
        the first step after which the signal has improved.
        """
        similar = self.similar_successes(issue)
        if similar:
            latest = similar[-1]
            logger.info("applying_learned_pattern", issue_key=issue.key, actions=len(latest.actions))
            run = HealingRun(issue=issue, playbook=LEARNED_REPLAY, started_at=self._ctx.clock())
            for name, params in latest.actions:
                step = await self._invoke(name, dict(params))
                run.steps.append(step)
                if not step.success:
                    run.success = False
                    break
            run.finished_at = self._ctx.clock()
            if run.success:
                return run
            logger.warning("learned_pattern_failed", issue_key=issue.key, failed_action=run.failed_step.action)

        return await self._generic_heal(issue)

    async def _generic_heal(self, issue: Issue) -> HealingRun:
        logger.info("applying_generic_sequence", issue_key=issue.key)
        run = HealingRun(issue=issue, playbook=GENERIC_SEQUENCE, success=False, started_at=self._ctx.clock())
        context = {"service": issue.service or "affected"}

        for name, params in GENERIC_SEQUENCE_STEPS:
            step = await self._invoke(name, resolve_parameters(params, context))
            run.steps.append(step)
            if step.success and await self.check_improvement(issue):
                logger.info("generic_sequence_resolved", issue_key=issue.key, action=name)
                run.success = True
                break

        run.finished_at = self._ctx.clock()
        return run

    async def check_improvement(self, issue: Issue) -> bool:
        """Whether the signal behind ``issue`` is back under its threshold."""
        await self._ctx.pause(self._settings.improvement_check_delay)

        if issue.type is IssueType.RESOURCE and issue.resource:
            resource = self._ctx.resources.get(issue.resource)
            return resource is not None and resource.current < resource.healing_threshold
        if issue.type is IssueType.CIRCUIT_BREAKER and issue.service:
            state = self._ctx.breakers.state(issue.service)
            return state is not None and state is not BreakerState.OPEN
        return False

    async def _invoke(self, name: str, params: dict[str, Any]) -> StepResult:
        step = StepResult(action=name, params=params, success=False, started_at=self._ctx.clock())
        try:
            result = await self._ctx.actions.invoke(name, params)
            step.result = result
            step.success = result.success
        except Exception as e:
            logger.error("fallback_action_failed", action=name, error=str(e))
            step.error = str(e)
        step.finished_at = self._ctx.clock()
        return step

    # ── Export ───────────────────────────────────────────────────────────

    def export(self) -> dict:
        success_history: dict[str, list] = {k: [r.to_dict() for r in v] for k, v in self._success_history.items()}
        if self._preemptive:
            success_history[PREEMPTIVE_KEY] = list(self._preemptive)
        return {
            "healing_patterns": {k: p.to_dict() for k, p in self._patterns.items()},
            "success_history": success_history,
            "failure_history": {k: [r.to_dict() for r in v] for k, v in self._failure_history.items()},
            "optimization_suggestions": self.suggestions,
        }
