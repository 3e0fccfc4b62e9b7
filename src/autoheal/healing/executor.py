"""Playbook executor: the remediation state machine.

One call per issue, never overlapping:

1. HEALTHY/FAILED -> DIAGNOSING: match a playbook for the issue
2. DIAGNOSING -> HEALING: run the playbook steps (or the learner fallback)
3. HEALING -> RECOVERING on success
4. Escalate a failed playbook, record the outcome with the learner
5. Back to HEALTHY (or FAILED after repeated failures for the same key)
"""

from __future__ import annotations

import asyncio
from collections import deque

from autoheal.healing.context import EngineContext
from autoheal.healing.escalation import EscalationDispatcher
from autoheal.healing.events import HEALING_RUN_COMPLETE
from autoheal.healing.learner import AdaptiveLearner
from autoheal.healing.metrics import RemediationMetricsCollector
from autoheal.healing.models import HealingRun, HealingState, Issue, Playbook, StepResult
from autoheal.healing.templating import resolve_parameters
from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

RUN_HISTORY_LIMIT = 100

IDLE_STATES = frozenset({HealingState.HEALTHY, HealingState.MONITORING, HealingState.FAILED})


class PlaybookExecutor:
    """Maps an issue to a remediation plan and runs it step by step."""

    def __init__(
        self,
        context: EngineContext,
        learner: AdaptiveLearner,
        escalation: EscalationDispatcher,
        metrics: RemediationMetricsCollector | None = None,
        remediation_lock: asyncio.Lock | None = None,
    ) -> None:
        self._ctx = context
        self._learner = learner
        self._escalation = escalation
        self._metrics = metrics or RemediationMetricsCollector()
        self._lock = remediation_lock or asyncio.Lock()
        self._state = HealingState.HEALTHY
        self._consecutive_failures: dict[str, int] = {}
        self._runs: deque[HealingRun] = deque(maxlen=RUN_HISTORY_LIMIT)

    @property
    def state(self) -> HealingState:
        return self._state

    @property
    def is_idle(self) -> bool:
        return self._state in IDLE_STATES

    @property
    def runs(self) -> list[HealingRun]:
        return list(self._runs)

    def consecutive_failures(self, issue_key: str) -> int:
        return self._consecutive_failures.get(issue_key, 0)

    def reset_state(self) -> None:
        """Return to HEALTHY and forget failure streaks."""
        self._consecutive_failures.clear()
        self._transition(HealingState.HEALTHY)

    def _transition(self, new_state: HealingState) -> None:
        if new_state is self._state:
            return
        logger.debug("healing_phase_changed", old=self._state.value, new=new_state.value)
        self._state = new_state

    async def heal_issue(self, issue: Issue) -> HealingRun:
        """Remediate one issue. Waits for any in-flight remediation to finish first."""
        async with self._lock:
            return await self._heal(issue)

    async def _heal(self, issue: Issue) -> HealingRun:
        final_state = HealingState.HEALTHY
        run = HealingRun(issue=issue, playbook="none", success=False, started_at=self._ctx.clock())
        self._metrics.record_attempt(issue.type)
        logger.info("healing_started", issue_key=issue.key, severity=issue.severity.value, message=issue.message)

        try:
            self._transition(HealingState.DIAGNOSING)
            playbook = self._ctx.playbooks.match(issue)

            self._transition(HealingState.HEALING)
            if playbook is None:
                logger.info("no_playbook_match", issue_key=issue.key)
                self._metrics.record_fallback()
                run = await self._learner.fallback_heal(issue)
            else:
                run = await self.execute_playbook(playbook, issue)

            if run.success:
                self._transition(HealingState.RECOVERING)
                logger.info(
                    "healing_succeeded",
                    issue_key=issue.key,
                    playbook=run.playbook,
                    steps=len(run.steps),
                    duration=round(run.total_duration, 3),
                )
            else:
                failed = run.failed_step
                logger.warning(
                    "healing_failed",
                    issue_key=issue.key,
                    playbook=run.playbook,
                    failed_action=failed.action if failed else None,
                )
                if playbook is not None and playbook.escalation:
                    self._metrics.record_escalation()
                    await self._escalation.escalate(issue, playbook.escalation)

            self._learner.record_outcome(issue.key, run.success, run)
            final_state = self._settle(issue.key, run.success)
        except Exception as e:
            logger.error("healing_run_crashed", issue_key=issue.key, error=str(e), error_type=type(e).__name__)
            run.success = False
            final_state = self._settle(issue.key, False)
        finally:
            if run.finished_at is None:
                run.finished_at = self._ctx.clock()
            self._transition(final_state)

        self._metrics.record_result(run)
        self._runs.append(run)
        await self._ctx.events.emit(HEALING_RUN_COMPLETE, {**run.to_dict(), "state": self._state.value})
        return run

    def _settle(self, issue_key: str, success: bool) -> HealingState:
        """Update the failure streak for ``issue_key`` and pick the idle phase to end in."""
        if success:
            self._consecutive_failures.pop(issue_key, None)
            return HealingState.HEALTHY

        streak = self._consecutive_failures.get(issue_key, 0) + 1
        self._consecutive_failures[issue_key] = streak
        if streak >= self._ctx.config.failed_after:
            logger.error("healing_exhausted", issue_key=issue_key, consecutive_failures=streak)
            return HealingState.FAILED
        return HealingState.HEALTHY

    async def execute_playbook(self, playbook: Playbook, issue: Issue) -> HealingRun:
        """Run ``playbook`` steps in order, stopping at the first failing step."""
        run = HealingRun(issue=issue, playbook=playbook.key, started_at=self._ctx.clock())
        template_context = issue.template_context()
        logger.info("playbook_started", playbook=playbook.key, issue_key=issue.key, steps=len(playbook.steps))

        for index, step in enumerate(playbook.steps, start=1):
            await self._ctx.pause(step.delay)
            params = resolve_parameters(step.params, template_context)

            result = StepResult(action=step.action, params=params, success=False, started_at=self._ctx.clock())
            try:
                outcome = await self._ctx.actions.invoke(step.action, params)
                result.result = outcome
                result.success = outcome.success
            except Exception as e:
                logger.error(
                    "playbook_step_error",
                    playbook=playbook.key,
                    step=index,
                    action=step.action,
                    error=str(e),
                )
                result.error = str(e)
            result.finished_at = self._ctx.clock()
            run.steps.append(result)

            if not result.success:
                logger.warning("playbook_step_failed", playbook=playbook.key, step=index, action=step.action)
                run.success = False
                break

        run.finished_at = self._ctx.clock()
        return run
