"""Escalation dispatcher: best-effort emergency protocols for failed playbooks."""

from __future__ import annotations

from autoheal.healing.actions.emergency import EMERGENCY_OPERATIONS, EmergencyOperation
from autoheal.healing.context import EngineContext
from autoheal.healing.events import EMERGENCY_ESCALATION
from autoheal.healing.models import Issue
from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class EscalationDispatcher:
    """Runs an emergency protocol's operations in order.

    Never raises to the caller: an unknown protocol is a logged no-op, and an
    unknown or failing operation is logged and skipped.
    """

    def __init__(
        self,
        context: EngineContext,
        operations: dict[str, EmergencyOperation] | None = None,
    ) -> None:
        self._ctx = context
        self._operations = dict(EMERGENCY_OPERATIONS if operations is None else operations)

    def register_operation(self, name: str, operation: EmergencyOperation) -> None:
        self._operations[name] = operation

    async def escalate(self, issue: Issue, protocol_name: str) -> list[str]:
        """Escalate ``issue`` to ``protocol_name``.

        Returns the names of operations that completed.
        """
        protocol = self._ctx.protocols.get(protocol_name)
        if protocol is None:
            logger.error("emergency_protocol_not_found", protocol=protocol_name, issue_key=issue.key)
            return []

        logger.warning(
            "escalating_issue",
            protocol=protocol.key,
            priority=protocol.priority,
            issue_key=issue.key,
        )
        await self._ctx.events.emit(
            EMERGENCY_ESCALATION,
            {
                "issue": issue.to_dict(),
                "protocol": protocol.name,
                "priority": protocol.priority,
                "timestamp": self._ctx.clock(),
            },
        )

        completed = []
        for action_name in protocol.actions:
            operation = self._operations.get(action_name)
            if operation is None:
                logger.warning("unknown_emergency_action", action=action_name, protocol=protocol.key)
                continue
            try:
                await operation(self._ctx)
            except Exception as e:
                logger.error(
                    "emergency_action_failed",
                    action=action_name,
                    protocol=protocol.key,
                    error=str(e),
                )
                continue
            self._ctx.ledger.emergency_log.append(action_name)
            completed.append(action_name)
        return completed
