"""Remediation actions and emergency operations."""

from autoheal.healing.actions.base import ContextAction, FunctionAction, IRemediationAction
from autoheal.healing.actions.emergency import EMERGENCY_OPERATIONS
from autoheal.healing.actions.standard import STANDARD_ACTIONS, register_standard_actions

__all__ = [
    "ContextAction",
    "EMERGENCY_OPERATIONS",
    "FunctionAction",
    "IRemediationAction",
    "STANDARD_ACTIONS",
    "register_standard_actions",
]
