"""Healing engine: detection, remediation, escalation, prediction and learning.

Public API:
    HealingEngine         - main entry point
    HealingConfig         - engine configuration
    load_healing_config   - YAML configuration loader
    HealingEventBus       - observer channel for engine events
    HealingState          - remediation state machine phases
    Issue                 - detected deviation
    fit_trend             - least-squares trend fit
"""

from autoheal.healing.config import HealingConfig, load_healing_config
from autoheal.healing.engine import HealingEngine
from autoheal.healing.events import HealingEvent, HealingEventBus
from autoheal.healing.models import HealingRun, HealingState, Issue, IssueType, Severity
from autoheal.healing.predictor import fit_trend

__all__ = [
    "HealingConfig",
    "HealingEngine",
    "HealingEvent",
    "HealingEventBus",
    "HealingRun",
    "HealingState",
    "Issue",
    "IssueType",
    "Severity",
    "fit_trend",
    "load_healing_config",
]
