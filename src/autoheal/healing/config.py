"""
Engine configuration models and YAML loader.

Defaults mirror the stock deployment: five tracked resources, five
breaker-guarded dependencies, one-minute health checks and five-minute
predictive analysis.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from autoheal.shared.domain.exceptions import ConfigurationError


class ResourceConfig(BaseModel):
    """A tracked resource and its thresholds."""

    name: str
    limit: float = Field(..., gt=0, description="Capacity; health = 1 - utilization/limit")
    healing_threshold: float = Field(..., ge=0, description="Utilization above which an issue is raised")


class CircuitBreakerSettings(BaseModel):
    threshold: int = Field(default=5, ge=1, description="Consecutive failures before opening")
    timeout: float = Field(default=60.0, gt=0, description="Cooldown after CLOSED -> OPEN (seconds)")
    reset_timeout: float = Field(default=120.0, gt=0, description="Cooldown after a failed probe (seconds)")
    services: list[str] = Field(default_factory=lambda: ["database", "api", "cache", "queue", "storage"])


class PredictorSettings(BaseModel):
    window: int = Field(default=20, ge=2, description="Samples used for the regression")
    horizon: int = Field(default=10, ge=1, description="Steps ahead to forecast")
    min_samples: int = Field(default=5, ge=2)
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    min_slope: float = Field(default=0.0, ge=0.0)
    preemptive_window: float = Field(default=300.0, gt=0, description="Seconds to breach that trigger action")
    preemptive_enabled: bool = True
    scale_buffer: float = Field(default=0.2, ge=0.0)
    failure_window: float = Field(default=3600.0, gt=0)
    failure_min_count: int = Field(default=3, ge=1)
    failure_saturation: int = Field(default=5, ge=1, description="Occurrences that map to risk 1.0")
    failure_risk_threshold: float = Field(default=0.7, ge=0.0, le=1.0)


class LearnerSettings(BaseModel):
    enabled: bool = True
    history_limit: int = Field(default=100, ge=1)
    replay_window: int = Field(default=5, ge=1)
    min_observations: int = Field(default=10, ge=1)
    low_success_rate: float = Field(default=0.7, ge=0.0, le=1.0)
    improvement_check_delay: float = Field(default=1.0, ge=0.0)


def _default_resources() -> list[ResourceConfig]:
    return [
        ResourceConfig(name="cpu", limit=80, healing_threshold=70),
        ResourceConfig(name="memory", limit=85, healing_threshold=75),
        ResourceConfig(name="disk", limit=90, healing_threshold=80),
        ResourceConfig(name="network", limit=85, healing_threshold=75),
        ResourceConfig(name="connections", limit=1000, healing_threshold=800),
    ]


class HealingConfig(BaseModel):
    """Full engine configuration passed to ``HealingEngine.initialize``."""

    resources: list[ResourceConfig] = Field(default_factory=_default_resources)
    circuit_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    predictor: PredictorSettings = Field(default_factory=PredictorSettings)
    learner: LearnerSettings = Field(default_factory=LearnerSettings)

    health_check_interval: float = Field(default=60.0, gt=0)
    prediction_interval: float = Field(default=300.0, gt=0)
    sweep_interval: float | None = Field(default=None, gt=0, description="Optional pending-issue sweep")
    health_history_limit: int = Field(default=1000, ge=1)
    failed_after: int = Field(default=3, ge=1, description="Consecutive failures that end a run in FAILED")
    chaos_enabled: bool = False
    simulate_action_latency: bool = True

    @model_validator(mode="after")
    def _unique_resources(self) -> "HealingConfig":
        names = [r.name for r in self.resources]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate resource names: {duplicates}")
        return self


def build_config(data: dict | None) -> HealingConfig:
    """Validate a raw mapping into a HealingConfig."""
    try:
        return HealingConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid healing configuration: {e}", context={"errors": e.errors()}) from e


def load_healing_config(path: str | Path | None) -> HealingConfig:
    """Load engine configuration from YAML.

    A missing path or file yields the defaults.
    """
    if path is None:
        return HealingConfig()

    config_path = Path(path)
    if not config_path.exists():
        return HealingConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return HealingConfig()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {config_path}")

    return build_config(data)
