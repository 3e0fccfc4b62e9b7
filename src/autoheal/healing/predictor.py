"""Trend predictor: least-squares forecasting of threshold breaches."""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field

from autoheal.healing.context import EngineContext
from autoheal.healing.events import PREDICTIVE_ANALYSIS, PREEMPTIVE_HEALING
from autoheal.healing.learner import AdaptiveLearner
from autoheal.healing.metrics import RemediationMetricsCollector
from autoheal.healing.models import ResourceState
from autoheal.healing.monitor import HealthMonitor
from autoheal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TrendFit:
    """Ordinary least squares fit of utilization against sample index."""

    slope: float
    intercept: float
    predicted: float
    confidence: float
    samples: int

    def to_dict(self) -> dict:
        return {
            "slope": self.slope,
            "intercept": self.intercept,
            "predicted": self.predicted,
            "confidence": self.confidence,
            "samples": self.samples,
        }


def fit_trend(values: list[float], horizon: int = 10) -> TrendFit | None:
    """Fit ``y = intercept + slope * x`` over ``x = 0..n-1``.

    ``predicted`` is the fitted value at ``x = n + horizon``; ``confidence`` is
    R² clamped to [0, 1]. A flat series fits perfectly (confidence 1.0).
    Returns None when fewer than two points are given.
    """
    n = len(values)
    if n < 2:
        return None

    xs = range(n)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_x2 = sum(x * x for x in xs)

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    predicted = max(0.0, intercept + slope * (n + horizon))

    y_mean = sum_y / n
    ss_total = sum((y - y_mean) ** 2 for y in values)
    ss_residual = sum((y - (intercept + slope * x)) ** 2 for x, y in zip(xs, values))
    if ss_total == 0:
        r_squared = 1.0 if ss_residual == 0 else 0.0
    else:
        r_squared = 1 - ss_residual / ss_total

    return TrendFit(
        slope=slope,
        intercept=intercept,
        predicted=predicted,
        confidence=max(0.0, min(1.0, r_squared)),
        samples=n,
    )


@dataclass
class FailurePattern:
    """Dominant recurring failure over the recent window."""

    pattern: str | None = None
    frequency: int = 0
    risk_score: float = 0.0

    @property
    def probability(self) -> float:
        return self.risk_score

    @property
    def impact(self) -> str:
        if self.risk_score > 0.7:
            return "high"
        if self.risk_score > 0.4:
            return "medium"
        return "low"


@dataclass
class PredictionReport:
    timestamp: float
    risks: list[dict] = field(default_factory=list)
    recommendations: list[dict] = field(default_factory=list)
    preemptive_actions: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "risks": list(self.risks),
            "recommendations": list(self.recommendations),
            "preemptive_actions": list(self.preemptive_actions),
        }


class TrendPredictor:
    """Forecasts resource exhaustion and recurring failures.

    A confident forecast of a near breach scales the resource directly,
    without going through a playbook.
    """

    def __init__(
        self,
        context: EngineContext,
        monitor: HealthMonitor,
        learner: AdaptiveLearner,
        metrics: RemediationMetricsCollector | None = None,
        remediation_lock: asyncio.Lock | None = None,
    ) -> None:
        self._ctx = context
        self._settings = context.config.predictor
        self._monitor = monitor
        self._learner = learner
        self._metrics = metrics
        self._lock = remediation_lock or asyncio.Lock()
        self._runs = 0
        self._last_report: PredictionReport | None = None

    @property
    def runs(self) -> int:
        return self._runs

    @property
    def last_report(self) -> PredictionReport | None:
        return self._last_report

    def analyze_resource(self, resource: str) -> TrendFit | None:
        values = self._monitor.recent_utilization(resource, self._settings.window)
        if len(values) < self._settings.min_samples:
            return None
        return fit_trend(values, self._settings.horizon)

    def time_to_threshold(self, resource: ResourceState, fit: TrendFit) -> float:
        """Seconds until ``resource`` crosses its healing threshold at the fitted rate."""
        if fit.slope <= 0:
            return float("inf")
        steps = (resource.healing_threshold - resource.current) / fit.slope
        return steps * self._ctx.config.health_check_interval

    def analyze_failure_patterns(self) -> FailurePattern:
        recent = self._learner.recent_failures(self._settings.failure_window)
        if len(recent) < self._settings.failure_min_count:
            return FailurePattern()

        counts = Counter(f"{r.issue.type.value}_{r.issue.target}" for r in recent)
        pattern, frequency = counts.most_common(1)[0]
        return FailurePattern(
            pattern=pattern,
            frequency=frequency,
            risk_score=min(1.0, frequency / self._settings.failure_saturation),
        )

    async def run(self) -> PredictionReport:
        """One predictive-analysis cycle."""
        self._runs += 1
        report = PredictionReport(timestamp=self._ctx.clock())

        for resource in self._ctx.resources.all():
            try:
                fit = self.analyze_resource(resource.name)
            except (ArithmeticError, ValueError) as e:
                logger.debug("trend_analysis_skipped", resource=resource.name, error=str(e))
                continue
            if fit is None:
                continue
            if fit.slope <= self._settings.min_slope or fit.predicted <= resource.healing_threshold:
                continue

            ttt = self.time_to_threshold(resource, fit)
            report.risks.append(
                {
                    "type": "resource_exhaustion",
                    "resource": resource.name,
                    "time_to_threshold": ttt,
                    "predicted_max": fit.predicted,
                    "confidence": fit.confidence,
                }
            )

            if (
                self._settings.preemptive_enabled
                and ttt < self._settings.preemptive_window
                and fit.confidence > self._settings.confidence_threshold
            ):
                action = await self.preemptive_heal(resource, fit)
                if action is not None:
                    report.preemptive_actions.append(action)

        failure = self.analyze_failure_patterns()
        if failure.risk_score > self._settings.failure_risk_threshold:
            report.risks.append(
                {
                    "type": "failure_pattern",
                    "pattern": failure.pattern,
                    "frequency": failure.frequency,
                    "probability": failure.probability,
                    "estimated_impact": failure.impact,
                }
            )

        report.recommendations = self.recommendations(report.risks)
        self._last_report = report

        if report.risks:
            logger.info("predictive_risks_found", risks=len(report.risks))
            await self._ctx.events.emit(PREDICTIVE_ANALYSIS, report.to_dict())
        return report

    async def preemptive_heal(self, resource: ResourceState, fit: TrendFit) -> dict | None:
        """Scale ``resource`` ahead of its forecast breach."""
        scale_factor = 1 + (fit.predicted - resource.limit) / resource.limit + self._settings.scale_buffer
        logger.info(
            "preemptive_healing",
            resource=resource.name,
            predicted=round(fit.predicted, 2),
            scale_factor=round(scale_factor, 4),
        )

        async with self._lock:
            try:
                result = await self._ctx.actions.invoke(
                    "resource_scale",
                    {"resource_type": resource.name, "scale_factor": scale_factor},
                )
            except Exception as e:
                logger.error("preemptive_healing_failed", resource=resource.name, error=str(e))
                return None

        if not result.success:
            logger.warning("preemptive_healing_rejected", resource=resource.name, message=result.message)
            return None

        self._learner.record_preemptive(resource.name, scale_factor, fit.to_dict())
        if self._metrics:
            self._metrics.record_preemptive()
        action = {"resource": resource.name, "scale_factor": scale_factor, "message": result.message}
        await self._ctx.events.emit(PREEMPTIVE_HEALING, action)
        return action

    def recommendations(self, risks: list[dict]) -> list[dict]:
        recommendations = []
        for risk in risks:
            if risk["type"] == "resource_exhaustion":
                ttt = risk["time_to_threshold"]
                recommendations.append(
                    {
                        "type": "preventive",
                        "action": "scale_resource",
                        "target": risk["resource"],
                        "urgency": "high" if ttt < 600 else "medium",
                        "description": (
                            f"Scale {risk['resource']} before threshold reached in {max(0, round(ttt / 60))} minutes"
                        ),
                    }
                )
            elif risk["type"] == "failure_pattern":
                recommendations.append(
                    {
                        "type": "corrective",
                        "action": "investigate_root_cause",
                        "target": risk["pattern"],
                        "urgency": "high" if risk["probability"] > 0.8 else "medium",
                        "description": (
                            f"Investigate recurring {risk['pattern']} failures ({risk['frequency']} occurrences)"
                        ),
                    }
                )
        recommendations.extend(self._learner.suggestions)
        return recommendations
