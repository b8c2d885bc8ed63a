"""
PiDAO Monitoring - Optimization Advisor.

============================================================
PURPOSE
============================================================
Compares each metrics snapshot with fixed performance
baselines and emits one advisory per category that falls
short.

CATEGORIES:
- network:      ledger throughput below baseline
- application:  request latency or error rate above baseline
- resource:     memory or CPU fraction above baseline
- contract:     compute usage or failure rate above baseline

PRIORITY (observed value / baseline, worst triggering metric):
- ratio > 2.0   -> high (also notifies operators)
- ratio > 1.5   -> medium
- otherwise     -> low

============================================================
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from .clock import ClockProtocol, get_clock
from .models import (
    MetricsSnapshot,
    Notification,
    OptimizationSuggestion,
    Severity,
    SuggestionCategory,
    SuggestionMetric,
    SuggestionPriority,
)
from .notifications import NotificationFanout
from .store import TTLStore


logger = logging.getLogger(__name__)

SUGGESTIONS_KEY = "optimization:suggestions"
SUGGESTIONS_TTL_SECONDS = 24 * 60 * 60
MAX_SUGGESTIONS = 100

PERFORMANCE_BASELINES: Dict[str, float] = {
    "ledger.throughput": 1000,
    "ledger.block_interval": 400,
    "ledger.confirmation_time": 1000,
    "application.request_latency": 100,
    "application.error_rate": 0.01,
    "application.memory_usage": 0.7,
    "application.cpu_usage": 0.6,
    "contract.gas_usage": 1_000_000,
    "contract.failure_rate": 0.01,
}


def calculate_priority(ratio: float) -> SuggestionPriority:
    """Map a value/baseline ratio to a priority."""
    if ratio > 2:
        return SuggestionPriority.HIGH
    if ratio > 1.5:
        return SuggestionPriority.MEDIUM
    return SuggestionPriority.LOW


# ============================================================
# CATEGORY TEMPLATES
# ============================================================

@dataclass(frozen=True)
class _CategoryTemplate:
    category: SuggestionCategory
    title: str
    description: str
    impact: str
    recommendation: str
    # (label, metric path, trigger); trigger is "below", "above" or None
    # for metrics that are reported without affecting the suggestion
    metrics: tuple


_TEMPLATES: List[_CategoryTemplate] = [
    _CategoryTemplate(
        category=SuggestionCategory.NETWORK,
        title="Network Performance Optimization",
        description="Network performance is below optimal levels",
        impact="Reduced transaction throughput and increased latency",
        recommendation=(
            "Consider the following optimizations:\n"
            "1. Optimize transaction batching\n"
            "2. Implement request rate limiting\n"
            "3. Review network configuration\n"
            "4. Consider using a dedicated RPC node"
        ),
        metrics=(
            ("TPS", "ledger.throughput", "below"),
            ("Block Time", "ledger.block_interval", None),
        ),
    ),
    _CategoryTemplate(
        category=SuggestionCategory.APPLICATION,
        title="Application Performance Optimization",
        description="Application performance metrics indicate potential issues",
        impact="Degraded user experience and increased error rates",
        recommendation=(
            "Consider the following optimizations:\n"
            "1. Implement request caching\n"
            "2. Optimize database queries\n"
            "3. Add request retries with exponential backoff\n"
            "4. Review error handling strategies"
        ),
        metrics=(
            ("Request Latency", "application.request_latency", "above"),
            ("Error Rate", "application.error_rate", "above"),
        ),
    ),
    _CategoryTemplate(
        category=SuggestionCategory.RESOURCE,
        title="Resource Usage Optimization",
        description="System resource usage is approaching critical levels",
        impact="Potential system instability and performance degradation",
        recommendation=(
            "Consider the following optimizations:\n"
            "1. Implement memory leak detection\n"
            "2. Review resource-intensive operations\n"
            "3. Optimize background tasks\n"
            "4. Consider scaling infrastructure"
        ),
        metrics=(
            ("Memory Usage", "application.memory_usage", "above"),
            ("CPU Usage", "application.cpu_usage", "above"),
        ),
    ),
    _CategoryTemplate(
        category=SuggestionCategory.CONTRACT,
        title="Smart Contract Optimization",
        description="Smart contract performance can be improved",
        impact="High compute costs and increased failure rates",
        recommendation=(
            "Consider the following optimizations:\n"
            "1. Optimize program code for compute efficiency\n"
            "2. Implement proper error handling\n"
            "3. Review program state management\n"
            "4. Consider batching transactions"
        ),
        metrics=(
            ("Gas Usage", "contract.gas_usage", "above"),
            ("Failure Rate", "contract.failure_rate", "above"),
        ),
    ),
]


def _ratio(value: float, baseline: float) -> float:
    return value / baseline if baseline else 0.0


# ============================================================
# ADVISOR
# ============================================================

class OptimizationAdvisor:
    """
    Produces optimization suggestions from snapshots.

    Usage:
        advisor = OptimizationAdvisor(store, fanout)
        collector.add_listener(advisor.analyze)
    """

    def __init__(
        self,
        store: TTLStore,
        fanout: NotificationFanout,
        clock: Optional[ClockProtocol] = None,
        baselines: Optional[Dict[str, float]] = None,
    ):
        """Initialize advisor."""
        self._store = store
        self._fanout = fanout
        self._clock = clock or get_clock()
        self._baselines = {**PERFORMANCE_BASELINES, **(baselines or {})}

    def evaluate(self, snapshot: MetricsSnapshot) -> List[OptimizationSuggestion]:
        """Build suggestions for a snapshot (pure, nothing stored)."""
        suggestions: List[OptimizationSuggestion] = []
        for template in _TEMPLATES:
            suggestion = self._evaluate_category(template, snapshot)
            if suggestion is not None:
                suggestions.append(suggestion)
        return suggestions

    def _evaluate_category(
        self,
        template: _CategoryTemplate,
        snapshot: MetricsSnapshot,
    ) -> Optional[OptimizationSuggestion]:
        worst_ratio: Optional[float] = None
        metrics: List[SuggestionMetric] = []

        for label, path, trigger in template.metrics:
            value = snapshot.get_metric(path) or 0.0
            baseline = self._baselines[path]
            metrics.append(SuggestionMetric(name=label, value=value, threshold=baseline))

            if trigger == "below":
                breached = value < baseline
            elif trigger == "above":
                breached = value > baseline
            else:
                breached = False
            if breached:
                ratio = _ratio(value, baseline)
                worst_ratio = ratio if worst_ratio is None else max(worst_ratio, ratio)

        if worst_ratio is None:
            return None

        return OptimizationSuggestion(
            id=f"{template.category.value}-{uuid.uuid4().hex[:12]}",
            timestamp=self._clock.now(),
            category=template.category,
            priority=calculate_priority(worst_ratio),
            title=template.title,
            description=template.description,
            impact=template.impact,
            recommendation=template.recommendation,
            metrics=metrics,
        )

    async def analyze(self, snapshot: MetricsSnapshot) -> List[OptimizationSuggestion]:
        """Evaluate a snapshot, store the suggestions and notify on high priority."""
        suggestions = self.evaluate(snapshot)
        if not suggestions:
            return suggestions

        history = await self._store.get(SUGGESTIONS_KEY) or []
        updated = [s.to_dict() for s in suggestions] + history
        await self._store.set(SUGGESTIONS_KEY, updated[:MAX_SUGGESTIONS], SUGGESTIONS_TTL_SECONDS)

        logger.info(
            f"Optimization suggestions: "
            f"{', '.join(f'{s.category.value}={s.priority.value}' for s in suggestions)}"
        )

        for suggestion in suggestions:
            if suggestion.priority == SuggestionPriority.HIGH:
                await self._notify(suggestion)
        return suggestions

    async def __call__(self, snapshot: MetricsSnapshot) -> List[OptimizationSuggestion]:
        """Snapshot listener entry point."""
        return await self.analyze(snapshot)

    async def _notify(self, suggestion: OptimizationSuggestion) -> None:
        await self._fanout.send(Notification(
            title=f"High Priority Optimization Required: {suggestion.title}",
            message=(
                f"{suggestion.description}\n\n"
                f"Impact: {suggestion.impact}\n\n"
                f"{suggestion.recommendation}"
            ),
            severity=Severity.WARNING,
            metadata={
                "category": suggestion.category.value,
                "metrics": [m.to_dict() for m in suggestion.metrics],
            },
        ))

    async def get_suggestion_history(self) -> List[OptimizationSuggestion]:
        """All retained suggestions, newest first."""
        suggestions: List[OptimizationSuggestion] = []
        for data in await self._store.get(SUGGESTIONS_KEY) or []:
            try:
                suggestions.append(OptimizationSuggestion.from_dict(data))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed suggestion: {e}")
        return suggestions

    async def get_latest_suggestions(self, limit: int = 10) -> List[OptimizationSuggestion]:
        return (await self.get_suggestion_history())[:limit]
