"""
Benchmark Runner.

============================================================
PURPOSE
============================================================
Runs named benchmark configurations on demand or on schedule,
classifies each run against per-metric thresholds and keeps a
rolling result history.

CLASSIFICATION:
- failure  if any metric reaches its failure threshold
- warning  else if any metric reaches its warning threshold
- success  otherwise

A metric reaches a threshold when value >= threshold.

STORAGE:
    benchmark:results         newest 1000 results, 30-day TTL
    benchmark:config:{id}     config incl. last_run, no expiry

============================================================
"""

import logging
from typing import Dict, List, Optional

from ..clock import ClockProtocol, get_clock
from ..collectors.base import SamplerRegistry
from ..exceptions import BenchmarkConfigurationError, BenchmarkNotFoundError
from ..models import (
    BenchmarkCategory,
    BenchmarkConfig,
    BenchmarkMetric,
    BenchmarkMetricResult,
    BenchmarkResult,
    BenchmarkSchedule,
    BenchmarkStatus,
    Notification,
    ScheduleFrequency,
    Severity,
)
from ..notifications import NotificationFanout
from ..notifications.base import format_value
from ..scheduler import KeyedLock, PeriodicTask
from ..store import TTLStore


logger = logging.getLogger(__name__)

RESULTS_KEY = "benchmark:results"
CONFIG_KEY_PREFIX = "benchmark:config"
RESULTS_TTL_SECONDS = 30 * 24 * 60 * 60
MAX_RESULTS = 1000

# Metric names accepted for compatibility with camelCase configs
METRIC_ALIASES: Dict[str, str] = {
    "tps": "throughput",
    "blockTime": "block_interval",
    "confirmationTime": "confirmation_time",
    "requestLatency": "request_latency",
    "errorRate": "error_rate",
    "gasUsage": "gas_usage",
    "failureRate": "failure_rate",
}

_RESULTS_LOCK_KEY = "__results__"


# ============================================================
# CLASSIFICATION
# ============================================================

def compute_deviation(value: float, baseline: float) -> float:
    """(value - baseline) / baseline; 0.0 for a zero baseline."""
    if baseline == 0:
        return 0.0
    return (value - baseline) / baseline


def classify_benchmark(
    metrics: List[BenchmarkMetric],
    values: Dict[str, float],
) -> BenchmarkStatus:
    """Failure dominates warning dominates success."""
    has_warning = False
    for metric in metrics:
        if metric.name not in values:
            continue
        value = values[metric.name]
        if metric.breaches(value, metric.failure_threshold):
            return BenchmarkStatus.FAILURE
        if metric.breaches(value, metric.warning_threshold):
            has_warning = True
    return BenchmarkStatus.WARNING if has_warning else BenchmarkStatus.SUCCESS


def build_summary(
    config: BenchmarkConfig,
    results: List[BenchmarkMetricResult],
    status: BenchmarkStatus,
) -> str:
    """Human-readable run summary."""
    status_text = {
        BenchmarkStatus.SUCCESS: "passed",
        BenchmarkStatus.WARNING: "passed with warnings",
        BenchmarkStatus.FAILURE: "failed",
    }[status]

    lines = [f"{config.name} benchmark {status_text}.", "", "Metrics:"]
    for result in results:
        if result.deviation > 0:
            direction = "above"
        elif result.deviation < 0:
            direction = "below"
        else:
            direction = "at"
        lines.append(
            f"- {result.name}: {format_value(result.value)} "
            f"({abs(result.deviation) * 100:.2f}% {direction} baseline)"
        )
    return "\n".join(lines) + "\n"


# ============================================================
# DEFAULT CONFIGS
# ============================================================

def default_benchmark_configs() -> List[BenchmarkConfig]:
    """Stock benchmark set."""
    return [
        BenchmarkConfig(
            id="network-performance",
            name="Network Performance",
            description="Ledger throughput and slot time",
            category=BenchmarkCategory.NETWORK,
            metrics=[
                BenchmarkMetric("throughput", baseline=1000, warning_threshold=800, failure_threshold=500),
                BenchmarkMetric("block_interval", baseline=400, warning_threshold=600, failure_threshold=1000),
            ],
            schedule=BenchmarkSchedule(frequency=ScheduleFrequency.HOURLY),
        ),
        BenchmarkConfig(
            id="application-performance",
            name="Application Performance",
            description="Request latency and error rate",
            category=BenchmarkCategory.APPLICATION,
            metrics=[
                BenchmarkMetric("request_latency", baseline=100, warning_threshold=200, failure_threshold=500),
                BenchmarkMetric("error_rate", baseline=0.01, warning_threshold=0.05, failure_threshold=0.1),
            ],
            schedule=BenchmarkSchedule(frequency=ScheduleFrequency.HOURLY),
        ),
        BenchmarkConfig(
            id="contract-performance",
            name="Smart Contract Performance",
            description="Program compute usage and failure rate",
            category=BenchmarkCategory.CONTRACT,
            metrics=[
                BenchmarkMetric("gas_usage", baseline=1_000_000, warning_threshold=2_000_000, failure_threshold=5_000_000),
                BenchmarkMetric("failure_rate", baseline=0.01, warning_threshold=0.05, failure_threshold=0.1),
            ],
            schedule=BenchmarkSchedule(frequency=ScheduleFrequency.DAILY),
        ),
    ]


# ============================================================
# RUNNER
# ============================================================

class BenchmarkRunner:
    """
    Runs benchmark configurations.

    Usage:
        runner = BenchmarkRunner(registry, store, fanout,
                                 configs=default_benchmark_configs())
        result = await runner.run("network-performance")
    """

    def __init__(
        self,
        registry: SamplerRegistry,
        store: TTLStore,
        fanout: NotificationFanout,
        clock: Optional[ClockProtocol] = None,
        configs: Optional[List[BenchmarkConfig]] = None,
        interval_seconds: float = 300.0,
    ):
        """
        Initialize runner.

        Args:
            registry: Samplers (measured fresh for every run)
            store: Result and config persistence
            fanout: Notifications for non-success runs
            clock: Time source
            configs: Initial configurations
            interval_seconds: How often the schedule is checked
        """
        self._registry = registry
        self._store = store
        self._fanout = fanout
        self._clock = clock or get_clock()
        self._configs: Dict[str, BenchmarkConfig] = {}
        self._locks = KeyedLock()
        self._task = PeriodicTask("benchmarks", self.schedule_tick, interval_seconds)

        for config in configs or []:
            self.register_config(config)

    async def start(self) -> None:
        await self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    # --------------------------------------------------------
    # CONFIGS
    # --------------------------------------------------------

    def _sampler_path(self, config: BenchmarkConfig, metric_name: str) -> str:
        name = METRIC_ALIASES.get(metric_name, metric_name)
        return f"{config.category.metric_group}.{name}"

    def register_config(self, config: BenchmarkConfig) -> BenchmarkConfig:
        """
        Register (or replace) a configuration.

        Raises:
            BenchmarkConfigurationError: No metrics, or a metric with no sampler
        """
        if not config.metrics:
            raise BenchmarkConfigurationError(config.id, "at least one metric is required")
        for metric in config.metrics:
            path = self._sampler_path(config, metric.name)
            if not self._registry.has(path):
                raise BenchmarkConfigurationError(
                    config.id, f"unsupported metric {config.category.value}.{metric.name}"
                )
        self._configs[config.id] = config
        logger.info(f"Benchmark config registered: {config.id} ({config.schedule.frequency.value})")
        return config

    def get_config(self, config_id: str) -> BenchmarkConfig:
        """
        Get a configuration.

        Raises:
            BenchmarkNotFoundError: Unknown id
        """
        config = self._configs.get(config_id)
        if config is None:
            raise BenchmarkNotFoundError(config_id, available=list(self._configs))
        return config

    def list_configs(self) -> List[BenchmarkConfig]:
        return list(self._configs.values())

    async def load_persisted_state(self) -> int:
        """
        Restore last_run for registered configs from the store.

        Returns:
            Number of configs restored
        """
        restored = 0
        for config in self._configs.values():
            data = await self._store.get(f"{CONFIG_KEY_PREFIX}:{config.id}")
            if not data:
                continue
            try:
                persisted = BenchmarkConfig.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed persisted benchmark config {config.id}: {e}")
                continue
            config.schedule.last_run = persisted.schedule.last_run
            restored += 1
        return restored

    # --------------------------------------------------------
    # RUN
    # --------------------------------------------------------

    async def run(self, config_id: str) -> BenchmarkResult:
        """
        Run one benchmark.

        Raises:
            BenchmarkNotFoundError: Unknown id
        """
        config = self.get_config(config_id)

        async with self._locks.acquire(config_id):
            values: Dict[str, float] = {}
            for metric in config.metrics:
                values[metric.name] = await self._registry.sample(
                    self._sampler_path(config, metric.name)
                )

            now = self._clock.now()
            metric_results = [
                BenchmarkMetricResult(
                    name=metric.name,
                    value=values[metric.name],
                    baseline=metric.baseline,
                    deviation=compute_deviation(values[metric.name], metric.baseline),
                )
                for metric in config.metrics
            ]
            status = classify_benchmark(config.metrics, values)
            result = BenchmarkResult(
                id=f"{config.id}-{self._clock.epoch_ms(now)}",
                config_id=config.id,
                timestamp=now,
                category=config.category,
                metrics=metric_results,
                status=status,
                summary=build_summary(config, metric_results, status),
            )

            await self._store_result(result)
            config.schedule.last_run = now
            await self._store.set(f"{CONFIG_KEY_PREFIX}:{config.id}", config.to_dict(), None)

        logger.info(f"Benchmark {config.id} finished: {status.value}")

        if status != BenchmarkStatus.SUCCESS:
            await self._notify(result)
        return result

    async def _store_result(self, result: BenchmarkResult) -> None:
        async with self._locks.acquire(_RESULTS_LOCK_KEY):
            results = await self._store.get(RESULTS_KEY) or []
            results.insert(0, result.to_dict())
            await self._store.set(RESULTS_KEY, results[:MAX_RESULTS], RESULTS_TTL_SECONDS)

    async def _notify(self, result: BenchmarkResult) -> None:
        is_warning = result.status == BenchmarkStatus.WARNING
        await self._fanout.send(Notification(
            title=f"Benchmark {'Warning' if is_warning else 'Failure'}",
            message=result.summary,
            severity=Severity.WARNING if is_warning else Severity.ERROR,
            metadata=result.to_dict(),
        ))

    def is_due(self, config: BenchmarkConfig) -> bool:
        return config.schedule.is_due(self._clock.now())

    async def schedule_tick(self) -> List[BenchmarkResult]:
        """Run every due config sequentially; failures are skipped."""
        results: List[BenchmarkResult] = []
        for config in list(self._configs.values()):
            if not self.is_due(config):
                continue
            try:
                results.append(await self.run(config.id))
            except Exception as e:
                logger.error(f"Scheduled benchmark {config.id} failed: {e}")
        return results

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    async def get_results(
        self,
        category: Optional[BenchmarkCategory] = None,
        limit: int = 100,
    ) -> List[BenchmarkResult]:
        """Stored results, newest first."""
        wanted = BenchmarkCategory(category) if category is not None else None
        results: List[BenchmarkResult] = []
        for data in await self._store.get(RESULTS_KEY) or []:
            try:
                result = BenchmarkResult.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed benchmark result: {e}")
                continue
            if wanted is None or result.category == wanted:
                results.append(result)
            if len(results) >= limit:
                break
        return results

    async def latest_result(self, category: Optional[BenchmarkCategory] = None) -> Optional[BenchmarkResult]:
        results = await self.get_results(category, limit=1)
        return results[0] if results else None
