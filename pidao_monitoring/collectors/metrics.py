"""
Metrics Collector.

============================================================
PURPOSE
============================================================
Samples every ledger, application and contract metric on a
fixed interval and persists one immutable snapshot per tick.

TICK:
1. Sample all metric paths concurrently (failures -> 0.0)
2. Assemble a MetricsSnapshot stamped with clock.now()
3. Persist under metrics:snapshot:{epoch_ms} (24h TTL)
4. Notify for every critical threshold breach (no cooldown)
5. Hand the snapshot to listeners (rule engine, advisor)

PRINCIPLES:
- A tick never raises because of a dependency failure
- Persistence happens before listeners run
- Ticks do not overlap (PeriodicTask awaits each tick)

============================================================
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..alerts.rules import build_alert_notification, evaluate_condition
from ..clock import ClockProtocol, get_clock
from ..models import AggregatedMetrics, AlertRule, METRIC_PATHS, MetricsSnapshot
from ..notifications import NotificationFanout
from ..scheduler import PeriodicTask
from ..store import TTLStore
from .base import SamplerRegistry


logger = logging.getLogger(__name__)

SNAPSHOT_KEY_PREFIX = "metrics:snapshot"
SNAPSHOT_TTL_SECONDS = 24 * 60 * 60

AGGREGATION_PERIODS: Dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
}

SnapshotListener = Callable[[MetricsSnapshot], Awaitable[Any]]


def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class MetricsCollector:
    """
    Periodic metrics sampler.

    Usage:
        collector = MetricsCollector(registry, store, fanout)
        collector.add_listener(rule_engine.evaluate)
        await collector.start()
    """

    def __init__(
        self,
        registry: SamplerRegistry,
        store: TTLStore,
        fanout: NotificationFanout,
        clock: Optional[ClockProtocol] = None,
        critical_rules: Optional[List[AlertRule]] = None,
        interval_seconds: float = 60.0,
    ):
        """
        Initialize collector.

        Args:
            registry: Samplers for every metric path
            store: Snapshot persistence
            fanout: Critical-threshold notifications
            clock: Time source
            critical_rules: Fast-path thresholds checked on every tick
            interval_seconds: Tick interval
        """
        self._registry = registry
        self._store = store
        self._fanout = fanout
        self._clock = clock or get_clock()
        self._critical_rules = list(critical_rules or [])
        self._interval = interval_seconds
        self._listeners: List[SnapshotListener] = []
        self._task = PeriodicTask("metrics", self.tick, interval_seconds)
        self._last_snapshot: Optional[MetricsSnapshot] = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def last_snapshot(self) -> Optional[MetricsSnapshot]:
        return self._last_snapshot

    @property
    def critical_rules(self) -> List[AlertRule]:
        return list(self._critical_rules)

    def add_listener(self, listener: SnapshotListener) -> None:
        """Register a coroutine called with each persisted snapshot."""
        self._listeners.append(listener)

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self) -> None:
        await self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    # --------------------------------------------------------
    # TICK
    # --------------------------------------------------------

    async def collect(self) -> MetricsSnapshot:
        """Sample every metric and assemble a snapshot (not persisted)."""
        values = await self._registry.sample_many(METRIC_PATHS)
        return MetricsSnapshot.from_values(self._clock.now(), values)

    async def tick(self) -> MetricsSnapshot:
        """Run one collection cycle."""
        snapshot = await self.collect()
        await self.persist(snapshot)
        self._last_snapshot = snapshot

        await self.check_critical(snapshot)
        await self._dispatch(snapshot)
        return snapshot

    def _snapshot_key(self, snapshot: MetricsSnapshot) -> str:
        return f"{SNAPSHOT_KEY_PREFIX}:{self._clock.epoch_ms(snapshot.timestamp)}"

    async def persist(self, snapshot: MetricsSnapshot) -> bool:
        stored = await self._store.set(
            self._snapshot_key(snapshot), snapshot.to_dict(), SNAPSHOT_TTL_SECONDS
        )
        if not stored:
            logger.error(f"Metrics snapshot not persisted: {snapshot.timestamp.isoformat()}")
        return stored

    async def check_critical(self, snapshot: MetricsSnapshot) -> List[AlertRule]:
        """
        Notify for every breached critical threshold.

        Returns:
            The critical rules that breached
        """
        breached: List[AlertRule] = []
        for rule in self._critical_rules:
            if not rule.enabled:
                continue
            value = evaluate_condition(rule, snapshot)
            if value is None:
                continue

            breached.append(rule)
            logger.warning(f"Critical threshold breached: {rule.metric}={value} ({rule.id})")
            await self._fanout.send(
                build_alert_notification(rule, value),
                channels=rule.notification_channels,
            )
        return breached

    async def _dispatch(self, snapshot: MetricsSnapshot) -> None:
        if not self._listeners:
            return
        results = await asyncio.gather(
            *(listener(snapshot) for listener in self._listeners),
            return_exceptions=True,
        )
        for listener, result in zip(self._listeners, results):
            if isinstance(result, Exception):
                name = getattr(listener, "__qualname__", repr(listener))
                logger.error(f"Snapshot listener {name} failed: {result}")

    # --------------------------------------------------------
    # HISTORY & AGGREGATION
    # --------------------------------------------------------

    async def get_metrics_history(
        self,
        start: datetime,
        end: Optional[datetime] = None,
    ) -> List[MetricsSnapshot]:
        """
        Get stored snapshots in [start, end], oldest first.

        Args:
            start: Inclusive lower bound
            end: Inclusive upper bound (defaults to now)
        """
        end = end or self._clock.now()
        start_ms = self._clock.epoch_ms(start)
        end_ms = self._clock.epoch_ms(end)

        keys = []
        for key in await self._store.keys(f"{SNAPSHOT_KEY_PREFIX}:*"):
            try:
                ms = int(key.rsplit(":", 1)[1])
            except ValueError:
                continue
            if start_ms <= ms <= end_ms:
                keys.append(key)

        snapshots: List[MetricsSnapshot] = []
        for key, data in (await self._store.get_many(keys)).items():
            try:
                snapshots.append(MetricsSnapshot.from_dict(data))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed snapshot {key}: {e}")

        snapshots.sort(key=lambda s: s.timestamp)
        return snapshots

    async def latest_snapshot(self) -> Optional[MetricsSnapshot]:
        """Most recent stored snapshot within the retention window."""
        if self._last_snapshot is not None:
            return self._last_snapshot
        history = await self.get_metrics_history(self._clock.now() - timedelta(seconds=SNAPSHOT_TTL_SECONDS))
        return history[-1] if history else None

    async def aggregate(self, period: str = "1h") -> AggregatedMetrics:
        """
        Aggregate ledger metrics over a rolling window.

        Args:
            period: One of "1h", "24h", "7d"

        Returns:
            Averages over the window; all zeros when it is empty

        Raises:
            ValueError: Unknown period
        """
        if period not in AGGREGATION_PERIODS:
            raise ValueError(
                f"Unknown aggregation period {period!r}; expected one of {', '.join(AGGREGATION_PERIODS)}"
            )

        now = self._clock.now()
        snapshots = await self.get_metrics_history(now - AGGREGATION_PERIODS[period], now)
        if not snapshots:
            return AggregatedMetrics()

        throughput = [s.ledger.throughput for s in snapshots]
        return AggregatedMetrics(
            average_throughput=_average(throughput),
            average_block_interval=_average([s.ledger.block_interval for s in snapshots]),
            average_confirmation_time=_average([s.ledger.confirmation_time for s in snapshots]),
            total_transactions=sum(tps * self._interval for tps in throughput),
            failure_rate=_average([s.ledger.failure_rate for s in snapshots]),
            sample_count=len(snapshots),
        )
