"""
Health Monitor.

============================================================
PURPOSE
============================================================
Probes each dependency on a fixed interval, classifies it as
healthy / degraded / down, persists the result and alerts on
every non-healthy check.

CLASSIFICATION (memoryless, latest probe only):
- Probe raised or timed out                -> DOWN
- Sub-check success rate < 50%             -> DOWN
- Sub-check success rate < 100%            -> DEGRADED
- latency >= down threshold (T2)           -> DOWN
- latency >= degraded threshold (T1)       -> DEGRADED
- otherwise                                -> HEALTHY

Overall status is worst-of-N.

ALERT ESCALATION:
- down                                     -> critical
- degraded, latency > 2 x T1               -> high
- degraded                                 -> medium

============================================================
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, List, Optional

from ..audit import AuditLog
from ..clock import ClockProtocol, get_clock
from ..config import HealthThresholds
from ..models import (
    AlertLevel,
    AuditLogType,
    AuditStatus,
    HealthCheck,
    HealthStatus,
    Notification,
    SystemStatus,
)
from ..notifications import NotificationFanout
from ..scheduler import PeriodicTask
from ..store import TTLStore
from .probes import ServiceProbe


logger = logging.getLogger(__name__)

HEALTH_KEY_PREFIX = "health"
HEALTH_TTL_SECONDS = 24 * 60 * 60


# ============================================================
# CLASSIFICATION
# ============================================================

def classify_status(
    latency_ms: float,
    thresholds: HealthThresholds,
    success_rate: Optional[float] = None,
) -> HealthStatus:
    """Classify one successful probe."""
    if success_rate is not None:
        if success_rate < 0.5:
            return HealthStatus.DOWN
        if success_rate < 1.0:
            return HealthStatus.DEGRADED

    if latency_ms >= thresholds.down_latency_ms:
        return HealthStatus.DOWN
    if latency_ms >= thresholds.degraded_latency_ms:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def aggregate_status(statuses: Iterable[HealthStatus]) -> HealthStatus:
    """Worst-of-N; an empty set is healthy."""
    worst = HealthStatus.HEALTHY
    for status in statuses:
        if status.rank > worst.rank:
            worst = status
    return worst


def alert_level(check: HealthCheck, thresholds: HealthThresholds) -> Optional[AlertLevel]:
    """Escalation level for a check (None when healthy)."""
    if check.status == HealthStatus.DOWN:
        return AlertLevel.CRITICAL
    if check.status == HealthStatus.DEGRADED:
        if check.latency_ms > 2 * thresholds.degraded_latency_ms:
            return AlertLevel.HIGH
        return AlertLevel.MEDIUM
    return None


# ============================================================
# HEALTH MONITOR
# ============================================================

class HealthMonitor:
    """
    Periodic dependency health checker.

    Usage:
        monitor = HealthMonitor([LedgerHealthProbe(rpc), StoreHealthProbe(store)],
                                store, audit, fanout)
        status = await monitor.get_system_status()
    """

    def __init__(
        self,
        probes: List[ServiceProbe],
        store: TTLStore,
        audit: AuditLog,
        fanout: NotificationFanout,
        thresholds: Optional[HealthThresholds] = None,
        clock: Optional[ClockProtocol] = None,
        probe_timeout_seconds: float = 10.0,
        interval_seconds: float = 60.0,
    ):
        """
        Initialize health monitor.

        Args:
            probes: One probe per dependency (names must be unique)
            store: Health check persistence
            audit: Audit trail for non-healthy checks
            fanout: Alert notifications
            thresholds: Latency thresholds
            clock: Time source
            probe_timeout_seconds: Per-probe timeout
            interval_seconds: Tick interval
        """
        self._probes = {probe.name: probe for probe in probes}
        self._store = store
        self._audit = audit
        self._fanout = fanout
        self._thresholds = thresholds or HealthThresholds()
        self._clock = clock or get_clock()
        self._timeout = probe_timeout_seconds
        self._task = PeriodicTask("health", self.tick, interval_seconds)
        self._last_status: Optional[SystemStatus] = None

    @property
    def services(self) -> List[str]:
        return list(self._probes)

    @property
    def last_status(self) -> Optional[SystemStatus]:
        """Status from the most recent tick."""
        return self._last_status

    async def start(self) -> None:
        await self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    # --------------------------------------------------------
    # PROBING
    # --------------------------------------------------------

    async def check_service(self, probe: ServiceProbe) -> HealthCheck:
        """Probe one dependency; never raises."""
        started = time.perf_counter()
        try:
            details = await asyncio.wait_for(probe.probe(), timeout=self._timeout)
            latency_ms = (time.perf_counter() - started) * 1000.0
            status = classify_status(latency_ms, self._thresholds, details.get("success_rate"))
        except asyncio.TimeoutError:
            latency_ms = (time.perf_counter() - started) * 1000.0
            details = {"error": f"probe timed out after {self._timeout}s"}
            status = HealthStatus.DOWN
        except Exception as e:
            latency_ms = (time.perf_counter() - started) * 1000.0
            details = {"error": str(e)}
            status = HealthStatus.DOWN
            logger.warning(f"Health probe {probe.name} failed: {e}")

        return HealthCheck(
            service=probe.name,
            status=status,
            latency_ms=latency_ms,
            timestamp=self._clock.now(),
            details=details,
        )

    async def check_all(self) -> Dict[str, HealthCheck]:
        """Probe every dependency concurrently."""
        probes = list(self._probes.values())
        results = await asyncio.gather(
            *(self.check_service(probe) for probe in probes),
            return_exceptions=True,
        )

        checks: Dict[str, HealthCheck] = {}
        for probe, result in zip(probes, results):
            if isinstance(result, Exception):
                logger.error(f"Health check for {probe.name} crashed: {result}")
                result = HealthCheck(
                    service=probe.name,
                    status=HealthStatus.DOWN,
                    latency_ms=0.0,
                    timestamp=self._clock.now(),
                    details={"error": str(result)},
                )
            checks[probe.name] = result
        return checks

    def _system_status(self, checks: Dict[str, HealthCheck]) -> SystemStatus:
        return SystemStatus(
            overall=aggregate_status(check.status for check in checks.values()),
            services=checks,
            timestamp=self._clock.now(),
        )

    # --------------------------------------------------------
    # TICK
    # --------------------------------------------------------

    async def tick(self) -> SystemStatus:
        """Probe, persist and alert."""
        checks = await self.check_all()

        for check in checks.values():
            await self._persist(check)

        for check in checks.values():
            if not check.is_healthy:
                try:
                    await self._raise_alert(check)
                except Exception as e:
                    logger.error(f"Failed to raise health alert for {check.service}: {e}")

        status = self._system_status(checks)
        self._last_status = status
        if status.overall != HealthStatus.HEALTHY:
            logger.warning(f"System health: {status.overall.value}")
        return status

    async def _persist(self, check: HealthCheck) -> None:
        key = f"{HEALTH_KEY_PREFIX}:{check.service}:{self._clock.epoch_ms(check.timestamp)}"
        if not await self._store.set(key, check.to_dict(), HEALTH_TTL_SECONDS):
            logger.error(f"Health check not persisted: {check.service}")

    async def _raise_alert(self, check: HealthCheck) -> None:
        level = alert_level(check, self._thresholds)
        if level is None:
            return

        message = f"Service {check.service} is {check.status.value}"
        await self._audit.append(
            AuditLogType.SECURITY,
            "SYSTEM_ALERT",
            user_id="system",
            details={
                "service": check.service,
                "status": check.status.value,
                "latency_ms": check.latency_ms,
                "alert_level": level.value,
                "details": check.details,
            },
            status=AuditStatus.FAILURE,
            error_message=message,
            notify=False,
        )
        await self._fanout.send(Notification(
            title=f"System Alert: {check.service}",
            message=message,
            severity=level.to_severity(),
            metadata={
                "service": check.service,
                "status": check.status.value,
                "latency_ms": round(check.latency_ms, 2),
                "alert_level": level.value,
                "details": check.details,
            },
        ))

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    async def get_system_status(self) -> SystemStatus:
        """Run a fresh probe round (not persisted, no alerts)."""
        return self._system_status(await self.check_all())

    async def get_service_health(self, service: str, limit: Optional[int] = None) -> List[HealthCheck]:
        """Stored checks for one service, newest first."""
        keys = await self._store.keys(f"{HEALTH_KEY_PREFIX}:{service}:*")
        checks: List[HealthCheck] = []
        for key, data in (await self._store.get_many(keys)).items():
            try:
                checks.append(HealthCheck.from_dict(data))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed health check {key}: {e}")

        checks.sort(key=lambda c: c.timestamp, reverse=True)
        return checks[:limit] if limit else checks
