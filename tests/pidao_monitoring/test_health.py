"""
Tests for health probes and the health monitor.

============================================================
TEST PRINCIPLES:
- Classification is memoryless and threshold-driven
- Overall status is worst-of-N over every combination
- A failing probe is DOWN; it never aborts the round
============================================================
"""

import asyncio
import itertools
from datetime import timedelta
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

from pidao_monitoring.audit import AuditLog
from pidao_monitoring.config import HealthThresholds
from pidao_monitoring.exceptions import ConfigurationError, ProbeError, StoreError
from pidao_monitoring.health import (
    HEALTH_TTL_SECONDS,
    HealthMonitor,
    HttpSurfaceProbe,
    LedgerHealthProbe,
    ServiceProbe,
    StoreHealthProbe,
    aggregate_status,
    alert_level,
    classify_status,
)
from pidao_monitoring.models import (
    AlertLevel,
    AuditLogType,
    AuditStatus,
    HealthCheck,
    HealthStatus,
    Severity,
)


THRESHOLDS = HealthThresholds(degraded_latency_ms=1000, down_latency_ms=5000)


class StubProbe(ServiceProbe):
    """Probe returning a fixed payload, raising, or hanging."""

    def __init__(self, name: str, details: Dict[str, Any] = None, error: Exception = None,
                 delay_seconds: float = 0.0):
        self.name = name
        self._details = details or {}
        self._error = error
        self._delay = delay_seconds
        self.calls = 0

    async def probe(self) -> Dict[str, Any]:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error:
            raise self._error
        return dict(self._details)


def _monitor(probes, store, fanout, clock, **kwargs):
    audit = AuditLog(store, fanout, clock)
    kwargs.setdefault("thresholds", THRESHOLDS)
    return HealthMonitor(probes, store, audit, fanout, clock=clock, **kwargs)


# ============================================================
# CLASSIFICATION
# ============================================================

class TestClassification:
    """Tests for classify_status, aggregate_status and alert_level."""

    @pytest.mark.parametrize("latency,expected", [
        (0.0, HealthStatus.HEALTHY),
        (999.9, HealthStatus.HEALTHY),
        (1000.0, HealthStatus.DEGRADED),
        (4999.9, HealthStatus.DEGRADED),
        (5000.0, HealthStatus.DOWN),
    ])
    def test_latency_thresholds(self, latency, expected):
        assert classify_status(latency, THRESHOLDS) == expected

    @pytest.mark.parametrize("rate,expected", [
        (1.0, HealthStatus.HEALTHY),
        (2 / 3, HealthStatus.DEGRADED),
        (0.5, HealthStatus.DEGRADED),
        (1 / 3, HealthStatus.DOWN),
        (0.0, HealthStatus.DOWN),
    ])
    def test_success_rate(self, rate, expected):
        assert classify_status(10.0, THRESHOLDS, success_rate=rate) == expected

    def test_full_success_still_checks_latency(self):
        assert classify_status(6000.0, THRESHOLDS, success_rate=1.0) == HealthStatus.DOWN

    @pytest.mark.parametrize(
        "statuses",
        list(itertools.product(list(HealthStatus), repeat=3)),
    )
    def test_overall_is_worst_of_three(self, statuses):
        expected = max(statuses, key=lambda s: s.rank)
        if HealthStatus.DOWN in statuses:
            assert expected == HealthStatus.DOWN
        elif HealthStatus.DEGRADED in statuses:
            assert expected == HealthStatus.DEGRADED
        else:
            assert expected == HealthStatus.HEALTHY

        assert aggregate_status(statuses) == expected

    def test_no_services_is_healthy(self):
        assert aggregate_status([]) == HealthStatus.HEALTHY

    def test_alert_levels(self, clock):
        def check(status, latency):
            return HealthCheck("api", status, latency, clock.now())

        assert alert_level(check(HealthStatus.HEALTHY, 10), THRESHOLDS) is None
        assert alert_level(check(HealthStatus.DOWN, 10), THRESHOLDS) == AlertLevel.CRITICAL
        assert alert_level(check(HealthStatus.DEGRADED, 1500), THRESHOLDS) == AlertLevel.MEDIUM
        assert alert_level(check(HealthStatus.DEGRADED, 2000), THRESHOLDS) == AlertLevel.MEDIUM
        assert alert_level(check(HealthStatus.DEGRADED, 2001), THRESHOLDS) == AlertLevel.HIGH

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ConfigurationError):
            HealthThresholds(degraded_latency_ms=5000, down_latency_ms=1000)


# ============================================================
# PROBES
# ============================================================

class TestProbes:
    """Tests for the concrete dependency probes."""

    @pytest.mark.asyncio
    async def test_ledger_probe_reports_slot(self):
        rpc = MagicMock()
        rpc.current_slot = AsyncMock(return_value=250_000_123)

        assert await LedgerHealthProbe(rpc).probe() == {"slot": 250_000_123}

    @pytest.mark.asyncio
    async def test_ledger_probe_propagates_rpc_failure(self):
        rpc = MagicMock()
        rpc.current_slot = AsyncMock(side_effect=ProbeError("solana", "HTTP 503"))

        with pytest.raises(ProbeError):
            await LedgerHealthProbe(rpc).probe()

    @pytest.mark.asyncio
    async def test_store_probe(self, store):
        assert await StoreHealthProbe(store).probe() == {}

        store._ping = AsyncMock(side_effect=OSError("refused"))
        with pytest.raises(StoreError):
            await StoreHealthProbe(store).probe()

    @pytest.mark.asyncio
    async def test_http_probe_success_rate(self):
        probe = HttpSurfaceProbe("http://api.local", ["/health", "/api/projects", "/api/proposals"])
        outcomes = {
            "/health": {"ok": True, "status": 200},
            "/api/projects": {"ok": True, "status": 200},
            "/api/proposals": {"ok": False, "status": 503},
        }
        probe._check_endpoint = AsyncMock(side_effect=lambda path: outcomes[path])

        details = await probe.probe()

        assert details["success_rate"] == pytest.approx(2 / 3)
        assert details["endpoints"]["/api/proposals"]["status"] == 503

    @pytest.mark.asyncio
    async def test_http_probe_without_endpoints(self):
        assert (await HttpSurfaceProbe("http://api.local", []).probe())["success_rate"] == 1.0


# ============================================================
# MONITOR
# ============================================================

class TestHealthMonitor:
    """Tests for HealthMonitor."""

    @pytest.mark.asyncio
    async def test_all_healthy_round(self, store, fanout, channel, clock):
        monitor = _monitor([StubProbe("solana"), StubProbe("redis")], store, fanout, clock)

        status = await monitor.tick()

        assert status.overall == HealthStatus.HEALTHY
        assert set(status.services) == {"solana", "redis"}
        assert channel.sent == []
        assert await store.keys("audit:") == []

    @pytest.mark.asyncio
    async def test_failing_probe_is_down_and_alerts(self, store, fanout, channel, clock):
        monitor = _monitor(
            [StubProbe("solana", error=ProbeError("solana", "HTTP 503")), StubProbe("redis")],
            store, fanout, clock,
        )

        status = await monitor.tick()

        assert status.overall == HealthStatus.DOWN
        assert status.services["solana"].status == HealthStatus.DOWN
        assert "HTTP 503" in status.services["solana"].details["error"]
        assert status.services["redis"].status == HealthStatus.HEALTHY

        assert len(channel.sent) == 1
        notification = channel.sent[0]
        assert notification.title == "System Alert: solana"
        assert notification.severity == Severity.CRITICAL
        assert notification.metadata["alert_level"] == "critical"

        entries = await AuditLog(store, clock=clock).list(type=AuditLogType.SECURITY)
        assert len(entries) == 1
        assert entries[0].action == "SYSTEM_ALERT"
        assert entries[0].user_id == "system"
        assert entries[0].status == AuditStatus.FAILURE
        assert entries[0].error_message == "Service solana is down"

    @pytest.mark.asyncio
    async def test_hung_probe_times_out_as_down(self, store, fanout, clock):
        monitor = _monitor(
            [StubProbe("solana", delay_seconds=5)], store, fanout, clock,
            probe_timeout_seconds=0.05,
        )

        check = (await monitor.check_all())["solana"]

        assert check.status == HealthStatus.DOWN
        assert "timed out" in check.details["error"]

    @pytest.mark.asyncio
    async def test_partial_http_failure_is_degraded_with_medium_alert(self, store, fanout, channel, clock):
        probe = StubProbe("api", details={"success_rate": 2 / 3})
        monitor = _monitor([probe], store, fanout, clock)

        status = await monitor.tick()

        assert status.overall == HealthStatus.DEGRADED
        assert channel.sent[0].severity == Severity.WARNING
        assert channel.sent[0].metadata["alert_level"] == "medium"

    @pytest.mark.asyncio
    async def test_checks_are_persisted_per_service(self, store, fanout, clock):
        monitor = _monitor([StubProbe("solana"), StubProbe("redis")], store, fanout, clock)

        await monitor.tick()
        clock.advance(seconds=60)
        await monitor.tick()

        history = await monitor.get_service_health("solana")
        assert len(history) == 2
        assert history[0].timestamp > history[1].timestamp
        assert len(await monitor.get_service_health("solana", limit=1)) == 1
        assert await monitor.get_service_health("unknown") == []

        clock.advance(seconds=HEALTH_TTL_SECONDS - 30)
        assert len(await monitor.get_service_health("solana")) == 1

    @pytest.mark.asyncio
    async def test_system_status_is_fresh_and_not_persisted(self, store, fanout, channel, clock):
        probe = StubProbe("solana", error=RuntimeError("boom"))
        monitor = _monitor([probe], store, fanout, clock)

        status = await monitor.get_system_status()

        assert status.overall == HealthStatus.DOWN
        assert probe.calls == 1
        assert await store.keys("health:") == []
        assert channel.sent == []
        assert monitor.last_status is None

    @pytest.mark.asyncio
    async def test_last_status_tracks_latest_tick(self, store, fanout, clock):
        monitor = _monitor([StubProbe("redis")], store, fanout, clock)

        status = await monitor.tick()

        assert monitor.last_status == status
        assert monitor.services == ["redis"]
        assert status.timestamp == clock.now()
        assert clock.now() - status.services["redis"].timestamp == timedelta(0)
