"""
Tests for monitoring data models.
"""

from datetime import datetime, timedelta, timezone

import pytest

from pidao_monitoring.models import (
    METRIC_PATHS,
    AlertLevel,
    AlertRule,
    AuditLogEntry,
    AuditLogType,
    AuditStatus,
    BenchmarkCategory,
    BenchmarkConfig,
    BenchmarkMetric,
    BenchmarkSchedule,
    ComparisonOperator,
    HealthCheck,
    HealthStatus,
    LedgerMetrics,
    MetricsSnapshot,
    ScheduleFrequency,
    Severity,
    split_metric_path,
)


START_TIME = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================
# OPERATORS
# ============================================================

class TestComparisonOperator:
    """Tests for ComparisonOperator."""

    @pytest.mark.parametrize("raw,expected", [
        (">", ComparisonOperator.GT),
        ("gt", ComparisonOperator.GT),
        ("<", ComparisonOperator.LT),
        ("LT", ComparisonOperator.LT),
        ("==", ComparisonOperator.EQ),
        ("eq", ComparisonOperator.EQ),
        ("≥", ComparisonOperator.GTE),
        ("gte", ComparisonOperator.GTE),
        ("≤", ComparisonOperator.LTE),
        ("<=", ComparisonOperator.LTE),
    ])
    def test_parse_aliases(self, raw, expected):
        assert ComparisonOperator.parse(raw) is expected

    def test_parse_unknown_raises(self):
        with pytest.raises(ValueError):
            ComparisonOperator.parse("between")

    def test_compare(self):
        assert ComparisonOperator.GT.compare(2, 1)
        assert not ComparisonOperator.GT.compare(1, 1)
        assert ComparisonOperator.GTE.compare(1, 1)
        assert ComparisonOperator.LT.compare(0.5, 1)
        assert ComparisonOperator.LTE.compare(1, 1)
        assert ComparisonOperator.EQ.compare(3.0, 3)


# ============================================================
# SNAPSHOTS
# ============================================================

class TestMetricsSnapshot:
    """Tests for MetricsSnapshot."""

    def test_metric_paths_cover_every_group(self):
        assert "ledger.throughput" in METRIC_PATHS
        assert "application.cpu_usage" in METRIC_PATHS
        assert "contract.gas_usage" in METRIC_PATHS
        assert len(METRIC_PATHS) == 14

    def test_from_values_groups_paths(self):
        snapshot = MetricsSnapshot.from_values(START_TIME, {
            "ledger.throughput": 1200.0,
            "application.error_rate": 0.02,
            "contract.gas_usage": 5000.0,
            "unknown.metric": 99.0,
        })

        assert snapshot.ledger.throughput == 1200.0
        assert snapshot.application.error_rate == 0.02
        assert snapshot.contract.gas_usage == 5000.0
        assert snapshot.ledger.block_interval == 0.0

    def test_get_metric(self):
        snapshot = MetricsSnapshot(START_TIME, ledger=LedgerMetrics(throughput=750.0))

        assert snapshot.get_metric("ledger.throughput") == 750.0
        assert snapshot.get_metric("ledger.missing") is None
        assert snapshot.get_metric("nope.throughput") is None
        assert snapshot.get_metric("throughput") is None

    def test_round_trip(self):
        snapshot = MetricsSnapshot.from_values(START_TIME, {
            "ledger.throughput": 400.0,
            "ledger.slot_height": 250_000_000.0,
            "application.memory_usage": 0.42,
            "contract.failure_rate": 0.01,
        })

        restored = MetricsSnapshot.from_dict(snapshot.to_dict())

        assert restored == snapshot
        assert restored.timestamp.tzinfo is not None

    def test_split_metric_path(self):
        assert split_metric_path("ledger.throughput") == ("ledger", "throughput")
        assert split_metric_path("ledger") is None
        assert split_metric_path("a.b.c") is None
        assert split_metric_path(".x") is None


# ============================================================
# HEALTH & AUDIT
# ============================================================

class TestHealthCheck:
    """Tests for HealthCheck."""

    def test_round_trip(self):
        check = HealthCheck(
            service="solana",
            status=HealthStatus.DEGRADED,
            latency_ms=1500.5,
            timestamp=START_TIME,
            details={"slot": 123},
        )

        assert HealthCheck.from_dict(check.to_dict()) == check

    def test_is_healthy(self):
        check = HealthCheck("redis", HealthStatus.HEALTHY, 3.0, START_TIME)
        assert check.is_healthy

    def test_status_rank_orders_states(self):
        assert HealthStatus.HEALTHY.rank < HealthStatus.DEGRADED.rank < HealthStatus.DOWN.rank


class TestAuditLogEntry:
    """Tests for AuditLogEntry."""

    def test_round_trip(self):
        entry = AuditLogEntry(
            type=AuditLogType.VOTE,
            action="CAST_VOTE",
            user_id="user-1",
            timestamp=START_TIME,
            status=AuditStatus.FAILURE,
            details={"proposal": "p-9", "weight": 3},
            error_message="quorum closed",
            ip_address="10.0.0.1",
        )

        restored = AuditLogEntry.from_dict(entry.to_dict())

        assert restored == entry
        assert restored.is_failure


class TestAlertLevel:
    """Tests for AlertLevel severity mapping."""

    def test_to_severity(self):
        assert AlertLevel.CRITICAL.to_severity() == Severity.CRITICAL
        assert AlertLevel.HIGH.to_severity() == Severity.ERROR
        assert AlertLevel.MEDIUM.to_severity() == Severity.WARNING
        assert AlertLevel.LOW.to_severity() == Severity.INFO


# ============================================================
# ALERT RULES
# ============================================================

class TestAlertRule:
    """Tests for AlertRule."""

    def _rule(self, **overrides):
        data = {
            "id": "r1",
            "name": "Rule",
            "metric": "ledger.throughput",
            "operator": "lt",
            "threshold": "1000",
            "severity": "error",
        }
        data.update(overrides)
        return AlertRule.from_dict(data)

    def test_from_dict_coerces_fields(self):
        rule = self._rule()

        assert rule.operator is ComparisonOperator.LT
        assert rule.severity is Severity.ERROR
        assert rule.threshold == 1000.0
        assert rule.notification_channels == ["slack", "email"]
        assert rule.cooldown_minutes == 5

    def test_explicit_empty_channels_are_kept(self):
        rule = self._rule(notification_channels=[])
        assert rule.notification_channels == []

    def test_round_trip_preserves_last_triggered(self):
        rule = self._rule()
        rule.last_triggered = START_TIME

        restored = AlertRule.from_dict(rule.to_dict())

        assert restored.last_triggered == START_TIME
        assert restored.to_dict() == rule.to_dict()

    def test_cooldown(self):
        rule = self._rule(cooldown_minutes=5)
        assert rule.check_cooldown(START_TIME)

        rule.last_triggered = START_TIME
        assert not rule.check_cooldown(START_TIME + timedelta(minutes=4, seconds=59))
        assert rule.check_cooldown(START_TIME + timedelta(minutes=5))

    def test_zero_cooldown_always_fires(self):
        rule = self._rule(cooldown_minutes=0)
        rule.last_triggered = START_TIME
        assert rule.check_cooldown(START_TIME)


# ============================================================
# BENCHMARKS
# ============================================================

class TestBenchmarkModels:
    """Tests for benchmark models."""

    def test_breaches_at_or_above_threshold(self):
        gas = BenchmarkMetric("gas_usage", 1_000_000, 2_000_000, 5_000_000)
        tps = BenchmarkMetric("throughput", 1000, 800, 500)

        assert gas.breaches(5_000_000, gas.failure_threshold)
        assert not gas.breaches(4_999_999, gas.failure_threshold)

        assert tps.breaches(500, tps.failure_threshold)
        assert tps.breaches(1200, tps.warning_threshold)
        assert not tps.breaches(499, tps.failure_threshold)

    def test_schedule_is_due(self):
        schedule = BenchmarkSchedule(frequency="hourly")
        assert schedule.frequency is ScheduleFrequency.HOURLY
        assert schedule.is_due(START_TIME)

        schedule.last_run = START_TIME
        assert not schedule.is_due(START_TIME + timedelta(minutes=59))
        assert schedule.is_due(START_TIME + timedelta(hours=1))

    def test_config_round_trip(self):
        config = BenchmarkConfig(
            id="contract-performance",
            name="Smart Contract Performance",
            category="contract",
            metrics=[BenchmarkMetric("gas_usage", 1e6, 2e6, 5e6)],
            schedule=BenchmarkSchedule(ScheduleFrequency.DAILY, last_run=START_TIME),
        )

        restored = BenchmarkConfig.from_dict(config.to_dict())

        assert restored.category is BenchmarkCategory.CONTRACT
        assert restored.metrics == config.metrics
        assert restored.schedule.last_run == START_TIME

    def test_category_metric_group(self):
        assert BenchmarkCategory.NETWORK.metric_group == "ledger"
        assert BenchmarkCategory.APPLICATION.metric_group == "application"
