"""
Alert Rules.

============================================================
PURPOSE
============================================================
Threshold evaluation shared by the alert rule engine and the
metrics collector's critical fast path.

PRINCIPLES:
- Deterministic evaluation
- Unresolvable metric paths are skipped, never an error
- One message template for every fired rule

============================================================
"""

from typing import List, Optional

from ..models import AlertRule, ComparisonOperator, MetricsSnapshot, Notification, Severity
from ..notifications.base import format_value


# ============================================================
# EVALUATION
# ============================================================

def evaluate_condition(rule: AlertRule, snapshot: MetricsSnapshot) -> Optional[float]:
    """
    Evaluate a rule's threshold against a snapshot.

    Returns:
        The observed value if the condition holds, else None
        (also None when the metric path does not resolve)
    """
    value = snapshot.get_metric(rule.metric)
    if value is None:
        return None
    if rule.operator.compare(value, rule.threshold):
        return value
    return None


def format_alert_message(rule: AlertRule, value: float) -> str:
    """Render the notification body for a fired rule."""
    return (
        f"{rule.description}\n\n"
        f"Metric: {rule.metric}\n"
        f"Current Value: {format_value(value)}\n"
        f"Threshold: {rule.operator.value} {format_value(rule.threshold)}"
    )


def build_alert_notification(rule: AlertRule, value: float) -> Notification:
    """Build the notification sent when a rule fires."""
    return Notification(
        title=f"Alert: {rule.name}",
        message=format_alert_message(rule, value),
        severity=rule.severity,
        metadata={
            "rule_id": rule.id,
            "metric": rule.metric,
            "value": value,
            "threshold": rule.threshold,
        },
    )


# ============================================================
# DEFAULT RULES
# ============================================================

def default_alert_rules() -> List[AlertRule]:
    """Stock rule set installed when the runtime starts."""
    return [
        AlertRule(
            id="network-tps",
            name="Low Network TPS",
            description="Ledger transactions per second below threshold",
            metric="ledger.throughput",
            operator=ComparisonOperator.LT,
            threshold=1000,
            severity=Severity.WARNING,
            cooldown_minutes=5,
        ),
        AlertRule(
            id="network-latency",
            name="High Block Interval",
            description="Ledger slot time above threshold",
            metric="ledger.block_interval",
            operator=ComparisonOperator.GT,
            threshold=1500,
            severity=Severity.ERROR,
            cooldown_minutes=5,
        ),
        AlertRule(
            id="app-error-rate",
            name="High Error Rate",
            description="Application error rate above threshold",
            metric="application.error_rate",
            operator=ComparisonOperator.GT,
            threshold=0.05,
            severity=Severity.CRITICAL,
            cooldown_minutes=2,
        ),
        AlertRule(
            id="app-latency",
            name="High Request Latency",
            description="Average request latency above threshold",
            metric="application.request_latency",
            operator=ComparisonOperator.GT,
            threshold=1000,
            severity=Severity.WARNING,
            cooldown_minutes=5,
        ),
        AlertRule(
            id="memory-usage",
            name="High Memory Usage",
            description="Memory usage above 85%",
            metric="application.memory_usage",
            operator=ComparisonOperator.GT,
            threshold=0.85,
            severity=Severity.WARNING,
            cooldown_minutes=10,
        ),
        AlertRule(
            id="cpu-usage",
            name="High CPU Usage",
            description="CPU usage above 90%",
            metric="application.cpu_usage",
            operator=ComparisonOperator.GT,
            threshold=0.90,
            severity=Severity.WARNING,
            cooldown_minutes=10,
        ),
        AlertRule(
            id="contract-failure",
            name="Contract Failure Rate",
            description="Program invocation failure rate above threshold",
            metric="contract.failure_rate",
            operator=ComparisonOperator.GT,
            threshold=0.02,
            severity=Severity.CRITICAL,
            cooldown_minutes=5,
        ),
        AlertRule(
            id="gas-usage",
            name="High Gas Usage",
            description="Average compute usage per program call above threshold",
            metric="contract.gas_usage",
            operator=ComparisonOperator.GT,
            threshold=1_000_000,
            severity=Severity.WARNING,
            cooldown_minutes=15,
        ),
        AlertRule(
            id="active-users",
            name="Low Active Users",
            description="Active user count below threshold",
            metric="application.active_users",
            operator=ComparisonOperator.LT,
            threshold=100,
            severity=Severity.INFO,
            cooldown_minutes=30,
        ),
    ]
