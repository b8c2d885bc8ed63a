"""
PiDAO Monitoring - Data Models.

============================================================
PURPOSE
============================================================
Data structures shared by every monitoring component.

PRINCIPLES:
- Persisted entities are write-once (frozen dataclasses)
- Only AlertRule.last_triggered and BenchmarkSchedule.last_run mutate
- Every persisted entity round-trips through to_dict()/from_dict()
- Timestamps are timezone-aware UTC, serialized as ISO-8601

============================================================
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================
# HELPERS
# ============================================================

def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 (None passes through)."""
    return dt.isoformat() if dt else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime."""
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ============================================================
# ENUMS
# ============================================================

class Severity(str, Enum):
    """Notification and alert rule severity."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class HealthStatus(str, Enum):
    """Three-state health classification of one dependency."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"

    @property
    def rank(self) -> int:
        """Ordering used by worst-of-N aggregation."""
        return {
            HealthStatus.HEALTHY: 0,
            HealthStatus.DEGRADED: 1,
            HealthStatus.DOWN: 2,
        }[self]


class AlertLevel(str, Enum):
    """Escalation level attached to health alerts."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def to_severity(self) -> Severity:
        """Map escalation level to notification severity."""
        return {
            AlertLevel.LOW: Severity.INFO,
            AlertLevel.MEDIUM: Severity.WARNING,
            AlertLevel.HIGH: Severity.ERROR,
            AlertLevel.CRITICAL: Severity.CRITICAL,
        }[self]


class ComparisonOperator(str, Enum):
    """Threshold comparison operator."""
    GT = ">"
    LT = "<"
    EQ = "="
    GTE = ">="
    LTE = "<="

    @classmethod
    def parse(cls, value: Any) -> "ComparisonOperator":
        """
        Parse an operator from its symbol or alias.

        Accepts ">", "gt", "≥", "gte", "==" and the like.
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        aliases = {
            "gt": cls.GT,
            "lt": cls.LT,
            "eq": cls.EQ,
            "==": cls.EQ,
            "gte": cls.GTE,
            "ge": cls.GTE,
            "≥": cls.GTE,
            "lte": cls.LTE,
            "le": cls.LTE,
            "≤": cls.LTE,
        }
        if text in aliases:
            return aliases[text]
        return cls(text)

    def compare(self, value: float, threshold: float) -> bool:
        """Apply the operator as `value <op> threshold`."""
        if self is ComparisonOperator.GT:
            return value > threshold
        if self is ComparisonOperator.LT:
            return value < threshold
        if self is ComparisonOperator.GTE:
            return value >= threshold
        if self is ComparisonOperator.LTE:
            return value <= threshold
        return value == threshold


class BenchmarkCategory(str, Enum):
    """Benchmark category."""
    NETWORK = "network"
    APPLICATION = "application"
    CONTRACT = "contract"

    @property
    def metric_group(self) -> str:
        """Snapshot group sampled for this category."""
        return {
            BenchmarkCategory.NETWORK: "ledger",
            BenchmarkCategory.APPLICATION: "application",
            BenchmarkCategory.CONTRACT: "contract",
        }[self]


class ScheduleFrequency(str, Enum):
    """Benchmark schedule frequency."""
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def interval(self) -> timedelta:
        return {
            ScheduleFrequency.HOURLY: timedelta(hours=1),
            ScheduleFrequency.DAILY: timedelta(days=1),
            ScheduleFrequency.WEEKLY: timedelta(days=7),
        }[self]


class BenchmarkStatus(str, Enum):
    """Benchmark outcome."""
    SUCCESS = "success"
    WARNING = "warning"
    FAILURE = "failure"


class SuggestionCategory(str, Enum):
    """Optimization suggestion category."""
    NETWORK = "network"
    APPLICATION = "application"
    RESOURCE = "resource"
    CONTRACT = "contract"


class SuggestionPriority(str, Enum):
    """Optimization suggestion priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AuditLogType(str, Enum):
    """Audit log entry type."""
    USER_AUTH = "user_auth"
    INVESTMENT = "investment"
    PROPOSAL = "proposal"
    VOTE = "vote"
    CONTRACT_UPGRADE = "contract_upgrade"
    EMERGENCY_ACTION = "emergency_action"
    SECURITY = "security"


class AuditStatus(str, Enum):
    """Audit log entry outcome."""
    SUCCESS = "success"
    FAILURE = "failure"


# ============================================================
# METRIC GROUPS
# ============================================================

class _MetricGroup:
    """Helpers shared by the flat numeric metric groups."""

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls(**{
            name: float(data.get(name, 0.0) or 0.0)
            for name in cls.field_names()
        })

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    def get(self, name: str) -> Optional[float]:
        """Get a field value by name (None if unknown)."""
        if name not in self.field_names():
            return None
        return getattr(self, name)


@dataclass(frozen=True)
class LedgerMetrics(_MetricGroup):
    """Ledger (Solana RPC) metrics."""
    throughput: float = 0.0             # tx/s
    block_interval: float = 0.0         # ms
    slot_height: float = 0.0
    confirmation_time: float = 0.0      # ms
    failure_rate: float = 0.0


@dataclass(frozen=True)
class ApplicationMetrics(_MetricGroup):
    """Application tier metrics."""
    request_latency: float = 0.0        # ms
    error_rate: float = 0.0
    active_users: float = 0.0
    memory_usage: float = 0.0           # fraction 0..1
    cpu_usage: float = 0.0              # fraction 0..1


@dataclass(frozen=True)
class ContractMetrics(_MetricGroup):
    """On-chain program metrics."""
    gas_usage: float = 0.0
    call_count: float = 0.0
    failure_rate: float = 0.0
    average_confirmation_time: float = 0.0  # ms


METRIC_GROUPS = {
    "ledger": LedgerMetrics,
    "application": ApplicationMetrics,
    "contract": ContractMetrics,
}

METRIC_PATHS: List[str] = [
    f"{group}.{name}"
    for group, group_cls in METRIC_GROUPS.items()
    for name in group_cls.field_names()
]


def split_metric_path(path: str) -> Optional[tuple]:
    """Split "group.field" into (group, field); None if malformed."""
    parts = path.split(".") if isinstance(path, str) else []
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


# ============================================================
# SNAPSHOTS & HEALTH
# ============================================================

@dataclass(frozen=True)
class MetricsSnapshot:
    """One immutable, timestamped bundle of sampled metrics."""
    timestamp: datetime
    ledger: LedgerMetrics = field(default_factory=LedgerMetrics)
    application: ApplicationMetrics = field(default_factory=ApplicationMetrics)
    contract: ContractMetrics = field(default_factory=ContractMetrics)

    @classmethod
    def from_values(cls, timestamp: datetime, values: Dict[str, float]) -> "MetricsSnapshot":
        """Build a snapshot from a flat {"group.field": value} map."""
        grouped: Dict[str, Dict[str, float]] = {group: {} for group in METRIC_GROUPS}
        for path, value in values.items():
            parts = split_metric_path(path)
            if parts and parts[0] in grouped:
                grouped[parts[0]][parts[1]] = value
        return cls(
            timestamp=timestamp,
            ledger=LedgerMetrics.from_dict(grouped["ledger"]),
            application=ApplicationMetrics.from_dict(grouped["application"]),
            contract=ContractMetrics.from_dict(grouped["contract"]),
        )

    def get_metric(self, path: str) -> Optional[float]:
        """Resolve a dotted "group.field" path; None if unresolvable."""
        parts = split_metric_path(path)
        if parts is None or parts[0] not in METRIC_GROUPS:
            return None
        return getattr(self, parts[0]).get(parts[1])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": to_iso(self.timestamp),
            "ledger": self.ledger.to_dict(),
            "application": self.application.to_dict(),
            "contract": self.contract.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricsSnapshot":
        return cls(
            timestamp=from_iso(data["timestamp"]),
            ledger=LedgerMetrics.from_dict(data.get("ledger", {})),
            application=ApplicationMetrics.from_dict(data.get("application", {})),
            contract=ContractMetrics.from_dict(data.get("contract", {})),
        )


@dataclass(frozen=True)
class AggregatedMetrics:
    """Rolling-window aggregate over stored snapshots."""
    average_throughput: float = 0.0
    average_block_interval: float = 0.0
    average_confirmation_time: float = 0.0
    total_transactions: float = 0.0
    failure_rate: float = 0.0
    sample_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HealthCheck:
    """Result of probing one dependency."""
    service: str
    status: HealthStatus
    latency_ms: float
    timestamp: datetime
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "status": self.status.value,
            "latency_ms": self.latency_ms,
            "timestamp": to_iso(self.timestamp),
            "details": dict(self.details),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthCheck":
        return cls(
            service=data["service"],
            status=HealthStatus(data["status"]),
            latency_ms=float(data.get("latency_ms", 0.0)),
            timestamp=from_iso(data["timestamp"]),
            details=dict(data.get("details") or {}),
        )


@dataclass(frozen=True)
class SystemStatus:
    """Worst-of-N aggregate over a round of health checks."""
    overall: HealthStatus
    services: Dict[str, HealthCheck]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall.value,
            "services": {name: check.to_dict() for name, check in self.services.items()},
            "timestamp": to_iso(self.timestamp),
        }


# ============================================================
# ALERT RULES
# ============================================================

@dataclass
class AlertRule:
    """
    User-configurable threshold rule over a metric path.

    MUTABLE: last_triggered is written by the evaluation step only.
    """
    id: str
    name: str
    metric: str
    operator: ComparisonOperator
    threshold: float
    severity: Severity = Severity.WARNING
    description: str = ""
    enabled: bool = True
    cooldown_minutes: float = 5
    last_triggered: Optional[datetime] = None
    notification_channels: List[str] = field(default_factory=lambda: ["slack", "email"])

    def __post_init__(self) -> None:
        self.operator = ComparisonOperator.parse(self.operator)
        self.severity = Severity(self.severity)
        self.threshold = float(self.threshold)

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.cooldown_minutes)

    def check_cooldown(self, now: datetime) -> bool:
        """Check if the rule may fire at `now`."""
        if self.last_triggered is None:
            return True
        return now - self.last_triggered >= self.cooldown

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "metric": self.metric,
            "operator": self.operator.value,
            "threshold": self.threshold,
            "severity": self.severity.value,
            "enabled": self.enabled,
            "cooldown_minutes": self.cooldown_minutes,
            "last_triggered": to_iso(self.last_triggered),
            "notification_channels": list(self.notification_channels),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertRule":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            metric=data["metric"],
            operator=data["operator"],
            threshold=data["threshold"],
            severity=data.get("severity", Severity.WARNING.value),
            enabled=data.get("enabled", True),
            cooldown_minutes=data.get("cooldown_minutes", 5),
            last_triggered=from_iso(data.get("last_triggered")),
            notification_channels=list(data.get("notification_channels", ["slack", "email"])),
        )


@dataclass(frozen=True)
class AlertEvent:
    """Record of one alert rule firing."""
    rule_id: str
    rule_name: str
    metric: str
    value: float
    threshold: float
    severity: Severity
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "metric": self.metric,
            "value": self.value,
            "threshold": self.threshold,
            "severity": self.severity.value,
            "timestamp": to_iso(self.timestamp),
        }


# ============================================================
# BENCHMARKS
# ============================================================

@dataclass(frozen=True)
class BenchmarkMetric:
    """One benchmarked metric with its thresholds."""
    name: str
    baseline: float
    warning_threshold: float
    failure_threshold: float

    def breaches(self, value: float, threshold: float) -> bool:
        """Check whether `value` reaches `threshold`."""
        return value >= threshold

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkMetric":
        return cls(
            name=data["name"],
            baseline=float(data["baseline"]),
            warning_threshold=float(data["warning_threshold"]),
            failure_threshold=float(data["failure_threshold"]),
        )


@dataclass
class BenchmarkSchedule:
    """
    Benchmark schedule.

    MUTABLE: last_run is written after each run.
    """
    frequency: ScheduleFrequency = ScheduleFrequency.DAILY
    last_run: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.frequency = ScheduleFrequency(self.frequency)

    def is_due(self, now: datetime) -> bool:
        if self.last_run is None:
            return True
        return now - self.last_run >= self.frequency.interval

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frequency": self.frequency.value,
            "last_run": to_iso(self.last_run),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkSchedule":
        return cls(
            frequency=data.get("frequency", ScheduleFrequency.DAILY.value),
            last_run=from_iso(data.get("last_run")),
        )


@dataclass
class BenchmarkConfig:
    """Named benchmark configuration."""
    id: str
    name: str
    category: BenchmarkCategory
    metrics: List[BenchmarkMetric]
    schedule: BenchmarkSchedule = field(default_factory=BenchmarkSchedule)
    description: str = ""

    def __post_init__(self) -> None:
        self.category = BenchmarkCategory(self.category)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "metrics": [m.to_dict() for m in self.metrics],
            "schedule": self.schedule.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkConfig":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            category=data["category"],
            metrics=[BenchmarkMetric.from_dict(m) for m in data.get("metrics", [])],
            schedule=BenchmarkSchedule.from_dict(data.get("schedule") or {}),
        )


@dataclass(frozen=True)
class BenchmarkMetricResult:
    """Observed value of one benchmarked metric."""
    name: str
    value: float
    baseline: float
    deviation: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkMetricResult":
        return cls(
            name=data["name"],
            value=float(data["value"]),
            baseline=float(data["baseline"]),
            deviation=float(data["deviation"]),
        )


@dataclass(frozen=True)
class BenchmarkResult:
    """Outcome of one benchmark run."""
    id: str
    config_id: str
    timestamp: datetime
    category: BenchmarkCategory
    metrics: List[BenchmarkMetricResult]
    status: BenchmarkStatus
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "config_id": self.config_id,
            "timestamp": to_iso(self.timestamp),
            "category": self.category.value,
            "metrics": [m.to_dict() for m in self.metrics],
            "status": self.status.value,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkResult":
        return cls(
            id=data["id"],
            config_id=data.get("config_id", data["id"].rsplit("-", 1)[0]),
            timestamp=from_iso(data["timestamp"]),
            category=BenchmarkCategory(data["category"]),
            metrics=[BenchmarkMetricResult.from_dict(m) for m in data.get("metrics", [])],
            status=BenchmarkStatus(data["status"]),
            summary=data.get("summary", ""),
        )


# ============================================================
# OPTIMIZATION
# ============================================================

@dataclass(frozen=True)
class SuggestionMetric:
    """Metric that triggered a suggestion."""
    name: str
    value: float
    threshold: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SuggestionMetric":
        return cls(
            name=data["name"],
            value=float(data["value"]),
            threshold=float(data["threshold"]),
        )


@dataclass(frozen=True)
class OptimizationSuggestion:
    """Advisory produced from one snapshot."""
    id: str
    timestamp: datetime
    category: SuggestionCategory
    priority: SuggestionPriority
    title: str
    description: str
    impact: str
    recommendation: str
    metrics: List[SuggestionMetric] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": to_iso(self.timestamp),
            "category": self.category.value,
            "priority": self.priority.value,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "recommendation": self.recommendation,
            "metrics": [m.to_dict() for m in self.metrics],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptimizationSuggestion":
        return cls(
            id=data["id"],
            timestamp=from_iso(data["timestamp"]),
            category=SuggestionCategory(data["category"]),
            priority=SuggestionPriority(data["priority"]),
            title=data["title"],
            description=data.get("description", ""),
            impact=data.get("impact", ""),
            recommendation=data.get("recommendation", ""),
            metrics=[SuggestionMetric.from_dict(m) for m in data.get("metrics", [])],
        )


# ============================================================
# AUDIT & NOTIFICATIONS
# ============================================================

@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only audit record."""
    type: AuditLogType
    action: str
    user_id: str
    timestamp: datetime
    status: AuditStatus
    details: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None
    ip_address: Optional[str] = None

    @property
    def is_failure(self) -> bool:
        return self.status == AuditStatus.FAILURE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "action": self.action,
            "user_id": self.user_id,
            "timestamp": to_iso(self.timestamp),
            "status": self.status.value,
            "details": dict(self.details),
            "error_message": self.error_message,
            "ip_address": self.ip_address,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditLogEntry":
        return cls(
            type=AuditLogType(data["type"]),
            action=data["action"],
            user_id=data["user_id"],
            timestamp=from_iso(data["timestamp"]),
            status=AuditStatus(data["status"]),
            details=dict(data.get("details") or {}),
            error_message=data.get("error_message"),
            ip_address=data.get("ip_address"),
        )


@dataclass(frozen=True)
class Notification:
    """
    Outbound notification.

    Constructed and consumed by the fan-out; never persisted.
    """
    title: str
    message: str
    severity: Severity = Severity.INFO
    metadata: Optional[Dict[str, Any]] = None
    channel: Optional[str] = None
    recipients: Optional[List[str]] = None
