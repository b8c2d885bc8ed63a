"""
PiDAO Monitoring Module.

============================================================
PLATFORM OBSERVABILITY FOR THE PIDAO INVESTMENT DAO
============================================================

Watches the Solana ledger, the application and its smart
contracts, and tells operators when something needs them.

CORE PHILOSOPHY:
- Every tick is independent; one failing probe never stops the loop
- Notifications fan out to every channel; one channel never blocks another
- Everything persisted expires; the store is a rolling window

============================================================
COMPONENTS
============================================================

1. MetricsCollector    - periodic snapshots + critical fast path
2. AlertRuleEngine     - configurable threshold rules with cooldown
3. HealthMonitor       - dependency probes (healthy/degraded/down)
4. BenchmarkRunner     - scheduled performance benchmarks
5. OptimizationAdvisor - baseline comparison and suggestions
6. AuditLog            - append-only trail of sensitive actions
7. NotificationFanout  - Slack + email delivery

============================================================
USAGE
============================================================

```python
from pidao_monitoring import MonitoringConfig, MonitoringRuntime

config = MonitoringConfig.from_env()
async with MonitoringRuntime.from_config(config) as runtime:
    status = await runtime.get_system_status()
    print(f"Overall: {status.overall.value}")

    stats = await runtime.get_aggregated_metrics("24h")
    print(f"Average TPS: {stats.average_throughput:.1f}")
```

============================================================
"""

from .models import (
    AggregatedMetrics,
    AlertEvent,
    AlertLevel,
    AlertRule,
    ApplicationMetrics,
    AuditLogEntry,
    AuditLogType,
    AuditStatus,
    BenchmarkCategory,
    BenchmarkConfig,
    BenchmarkMetric,
    BenchmarkResult,
    BenchmarkSchedule,
    BenchmarkStatus,
    ComparisonOperator,
    ContractMetrics,
    HealthCheck,
    HealthStatus,
    LedgerMetrics,
    MetricsSnapshot,
    Notification,
    OptimizationSuggestion,
    ScheduleFrequency,
    Severity,
    SuggestionCategory,
    SuggestionPriority,
    SystemStatus,
)
from .config import (
    MonitoringConfig,
    HealthThresholds,
    ScheduleConfig,
    get_config,
    set_config,
)
from .exceptions import (
    MonitoringError,
    StoreError,
    ProbeError,
    SamplingError,
    NotificationDeliveryError,
    ConfigurationError,
    RuleConfigurationError,
    RuleNotFoundError,
    BenchmarkNotFoundError,
    BenchmarkConfigurationError,
)
from .clock import ClockProtocol, MockClock, SystemClock, get_clock, set_clock
from .store import MemoryTTLStore, RedisTTLStore, TTLStore, create_store
from .notifications import EmailChannel, NotificationChannel, NotificationFanout, SlackChannel
from .audit import AuditLog
from .collectors import (
    ApplicationInstrumentation,
    ContractInstrumentation,
    MetricsCollector,
    SamplerRegistry,
    SolanaRpcProbe,
    TransactionInstrumentation,
)
from .alerts import AlertRuleEngine, default_alert_rules
from .health import HealthMonitor, HttpSurfaceProbe, LedgerHealthProbe, ServiceProbe, StoreHealthProbe
from .benchmarks import BenchmarkRunner, default_benchmark_configs
from .optimization import OptimizationAdvisor
from .service import MonitoringRuntime


__version__ = "1.0.0"

__all__ = [
    # Models
    "AggregatedMetrics",
    "AlertEvent",
    "AlertLevel",
    "AlertRule",
    "ApplicationMetrics",
    "AuditLogEntry",
    "AuditLogType",
    "AuditStatus",
    "BenchmarkCategory",
    "BenchmarkConfig",
    "BenchmarkMetric",
    "BenchmarkResult",
    "BenchmarkSchedule",
    "BenchmarkStatus",
    "ComparisonOperator",
    "ContractMetrics",
    "HealthCheck",
    "HealthStatus",
    "LedgerMetrics",
    "MetricsSnapshot",
    "Notification",
    "OptimizationSuggestion",
    "ScheduleFrequency",
    "Severity",
    "SuggestionCategory",
    "SuggestionPriority",
    "SystemStatus",
    # Config
    "MonitoringConfig",
    "HealthThresholds",
    "ScheduleConfig",
    "get_config",
    "set_config",
    # Exceptions
    "MonitoringError",
    "StoreError",
    "ProbeError",
    "SamplingError",
    "NotificationDeliveryError",
    "ConfigurationError",
    "RuleConfigurationError",
    "RuleNotFoundError",
    "BenchmarkNotFoundError",
    "BenchmarkConfigurationError",
    # Infrastructure
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "get_clock",
    "set_clock",
    "MemoryTTLStore",
    "RedisTTLStore",
    "TTLStore",
    "create_store",
    "EmailChannel",
    "NotificationChannel",
    "NotificationFanout",
    "SlackChannel",
    # Components
    "AuditLog",
    "ApplicationInstrumentation",
    "ContractInstrumentation",
    "MetricsCollector",
    "SamplerRegistry",
    "SolanaRpcProbe",
    "TransactionInstrumentation",
    "AlertRuleEngine",
    "default_alert_rules",
    "HealthMonitor",
    "HttpSurfaceProbe",
    "LedgerHealthProbe",
    "ServiceProbe",
    "StoreHealthProbe",
    "BenchmarkRunner",
    "default_benchmark_configs",
    "OptimizationAdvisor",
    "MonitoringRuntime",
]
