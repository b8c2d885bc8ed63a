"""
PiDAO Monitoring - Runtime.

============================================================
PURPOSE
============================================================
Constructs and wires every monitoring component and owns
their lifecycle. This is the interface the dashboard/API
layer consumes.

WIRING:
    SamplerRegistry -> MetricsCollector -> {AlertRuleEngine, OptimizationAdvisor}
    HealthMonitor   (independent, shares AuditLog + NotificationFanout)
    BenchmarkRunner (independent, own schedule)

LIFECYCLE:
    runtime = MonitoringRuntime.from_config(get_config())
    async with runtime:
        ...

============================================================
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .alerts import AlertRuleEngine, default_alert_rules
from .audit import AuditLog
from .benchmarks import BenchmarkRunner, default_benchmark_configs
from .clock import ClockProtocol, get_clock
from .collectors import (
    ApplicationInstrumentation,
    ContractInstrumentation,
    MetricsCollector,
    SamplerRegistry,
    SolanaRpcProbe,
    TransactionInstrumentation,
)
from .config import MonitoringConfig, get_config
from .health import HealthMonitor, HttpSurfaceProbe, LedgerHealthProbe, ServiceProbe, StoreHealthProbe
from .models import (
    AggregatedMetrics,
    AlertRule,
    AuditLogEntry,
    AuditLogType,
    BenchmarkCategory,
    BenchmarkResult,
    HealthCheck,
    MetricsSnapshot,
    OptimizationSuggestion,
    SystemStatus,
)
from .notifications import EmailChannel, NotificationFanout, SlackChannel
from .optimization import OptimizationAdvisor
from .store import TTLStore, create_store


logger = logging.getLogger(__name__)


class MonitoringRuntime:
    """
    Monitoring runtime.

    Components are injected; from_config() builds the
    production set.
    """

    def __init__(
        self,
        store: TTLStore,
        fanout: NotificationFanout,
        registry: SamplerRegistry,
        health_probes: List[ServiceProbe],
        config: Optional[MonitoringConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize runtime.

        Args:
            store: TTL store shared by every component
            fanout: Notification fan-out
            registry: Metric samplers
            health_probes: Dependency probes
            config: Monitoring configuration
            clock: Time source
        """
        self.config = config or MonitoringConfig()
        self.clock = clock or get_clock()
        self.store = store
        self.fanout = fanout
        self.registry = registry

        schedule = self.config.schedule

        self.audit = AuditLog(store, fanout, self.clock)
        self.rule_engine = AlertRuleEngine(
            self.audit,
            fanout,
            self.clock,
            rules=default_alert_rules() if self.config.install_default_rules else None,
        )
        self.advisor = OptimizationAdvisor(store, fanout, self.clock)
        self.collector = MetricsCollector(
            registry,
            store,
            fanout,
            self.clock,
            critical_rules=self.config.critical_rules,
            interval_seconds=schedule.metrics_interval_seconds,
        )
        self.collector.add_listener(self.rule_engine.evaluate)
        self.collector.add_listener(self.advisor.analyze)

        self.health = HealthMonitor(
            health_probes,
            store,
            self.audit,
            fanout,
            thresholds=self.config.health,
            clock=self.clock,
            probe_timeout_seconds=schedule.probe_timeout_seconds,
            interval_seconds=schedule.health_interval_seconds,
        )
        self.benchmarks = BenchmarkRunner(
            registry,
            store,
            fanout,
            self.clock,
            configs=default_benchmark_configs() if self.config.install_default_benchmarks else None,
            interval_seconds=schedule.benchmark_interval_seconds,
        )

        # Populated by from_config()
        self.application: Optional[ApplicationInstrumentation] = None
        self.contracts: Optional[ContractInstrumentation] = None
        self.transactions: Optional[TransactionInstrumentation] = None
        self._closeables: List[Any] = []
        self._running = False

    @classmethod
    def from_config(
        cls,
        config: Optional[MonitoringConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> "MonitoringRuntime":
        """Build the production component set."""
        config = config or get_config()
        clock = clock or get_clock()
        schedule = config.schedule

        store = create_store(
            config.store.backend,
            url=config.store.url,
            socket_timeout=config.store.socket_timeout_seconds,
            clock=clock,
        )
        fanout = NotificationFanout(
            [
                SlackChannel(config.slack, timeout_seconds=schedule.notification_timeout_seconds),
                EmailChannel(config.email, timeout_seconds=schedule.notification_timeout_seconds),
            ],
            timeout_seconds=schedule.notification_timeout_seconds,
        )

        rpc = SolanaRpcProbe(
            config.ledger.rpc_endpoint,
            commitment=config.ledger.commitment,
            timeout_seconds=config.ledger.request_timeout_seconds,
        )
        application = ApplicationInstrumentation(store)
        contracts = ContractInstrumentation(store)
        transactions = TransactionInstrumentation(store)

        registry = SamplerRegistry(timeout_seconds=schedule.sample_timeout_seconds)
        registry.register_all(rpc.samplers())
        registry.register_all(transactions.samplers())
        registry.register_all(application.samplers())
        registry.register_all(contracts.samplers())

        http_probe = HttpSurfaceProbe(
            config.api.base_url,
            config.api.endpoints,
            timeout_seconds=schedule.probe_timeout_seconds,
        )
        probes: List[ServiceProbe] = [
            LedgerHealthProbe(rpc),
            StoreHealthProbe(store),
            http_probe,
        ]

        runtime = cls(store, fanout, registry, probes, config=config, clock=clock)
        runtime.application = application
        runtime.contracts = contracts
        runtime.transactions = transactions
        runtime._closeables = [rpc, http_probe]
        return runtime

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Check channels, restore state and start the periodic tasks."""
        if self._running:
            return

        connections = await self.fanout.test_connections()
        for name, ok in connections.items():
            if ok:
                logger.info(f"Notification channel {name}: connected")
            else:
                logger.warning(f"Notification channel {name}: unavailable")

        restored = await self.benchmarks.load_persisted_state()
        if restored:
            logger.info(f"Restored schedule state for {restored} benchmark config(s)")

        await self.collector.start()
        await self.health.start()
        await self.benchmarks.start()
        self._running = True
        logger.info("Monitoring runtime started")

    async def stop(self) -> None:
        """Stop the periodic tasks and release resources."""
        await self.benchmarks.stop()
        await self.health.stop()
        await self.collector.stop()

        await self.fanout.close()
        for resource in self._closeables:
            try:
                await resource.close()
            except Exception as e:
                logger.error(f"Error closing {resource.__class__.__name__}: {e}")
        await self.store.close()

        self._running = False
        logger.info("Monitoring runtime stopped")

    async def __aenter__(self) -> "MonitoringRuntime":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # --------------------------------------------------------
    # HEALTH
    # --------------------------------------------------------

    async def get_system_status(self) -> SystemStatus:
        return await self.health.get_system_status()

    async def get_service_health(self, service: str) -> List[HealthCheck]:
        return await self.health.get_service_health(service)

    # --------------------------------------------------------
    # METRICS
    # --------------------------------------------------------

    async def get_metrics_history(
        self,
        start: datetime,
        end: Optional[datetime] = None,
    ) -> List[MetricsSnapshot]:
        return await self.collector.get_metrics_history(start, end)

    async def get_aggregated_metrics(self, period: str = "1h") -> AggregatedMetrics:
        return await self.collector.aggregate(period)

    # --------------------------------------------------------
    # ALERT RULES
    # --------------------------------------------------------

    def add_rule(self, rule: AlertRule) -> AlertRule:
        return self.rule_engine.add_rule(rule)

    async def update_rule(self, rule_id: str, **changes: Any) -> AlertRule:
        return await self.rule_engine.update_rule(rule_id, **changes)

    def delete_rule(self, rule_id: str) -> None:
        self.rule_engine.delete_rule(rule_id)

    def list_rules(self) -> List[AlertRule]:
        return self.rule_engine.list_rules()

    # --------------------------------------------------------
    # BENCHMARKS & SUGGESTIONS
    # --------------------------------------------------------

    async def run_benchmark(self, config_id: str) -> BenchmarkResult:
        return await self.benchmarks.run(config_id)

    async def get_benchmark_results(
        self,
        category: Optional[BenchmarkCategory] = None,
        limit: int = 100,
    ) -> List[BenchmarkResult]:
        return await self.benchmarks.get_results(category, limit)

    async def get_latest_suggestions(self, limit: int = 10) -> List[OptimizationSuggestion]:
        return await self.advisor.get_latest_suggestions(limit)

    # --------------------------------------------------------
    # AUDIT
    # --------------------------------------------------------

    async def get_audit_logs(
        self,
        type: Optional[AuditLogType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        return await self.audit.list(type=type, start=start, end=end, user_id=user_id)

    def describe(self) -> Dict[str, Any]:
        """Runtime summary for status endpoints."""
        return {
            "running": self._running,
            "services": self.health.services,
            "metric_paths": self.registry.paths,
            "rules": [rule.id for rule in self.rule_engine.list_rules()],
            "benchmarks": [config.id for config in self.benchmarks.list_configs()],
            "channels": self.fanout.channel_names,
        }
