"""
PiDAO Monitoring - Configuration.

============================================================
CONFIGURABLE MONITORING
============================================================

All tunables are configurable:
- Store and dependency endpoints
- Health latency thresholds
- Tick intervals and per-probe timeouts
- Notification channel credentials
- Critical fast-path threshold rules

Configuration can be loaded from:
- Default values
- Environment variables (a local .env file is honoured)
- YAML config file

============================================================
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .models import AlertRule, ComparisonOperator, Severity


logger = logging.getLogger(__name__)


# =============================================================
# DEPENDENCIES
# =============================================================


@dataclass
class StoreConfig:
    """TTL store connection."""
    url: str = "redis://localhost:6379/0"
    backend: str = "redis"      # "redis" or "memory"
    socket_timeout_seconds: float = 5.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "backend": self.backend,
            "socket_timeout_seconds": self.socket_timeout_seconds,
        }


@dataclass
class LedgerConfig:
    """Solana JSON-RPC endpoint."""
    rpc_endpoint: str = "https://api.devnet.solana.com"
    commitment: str = "confirmed"
    request_timeout_seconds: float = 10.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rpc_endpoint": self.rpc_endpoint,
            "commitment": self.commitment,
            "request_timeout_seconds": self.request_timeout_seconds,
        }


@dataclass
class ApiProbeConfig:
    """HTTP surface reachability probe."""
    base_url: str = "http://localhost:3000"
    endpoints: List[str] = field(default_factory=lambda: [
        "/health",
        "/api/projects",
        "/api/proposals",
    ])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "endpoints": list(self.endpoints),
        }


# =============================================================
# NOTIFICATION CHANNELS
# =============================================================


@dataclass
class SlackConfig:
    """Slack Web API credentials."""
    token: str = ""
    default_channel: str = "#monitoring"
    api_base_url: str = "https://slack.com/api"

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "default_channel": self.default_channel,
            "api_base_url": self.api_base_url,
        }


@dataclass
class EmailConfig:
    """SMTP credentials."""
    host: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True
    from_address: str = "monitoring@pidao.local"
    default_recipients: List[str] = field(default_factory=list)

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "host": self.host,
            "port": self.port,
            "use_tls": self.use_tls,
            "from_address": self.from_address,
            "default_recipients": list(self.default_recipients),
        }


# =============================================================
# HEALTH THRESHOLDS
# =============================================================


@dataclass
class HealthThresholds:
    """
    Latency thresholds for health classification.

    - HEALTHY:   latency < degraded_latency_ms
    - DEGRADED:  degraded_latency_ms <= latency < down_latency_ms
    - DOWN:      latency >= down_latency_ms
    """
    degraded_latency_ms: float = 1000.0
    down_latency_ms: float = 5000.0

    def __post_init__(self) -> None:
        """Validate thresholds."""
        if self.degraded_latency_ms >= self.down_latency_ms:
            raise ConfigurationError(
                "degraded_latency_ms must be < down_latency_ms",
                config_key="health.degraded_latency_ms",
                invalid_value=self.degraded_latency_ms,
            )

    def to_dict(self) -> Dict[str, float]:
        return {
            "degraded_latency_ms": self.degraded_latency_ms,
            "down_latency_ms": self.down_latency_ms,
        }


# =============================================================
# SCHEDULING
# =============================================================


@dataclass
class ScheduleConfig:
    """Tick intervals and timeouts (seconds)."""
    metrics_interval_seconds: float = 60.0
    health_interval_seconds: float = 60.0
    benchmark_interval_seconds: float = 300.0
    sample_timeout_seconds: float = 10.0
    probe_timeout_seconds: float = 10.0
    notification_timeout_seconds: float = 15.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "metrics_interval_seconds": self.metrics_interval_seconds,
            "health_interval_seconds": self.health_interval_seconds,
            "benchmark_interval_seconds": self.benchmark_interval_seconds,
            "sample_timeout_seconds": self.sample_timeout_seconds,
            "probe_timeout_seconds": self.probe_timeout_seconds,
            "notification_timeout_seconds": self.notification_timeout_seconds,
        }


# =============================================================
# CRITICAL FAST PATH
# =============================================================


def default_critical_rules() -> List[AlertRule]:
    """Thresholds checked on every metrics tick without cooldown."""
    return [
        AlertRule(
            id="critical-ledger-throughput",
            name="Critical: Low Network TPS",
            description="Ledger throughput is below the critical floor",
            metric="ledger.throughput",
            operator=ComparisonOperator.LT,
            threshold=500,
            severity=Severity.CRITICAL,
            cooldown_minutes=0,
        ),
        AlertRule(
            id="critical-error-rate",
            name="Critical: High Error Rate",
            description="Application error rate is above 10%",
            metric="application.error_rate",
            operator=ComparisonOperator.GT,
            threshold=0.10,
            severity=Severity.CRITICAL,
            cooldown_minutes=0,
        ),
        AlertRule(
            id="critical-memory-usage",
            name="Critical: Memory Usage",
            description="Memory usage is above 95%",
            metric="application.memory_usage",
            operator=ComparisonOperator.GT,
            threshold=0.95,
            severity=Severity.CRITICAL,
            cooldown_minutes=0,
        ),
        AlertRule(
            id="critical-cpu-usage",
            name="Critical: CPU Usage",
            description="CPU usage is above 90%",
            metric="application.cpu_usage",
            operator=ComparisonOperator.GT,
            threshold=0.90,
            severity=Severity.CRITICAL,
            cooldown_minutes=0,
        ),
    ]


# =============================================================
# MAIN CONFIGURATION
# =============================================================


def _env_list(name: str) -> Optional[List[str]]:
    raw = os.getenv(name)
    if not raw:
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class MonitoringConfig:
    """
    Main configuration for the monitoring runtime.

    Combines all sub-configurations.
    """
    store: StoreConfig = field(default_factory=StoreConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    api: ApiProbeConfig = field(default_factory=ApiProbeConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    health: HealthThresholds = field(default_factory=HealthThresholds)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    critical_rules: List[AlertRule] = field(default_factory=default_critical_rules)

    # Seed the rule engine and benchmark runner with the stock sets
    install_default_rules: bool = True
    install_default_benchmarks: bool = True

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "MonitoringConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - REDIS_URL, STORE_BACKEND
        - RPC_ENDPOINT, RPC_COMMITMENT
        - API_BASE_URL, API_HEALTH_ENDPOINTS (comma separated)
        - SLACK_TOKEN, SLACK_DEFAULT_CHANNEL
        - SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_FROM,
          ALERT_EMAIL_RECIPIENTS (comma separated)
        - HEALTH_DEGRADED_LATENCY_MS, HEALTH_DOWN_LATENCY_MS
        - METRICS_INTERVAL, HEALTH_CHECK_INTERVAL, BENCHMARK_CHECK_INTERVAL
        """
        load_dotenv(dotenv_path)
        config = cls()

        if os.getenv("REDIS_URL"):
            config.store.url = os.getenv("REDIS_URL")
        if os.getenv("STORE_BACKEND"):
            config.store.backend = os.getenv("STORE_BACKEND").lower()

        if os.getenv("RPC_ENDPOINT"):
            config.ledger.rpc_endpoint = os.getenv("RPC_ENDPOINT")
        if os.getenv("RPC_COMMITMENT"):
            config.ledger.commitment = os.getenv("RPC_COMMITMENT")

        if os.getenv("API_BASE_URL"):
            config.api.base_url = os.getenv("API_BASE_URL")
        endpoints = _env_list("API_HEALTH_ENDPOINTS")
        if endpoints:
            config.api.endpoints = endpoints

        if os.getenv("SLACK_TOKEN"):
            config.slack.token = os.getenv("SLACK_TOKEN")
        if os.getenv("SLACK_DEFAULT_CHANNEL"):
            config.slack.default_channel = os.getenv("SLACK_DEFAULT_CHANNEL")

        if os.getenv("SMTP_HOST"):
            config.email.host = os.getenv("SMTP_HOST")
        if os.getenv("SMTP_PORT"):
            config.email.port = int(os.getenv("SMTP_PORT"))
        if os.getenv("SMTP_USER"):
            config.email.username = os.getenv("SMTP_USER")
        if os.getenv("SMTP_PASS"):
            config.email.password = os.getenv("SMTP_PASS")
        if os.getenv("SMTP_FROM"):
            config.email.from_address = os.getenv("SMTP_FROM")
        recipients = _env_list("ALERT_EMAIL_RECIPIENTS")
        if recipients:
            config.email.default_recipients = recipients

        degraded = os.getenv("HEALTH_DEGRADED_LATENCY_MS")
        down = os.getenv("HEALTH_DOWN_LATENCY_MS")
        if degraded or down:
            config.health = HealthThresholds(
                degraded_latency_ms=float(degraded or config.health.degraded_latency_ms),
                down_latency_ms=float(down or config.health.down_latency_ms),
            )

        if os.getenv("METRICS_INTERVAL"):
            config.schedule.metrics_interval_seconds = float(os.getenv("METRICS_INTERVAL"))
        if os.getenv("HEALTH_CHECK_INTERVAL"):
            config.schedule.health_interval_seconds = float(os.getenv("HEALTH_CHECK_INTERVAL"))
        if os.getenv("BENCHMARK_CHECK_INTERVAL"):
            config.schedule.benchmark_interval_seconds = float(os.getenv("BENCHMARK_CHECK_INTERVAL"))

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "MonitoringConfig":
        """
        Load configuration from YAML file.

        Unknown keys are ignored. An unreadable file falls back to
        defaults; invalid thresholds raise ConfigurationError.
        """
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except Exception as e:
            logger.warning(f"Failed to load YAML config from {path}: {e}")
            return cls()

        config = cls()

        if 'store' in data:
            s = data['store']
            config.store = StoreConfig(
                url=s.get('url', config.store.url),
                backend=s.get('backend', config.store.backend),
                socket_timeout_seconds=s.get('socket_timeout_seconds', 5.0),
            )

        if 'ledger' in data:
            lg = data['ledger']
            config.ledger = LedgerConfig(
                rpc_endpoint=lg.get('rpc_endpoint', config.ledger.rpc_endpoint),
                commitment=lg.get('commitment', config.ledger.commitment),
                request_timeout_seconds=lg.get('request_timeout_seconds', 10.0),
            )

        if 'api' in data:
            a = data['api']
            config.api = ApiProbeConfig(
                base_url=a.get('base_url', config.api.base_url),
                endpoints=a.get('endpoints', config.api.endpoints),
            )

        if 'slack' in data:
            sl = data['slack']
            config.slack = SlackConfig(
                token=sl.get('token', ""),
                default_channel=sl.get('default_channel', config.slack.default_channel),
            )

        if 'email' in data:
            e = data['email']
            config.email = EmailConfig(
                host=e.get('host', ""),
                port=e.get('port', 587),
                username=e.get('username', ""),
                password=e.get('password', ""),
                use_tls=e.get('use_tls', True),
                from_address=e.get('from_address', config.email.from_address),
                default_recipients=e.get('default_recipients', []),
            )

        if 'health' in data:
            h = data['health']
            config.health = HealthThresholds(
                degraded_latency_ms=h.get('degraded_latency_ms', 1000.0),
                down_latency_ms=h.get('down_latency_ms', 5000.0),
            )

        if 'schedule' in data:
            for key, value in data['schedule'].items():
                if hasattr(config.schedule, key):
                    setattr(config.schedule, key, float(value))

        if 'critical_rules' in data:
            config.critical_rules = [
                AlertRule.from_dict({"cooldown_minutes": 0, "severity": "critical", **rule})
                for rule in data['critical_rules']
            ]

        config.install_default_rules = data.get('install_default_rules', True)
        config.install_default_benchmarks = data.get('install_default_benchmarks', True)
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (secrets omitted)."""
        return {
            "store": self.store.to_dict(),
            "ledger": self.ledger.to_dict(),
            "api": self.api.to_dict(),
            "slack": self.slack.to_dict(),
            "email": self.email.to_dict(),
            "health": self.health.to_dict(),
            "schedule": self.schedule.to_dict(),
            "critical_rules": [rule.to_dict() for rule in self.critical_rules],
        }


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[MonitoringConfig] = None


def get_config() -> MonitoringConfig:
    """Get the global monitoring configuration."""
    global _default_config
    if _default_config is None:
        _default_config = MonitoringConfig.from_env()
    return _default_config


def set_config(config: MonitoringConfig) -> None:
    """Set the global monitoring configuration."""
    global _default_config
    _default_config = config
