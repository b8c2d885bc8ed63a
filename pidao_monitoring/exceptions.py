"""
PiDAO Monitoring - Exceptions.

============================================================
CUSTOM EXCEPTIONS
============================================================

- MonitoringError: Base exception
- StoreError: Key-value store unreachable or rejected an operation
- ProbeError: A health probe or ledger RPC call failed
- SamplingError: A metric sampler failed
- NotificationDeliveryError: A notification channel failed
- ConfigurationError: Invalid configuration
- RuleConfigurationError / RuleNotFoundError: Alert rule CRUD errors
- BenchmarkNotFoundError / BenchmarkConfigurationError: Benchmark errors

============================================================
FAILURE SAFETY
============================================================

Monitoring must never crash the host service:
- Dependency errors are recovered where they occur (zero sample,
  DOWN status, cache miss) and logged
- Configuration errors surface only to the direct caller
- Channel errors are isolated per channel

============================================================
"""

from typing import Any, Dict, List, Optional


class MonitoringError(Exception):
    """
    Base exception for monitoring errors.

    All monitoring exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            component: Name of the component or dependency involved
            details: Additional error details
        """
        self.message = message
        self.component = component
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message."""
        if self.component:
            return f"[{self.component}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "component": self.component,
            "details": self.details,
        }


# =============================================================
# DEPENDENCY ERRORS (recovered locally)
# =============================================================


class StoreError(MonitoringError):
    """Raised when the TTL store cannot be reached."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            message=f"Store {operation} failed: {reason}",
            component="store",
            details={"operation": operation, "reason": reason},
        )


class ProbeError(MonitoringError):
    """
    Raised when a probe or ledger RPC call fails.

    The health monitor treats this as DOWN; samplers treat it as 0.0.
    """

    def __init__(
        self,
        service: str,
        reason: str,
        status_code: Optional[int] = None,
    ) -> None:
        details: Dict[str, Any] = {"reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=f"Probe failed: {reason}",
            component=service,
            details=details,
        )
        self.status_code = status_code


class SamplingError(MonitoringError):
    """Raised when a metric sampler cannot produce a value."""

    def __init__(self, metric: str, reason: str) -> None:
        super().__init__(
            message=f"Sampling {metric} failed: {reason}",
            component="sampler",
            details={"metric": metric, "reason": reason},
        )
        self.metric = metric


class NotificationDeliveryError(MonitoringError):
    """Raised by a channel when delivery fails."""

    def __init__(self, channel: str, reason: str) -> None:
        super().__init__(
            message=f"Delivery failed: {reason}",
            component=channel,
            details={"reason": reason},
        )
        self.channel = channel


# =============================================================
# CONFIGURATION ERRORS (raised to caller)
# =============================================================


class ConfigurationError(MonitoringError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        invalid_value: Any = None,
    ) -> None:
        details = {}
        if config_key:
            details["config_key"] = config_key
        if invalid_value is not None:
            details["invalid_value"] = invalid_value
        super().__init__(message=message, component="config", details=details)


class RuleConfigurationError(MonitoringError):
    """Raised when an alert rule is malformed or conflicts with another."""

    def __init__(self, rule_id: str, reason: str) -> None:
        super().__init__(
            message=f"Invalid alert rule {rule_id}: {reason}",
            component="alerts",
            details={"rule_id": rule_id, "reason": reason},
        )
        self.rule_id = rule_id


class RuleNotFoundError(MonitoringError):
    """Raised when an alert rule id is not registered."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(
            message=f"Alert rule not found: {rule_id}",
            component="alerts",
            details={"rule_id": rule_id},
        )
        self.rule_id = rule_id


class BenchmarkNotFoundError(MonitoringError):
    """Raised when a benchmark config id is not registered."""

    def __init__(
        self,
        config_id: str,
        available: Optional[List[str]] = None,
    ) -> None:
        message = f"Benchmark config not found: {config_id}"
        details: Dict[str, Any] = {"config_id": config_id}
        if available:
            details["available"] = available
            message += f". Available: {', '.join(available)}"
        super().__init__(message=message, component="benchmarks", details=details)
        self.config_id = config_id


class BenchmarkConfigurationError(MonitoringError):
    """Raised when a benchmark config names an unsupported metric."""

    def __init__(self, config_id: str, reason: str) -> None:
        super().__init__(
            message=f"Invalid benchmark config {config_id}: {reason}",
            component="benchmarks",
            details={"config_id": config_id, "reason": reason},
        )
        self.config_id = config_id
