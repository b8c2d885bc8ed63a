"""
Dependency health probes and monitor.
"""

from .probes import HttpSurfaceProbe, LedgerHealthProbe, ServiceProbe, StoreHealthProbe
from .monitor import (
    HEALTH_KEY_PREFIX,
    HEALTH_TTL_SECONDS,
    HealthMonitor,
    aggregate_status,
    alert_level,
    classify_status,
)


__all__ = [
    "HttpSurfaceProbe",
    "LedgerHealthProbe",
    "ServiceProbe",
    "StoreHealthProbe",
    "HEALTH_KEY_PREFIX",
    "HEALTH_TTL_SECONDS",
    "HealthMonitor",
    "aggregate_status",
    "alert_level",
    "classify_status",
]
