"""
Metric samplers, instrumentation and the metrics collector.
"""

from .base import Sampler, SamplerRegistry
from .probes import SolanaRpcProbe
from .instrumentation import (
    ApplicationInstrumentation,
    ContractInstrumentation,
    TransactionInstrumentation,
)
from .metrics import (
    AGGREGATION_PERIODS,
    SNAPSHOT_KEY_PREFIX,
    SNAPSHOT_TTL_SECONDS,
    MetricsCollector,
)


__all__ = [
    "Sampler",
    "SamplerRegistry",
    "SolanaRpcProbe",
    "ApplicationInstrumentation",
    "ContractInstrumentation",
    "TransactionInstrumentation",
    "AGGREGATION_PERIODS",
    "SNAPSHOT_KEY_PREFIX",
    "SNAPSHOT_TTL_SECONDS",
    "MetricsCollector",
]
