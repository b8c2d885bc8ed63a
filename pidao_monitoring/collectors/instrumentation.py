"""
Application, Contract and Transaction Instrumentation.

============================================================
PURPOSE
============================================================
Counters and gauges the host application feeds, read back by
the metrics collector and benchmark runner.

Recorded values live in the TTL store so that every worker
process of the application contributes to one view.

KEYS (1h TTL, rolling windows of recent samples):
    metrics:app:request_latency      [ms, ...]
    metrics:app:requests             {"total": n, "errors": n}
    metrics:app:active_users         n
    metrics:contract:gas_usage       [gas, ...]
    metrics:contract:confirmation    [ms, ...]
    metrics:contract:calls           {"total": n, "failures": n}
    metrics:ledger:transactions      {"total": n, "failures": n}

Read-modify-write updates are not atomic; concurrent writers
may drop a sample.

============================================================
"""

import logging
from typing import Any, Dict, List, Optional

import psutil

from ..store import TTLStore
from .base import Sampler


logger = logging.getLogger(__name__)

WINDOW_TTL_SECONDS = 60 * 60
MAX_WINDOW_SAMPLES = 1000


def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _ratio(counts: Optional[Dict[str, Any]], numerator: str) -> float:
    if not counts:
        return 0.0
    total = counts.get("total", 0)
    if total <= 0:
        return 0.0
    return counts.get(numerator, 0) / total


class _StoreInstrumentation:
    """Rolling windows and counters kept in the TTL store."""

    def __init__(self, store: TTLStore, ttl_seconds: int = WINDOW_TTL_SECONDS):
        self._store = store
        self._ttl = ttl_seconds

    async def _append(self, key: str, value: float) -> None:
        window = await self._store.get(key) or []
        window.append(value)
        await self._store.set(key, window[-MAX_WINDOW_SAMPLES:], self._ttl)

    async def _increment(self, key: str, **fields: int) -> None:
        counts = await self._store.get(key) or {}
        for name, amount in fields.items():
            counts[name] = counts.get(name, 0) + amount
        await self._store.set(key, counts, self._ttl)

    async def _window_average(self, key: str) -> float:
        return _average(await self._store.get(key) or [])

    async def reset(self) -> None:
        """Drop every recorded window and counter for this group."""
        await self._store.invalidate_by_pattern(self.KEY_PREFIX)


# ============================================================
# APPLICATION
# ============================================================

class ApplicationInstrumentation(_StoreInstrumentation):
    """Request latency, error rate, active users and host resources."""

    KEY_PREFIX = "metrics:app:"
    LATENCY_KEY = "metrics:app:request_latency"
    REQUESTS_KEY = "metrics:app:requests"
    ACTIVE_USERS_KEY = "metrics:app:active_users"

    async def record_request(self, latency_ms: float, error: bool = False) -> None:
        """Record one handled request."""
        await self._append(self.LATENCY_KEY, float(latency_ms))
        await self._increment(self.REQUESTS_KEY, total=1, errors=1 if error else 0)

    async def set_active_users(self, count: int) -> None:
        await self._store.set(self.ACTIVE_USERS_KEY, int(count), self._ttl)

    async def request_latency(self) -> float:
        return await self._window_average(self.LATENCY_KEY)

    async def error_rate(self) -> float:
        return _ratio(await self._store.get(self.REQUESTS_KEY), "errors")

    async def active_users(self) -> float:
        return float(await self._store.get(self.ACTIVE_USERS_KEY) or 0)

    async def memory_usage(self) -> float:
        """Host memory in use, as a fraction."""
        return psutil.virtual_memory().percent / 100.0

    async def cpu_usage(self) -> float:
        """One-minute load average per CPU."""
        load_1m = psutil.getloadavg()[0]
        return load_1m / (psutil.cpu_count() or 1)

    def samplers(self) -> Dict[str, Sampler]:
        return {
            "application.request_latency": self.request_latency,
            "application.error_rate": self.error_rate,
            "application.active_users": self.active_users,
            "application.memory_usage": self.memory_usage,
            "application.cpu_usage": self.cpu_usage,
        }


# ============================================================
# CONTRACT
# ============================================================

class ContractInstrumentation(_StoreInstrumentation):
    """On-chain program call metrics."""

    KEY_PREFIX = "metrics:contract:"
    GAS_KEY = "metrics:contract:gas_usage"
    CONFIRMATION_KEY = "metrics:contract:confirmation"
    CALLS_KEY = "metrics:contract:calls"

    async def record_call(
        self,
        gas_used: float,
        success: bool = True,
        confirmation_ms: Optional[float] = None,
    ) -> None:
        """Record one program invocation."""
        await self._append(self.GAS_KEY, float(gas_used))
        if confirmation_ms is not None:
            await self._append(self.CONFIRMATION_KEY, float(confirmation_ms))
        await self._increment(self.CALLS_KEY, total=1, failures=0 if success else 1)

    async def gas_usage(self) -> float:
        return await self._window_average(self.GAS_KEY)

    async def call_count(self) -> float:
        counts = await self._store.get(self.CALLS_KEY) or {}
        return float(counts.get("total", 0))

    async def failure_rate(self) -> float:
        return _ratio(await self._store.get(self.CALLS_KEY), "failures")

    async def average_confirmation_time(self) -> float:
        return await self._window_average(self.CONFIRMATION_KEY)

    def samplers(self) -> Dict[str, Sampler]:
        return {
            "contract.gas_usage": self.gas_usage,
            "contract.call_count": self.call_count,
            "contract.failure_rate": self.failure_rate,
            "contract.average_confirmation_time": self.average_confirmation_time,
        }


# ============================================================
# LEDGER TRANSACTIONS
# ============================================================

class TransactionInstrumentation(_StoreInstrumentation):
    """Outcome of transactions the application submits to the ledger."""

    KEY_PREFIX = "metrics:ledger:"
    TRANSACTIONS_KEY = "metrics:ledger:transactions"

    async def record_transaction(self, success: bool) -> None:
        await self._increment(self.TRANSACTIONS_KEY, total=1, failures=0 if success else 1)

    async def failure_rate(self) -> float:
        return _ratio(await self._store.get(self.TRANSACTIONS_KEY), "failures")

    def samplers(self) -> Dict[str, Sampler]:
        return {"ledger.failure_rate": self.failure_rate}
