"""
Sampler Registry.

============================================================
PURPOSE
============================================================
Maps dotted metric paths ("ledger.throughput") to async
samplers, and samples them safely.

PRINCIPLES:
- Every sample runs under its own timeout
- A failing or hung sample yields 0.0 and is logged
- Concurrent sampling never lets one failure cancel siblings

============================================================
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from ..models import split_metric_path


logger = logging.getLogger(__name__)

Sampler = Callable[[], Awaitable[float]]


class SamplerRegistry:
    """
    Registry of metric samplers.

    Usage:
        registry = SamplerRegistry(timeout_seconds=10)
        registry.register("ledger.slot_height", probe.current_slot)
        value = await registry.sample("ledger.slot_height")
    """

    def __init__(self, timeout_seconds: float = 10.0):
        """Initialize registry."""
        self._samplers: Dict[str, Sampler] = {}
        self._timeout = timeout_seconds
        self.failure_count = 0

    def register(self, path: str, sampler: Sampler) -> None:
        """Register a sampler for a dotted metric path."""
        if split_metric_path(path) is None:
            raise ValueError(f"Metric path must be 'group.field': {path}")
        self._samplers[path] = sampler

    def register_all(self, samplers: Dict[str, Sampler]) -> None:
        for path, sampler in samplers.items():
            self.register(path, sampler)

    def has(self, path: str) -> bool:
        return path in self._samplers

    @property
    def paths(self) -> List[str]:
        return list(self._samplers)

    async def sample(self, path: str) -> float:
        """
        Sample one metric.

        Never raises: unknown paths, errors and timeouts yield 0.0.
        """
        sampler = self._samplers.get(path)
        if sampler is None:
            logger.warning(f"No sampler registered for {path}")
            return 0.0

        try:
            value = await asyncio.wait_for(sampler(), timeout=self._timeout)
            return float(value or 0.0)
        except asyncio.TimeoutError:
            self.failure_count += 1
            logger.error(f"Sampling {path} timed out after {self._timeout}s")
        except Exception as e:
            self.failure_count += 1
            logger.error(f"Sampling {path} failed: {e}")
        return 0.0

    async def sample_many(self, paths: Optional[Iterable[str]] = None) -> Dict[str, float]:
        """Sample several metrics concurrently (all registered by default)."""
        paths = list(paths) if paths is not None else self.paths
        results = await asyncio.gather(
            *(self.sample(path) for path in paths),
            return_exceptions=True,
        )
        return {
            path: (result if not isinstance(result, BaseException) else 0.0)
            for path, result in zip(paths, results)
        }
