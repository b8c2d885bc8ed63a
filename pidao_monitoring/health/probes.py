"""
Health Probes.

============================================================
PURPOSE
============================================================
One probe per monitored dependency:
- LedgerHealthProbe: Solana RPC getSlot
- StoreHealthProbe: TTL store ping
- HttpSurfaceProbe: GET each API endpoint

A probe raises on failure; the health monitor measures its
latency, applies the timeout, and classifies the outcome.

============================================================
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp

from ..collectors.probes import SolanaRpcProbe
from ..exceptions import ProbeError
from ..store import TTLStore


logger = logging.getLogger(__name__)


class ServiceProbe(ABC):
    """Abstract dependency probe."""

    name: str = "service"

    @abstractmethod
    async def probe(self) -> Dict[str, Any]:
        """
        Probe the dependency.

        Returns:
            Detail payload; a "success_rate" entry switches the
            monitor to sub-check classification

        Raises:
            Exception: Any failure means the dependency is down
        """
        pass


class LedgerHealthProbe(ServiceProbe):
    """Solana RPC reachability."""

    name = "solana"

    def __init__(self, rpc: SolanaRpcProbe):
        self._rpc = rpc

    async def probe(self) -> Dict[str, Any]:
        slot = await self._rpc.current_slot()
        return {"slot": slot}


class StoreHealthProbe(ServiceProbe):
    """TTL store reachability."""

    name = "redis"

    def __init__(self, store: TTLStore):
        self._store = store

    async def probe(self) -> Dict[str, Any]:
        if not await self._store.ping():
            raise ProbeError(self.name, "ping returned false")
        return {}


class HttpSurfaceProbe(ServiceProbe):
    """
    HTTP API reachability.

    Each endpoint is a sub-check; the fraction that succeed is
    reported as success_rate.
    """

    name = "api"

    def __init__(
        self,
        base_url: str,
        endpoints: List[str],
        timeout_seconds: float = 5.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize HTTP probe."""
        self._base_url = base_url.rstrip("/")
        self._endpoints = list(endpoints)
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _check_endpoint(self, path: str) -> Dict[str, Any]:
        session = await self._get_session()
        url = f"{self._base_url}{path}"
        try:
            async with session.get(url) as response:
                return {"ok": response.status < 400, "status": response.status}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return {"ok": False, "error": str(e) or e.__class__.__name__}

    async def probe(self) -> Dict[str, Any]:
        if not self._endpoints:
            return {"success_rate": 1.0, "endpoints": {}}

        results = await asyncio.gather(*(self._check_endpoint(p) for p in self._endpoints))
        successes = sum(1 for r in results if r["ok"])
        return {
            "success_rate": successes / len(self._endpoints),
            "endpoints": dict(zip(self._endpoints, results)),
        }
