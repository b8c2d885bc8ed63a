"""
Solana Ledger Probe.

============================================================
PURPOSE
============================================================
Reads ledger metrics from a Solana JSON-RPC endpoint.

RPC METHODS:
- getSlot                       -> slot height
- getRecentPerformanceSamples   -> throughput, block interval
- getBlockTime                  -> block age (confirmation lag)

============================================================
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

from ..exceptions import ProbeError
from .base import Sampler


logger = logging.getLogger(__name__)


class SolanaRpcProbe:
    """
    Solana JSON-RPC client for monitoring.

    READ-ONLY: Only issues query methods.
    """

    SERVICE_NAME = "solana"

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize probe.

        Args:
            rpc_url: JSON-RPC endpoint
            commitment: Commitment level for slot queries
            timeout_seconds: Per-request timeout
            session: Optional shared HTTP session
        """
        self.rpc_url = rpc_url
        self._commitment = commitment
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None
        self._request_id = 0

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if owned."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _rpc_call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a JSON-RPC call to Solana."""
        session = await self._get_session()

        payload = {
            "jsonrpc": "2.0",
            "id": self._next_request_id(),
            "method": method,
            "params": params or [],
        }

        try:
            async with session.post(self.rpc_url, json=payload) as response:
                if response.status != 200:
                    raise ProbeError(
                        self.SERVICE_NAME,
                        f"{method} returned HTTP {response.status}",
                        status_code=response.status,
                    )

                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProbeError(self.SERVICE_NAME, f"{method} failed: {e}") from e

        if "error" in data:
            error = data["error"] or {}
            raise ProbeError(
                self.SERVICE_NAME,
                f"{method} error: {error.get('message', 'Unknown')}",
            )

        return data.get("result")

    # --------------------------------------------------------
    # LEDGER PROBE INTERFACE
    # --------------------------------------------------------

    async def current_slot(self) -> int:
        """Get the current slot."""
        result = await self._rpc_call("getSlot", [{"commitment": self._commitment}])
        return int(result or 0)

    async def recent_performance_sample(self) -> Optional[Dict[str, Any]]:
        """Get the most recent performance sample (None if unavailable)."""
        result = await self._rpc_call("getRecentPerformanceSamples", [1])
        if not result:
            return None
        return result[0]

    async def block_time_for(self, slot: int) -> Optional[int]:
        """Get the estimated production time of a slot (Unix seconds)."""
        result = await self._rpc_call("getBlockTime", [slot])
        return int(result) if result is not None else None

    # --------------------------------------------------------
    # DERIVED METRICS
    # --------------------------------------------------------

    async def throughput(self) -> float:
        """Transactions per second over the latest sample window."""
        sample = await self.recent_performance_sample()
        if not sample:
            return 0.0
        period = sample.get("samplePeriodSecs") or 0
        if period <= 0:
            return 0.0
        return sample.get("numTransactions", 0) / period

    async def block_interval(self) -> float:
        """Average slot time in milliseconds over the latest sample window."""
        sample = await self.recent_performance_sample()
        if not sample:
            return 0.0
        slots = sample.get("numSlots") or 0
        if slots <= 0:
            return 0.0
        return sample.get("samplePeriodSecs", 0) * 1000.0 / slots

    async def confirmation_lag(self) -> float:
        """Age of the latest confirmed block in milliseconds."""
        slot = await self.current_slot()
        block_time = await self.block_time_for(slot)
        if block_time is None:
            return 0.0
        return max(0.0, (time.time() - block_time) * 1000.0)

    async def slot_height(self) -> float:
        return float(await self.current_slot())

    def samplers(self) -> Dict[str, Sampler]:
        """Ledger samplers keyed by metric path."""
        return {
            "ledger.throughput": self.throughput,
            "ledger.block_interval": self.block_interval,
            "ledger.slot_height": self.slot_height,
            "ledger.confirmation_time": self.confirmation_lag,
        }
