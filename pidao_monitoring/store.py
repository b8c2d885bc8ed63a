"""
PiDAO Monitoring - TTL Store.

============================================================
PURPOSE
============================================================
Key-value store with per-key expiry used for every persisted
monitoring record (snapshots, health checks, audit entries,
benchmark results, suggestions).

PRINCIPLES:
- Values are JSON encoded
- Store errors degrade to miss / no-op and are logged
- Only ping() raises (it is itself a health probe)
- Keys are namespaced "{category}:{identifier}:{timestamp}"

BACKENDS:
- RedisTTLStore: production (redis-py asyncio client)
- MemoryTTLStore: tests and single-process development

============================================================
"""

from abc import ABC, abstractmethod
from fnmatch import fnmatchcase
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple
import json
import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .clock import ClockProtocol, get_clock
from .exceptions import StoreError


logger = logging.getLogger(__name__)

_GLOB_CHARS = set("*?[")


def normalize_pattern(pattern: str) -> str:
    """Treat a bare prefix as `prefix*`."""
    if any(ch in _GLOB_CHARS for ch in pattern):
        return pattern
    return f"{pattern}*"


# ============================================================
# STORE INTERFACE
# ============================================================

class TTLStore(ABC):
    """
    Abstract TTL store.

    Subclasses implement the raw string operations; this class
    adds JSON encoding and the degrade-to-miss error policy.
    """

    # ---- raw backend operations (may raise) ----

    @abstractmethod
    async def _get_raw(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def _get_many_raw(self, keys: List[str]) -> List[Optional[str]]:
        pass

    @abstractmethod
    async def _set_raw(self, key: str, raw: str, ttl_seconds: Optional[int]) -> None:
        pass

    @abstractmethod
    async def _delete_raw(self, keys: List[str]) -> int:
        pass

    @abstractmethod
    async def _scan(self, pattern: str) -> List[str]:
        pass

    @abstractmethod
    async def _ping(self) -> bool:
        pass

    async def close(self) -> None:
        """Release backend resources."""
        pass

    # ---- public operations (never raise) ----

    async def get(self, key: str) -> Optional[Any]:
        """Get a value; None on miss or store error."""
        try:
            raw = await self._get_raw(key)
        except Exception as e:
            logger.error(f"Store get failed for {key}: {e}")
            return None
        return self._decode(key, raw)

    async def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Get several values; missing keys are omitted."""
        keys = list(keys)
        if not keys:
            return {}
        try:
            raws = await self._get_many_raw(keys)
        except Exception as e:
            logger.error(f"Store get_many failed for {len(keys)} keys: {e}")
            return {}

        values = {}
        for key, raw in zip(keys, raws):
            value = self._decode(key, raw)
            if value is not None:
                values[key] = value
        return values

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """
        Set a value.

        Args:
            key: Store key
            value: JSON-serializable value
            ttl_seconds: Expiry; None or 0 means no expiry

        Returns:
            True if stored
        """
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Store set failed for {key}: value not serializable: {e}")
            return False

        try:
            await self._set_raw(key, raw, int(ttl_seconds) if ttl_seconds else None)
            return True
        except Exception as e:
            logger.error(f"Store set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key."""
        try:
            return await self._delete_raw([key]) > 0
        except Exception as e:
            logger.error(f"Store delete failed for {key}: {e}")
            return False

    async def get_or_set(
        self,
        key: str,
        ttl_seconds: Optional[int],
        producer: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Get a value, producing and storing it on miss.

        Concurrent misses may invoke the producer more than once.
        Producer errors propagate to the caller.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        value = await producer()
        await self.set(key, value, ttl_seconds)
        return value

    async def keys(self, pattern: str) -> List[str]:
        """List keys matching a glob pattern or prefix."""
        try:
            return sorted(await self._scan(normalize_pattern(pattern)))
        except Exception as e:
            logger.error(f"Store scan failed for {pattern}: {e}")
            return []

    async def invalidate_by_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern or prefix."""
        matched = await self.keys(pattern)
        if not matched:
            return 0
        try:
            return await self._delete_raw(matched)
        except Exception as e:
            logger.error(f"Store invalidate failed for {pattern}: {e}")
            return 0

    async def ping(self) -> bool:
        """
        Check store reachability.

        Raises:
            StoreError: If the store cannot be reached
        """
        try:
            return await self._ping()
        except StoreError:
            raise
        except Exception as e:
            raise StoreError("ping", str(e)) from e

    def _decode(self, key: str, raw: Optional[str]) -> Optional[Any]:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Store value for {key} is not valid JSON: {e}")
            return None


# ============================================================
# MEMORY BACKEND
# ============================================================

class MemoryTTLStore(TTLStore):
    """
    In-memory TTL store.

    Expiry is evaluated lazily against the injected clock, so tests
    can expire records by advancing a MockClock.
    """

    def __init__(self, clock: Optional[ClockProtocol] = None):
        """Initialize memory store."""
        self._clock = clock or get_clock()
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _is_expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and self._clock.timestamp() >= expires_at

    def _lookup(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if item is None:
            return None
        raw, expires_at = item
        if self._is_expired(expires_at):
            del self._data[key]
            return None
        return raw

    async def _get_raw(self, key: str) -> Optional[str]:
        return self._lookup(key)

    async def _get_many_raw(self, keys: List[str]) -> List[Optional[str]]:
        return [self._lookup(key) for key in keys]

    async def _set_raw(self, key: str, raw: str, ttl_seconds: Optional[int]) -> None:
        expires_at = self._clock.timestamp() + ttl_seconds if ttl_seconds else None
        self._data[key] = (raw, expires_at)

    async def _delete_raw(self, keys: List[str]) -> int:
        deleted = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def _scan(self, pattern: str) -> List[str]:
        return [
            key for key in list(self._data)
            if fnmatchcase(key, pattern) and self._lookup(key) is not None
        ]

    async def _ping(self) -> bool:
        return True

    def ttl(self, key: str) -> Optional[float]:
        """Seconds until expiry (None if no expiry or missing)."""
        item = self._data.get(key)
        if item is None or item[1] is None:
            return None
        return item[1] - self._clock.timestamp()

    def __len__(self) -> int:
        return len([key for key in list(self._data) if self._lookup(key) is not None])


# ============================================================
# REDIS BACKEND
# ============================================================

class RedisTTLStore(TTLStore):
    """Redis-backed TTL store."""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        socket_timeout: float = 5.0,
        client: Optional[aioredis.Redis] = None,
    ):
        """
        Initialize Redis store.

        Args:
            url: Redis connection URL
            socket_timeout: Per-command socket timeout (seconds)
            client: Pre-built client (overrides url)
        """
        self._url = url
        self._client = client or aioredis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    async def _get_raw(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def _get_many_raw(self, keys: List[str]) -> List[Optional[str]]:
        return await self._client.mget(keys)

    async def _set_raw(self, key: str, raw: str, ttl_seconds: Optional[int]) -> None:
        if ttl_seconds:
            await self._client.setex(key, ttl_seconds, raw)
        else:
            await self._client.set(key, raw)

    async def _delete_raw(self, keys: List[str]) -> int:
        return await self._client.delete(*keys)

    async def _scan(self, pattern: str) -> List[str]:
        return [key async for key in self._client.scan_iter(match=pattern, count=500)]

    async def _ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            raise StoreError("ping", str(e)) from e

    async def close(self) -> None:
        """Close the connection pool."""
        await self._client.aclose()


def create_store(backend: str, url: str = "", socket_timeout: float = 5.0,
                 clock: Optional[ClockProtocol] = None) -> TTLStore:
    """Create a store for the configured backend."""
    if backend == "memory":
        logger.warning("Using in-memory TTL store; records are not shared across processes")
        return MemoryTTLStore(clock=clock)
    return RedisTTLStore(url=url, socket_timeout=socket_timeout)
