"""
Tests for the TTL store.

============================================================
TEST PRINCIPLES:
- Expiry is driven by the mock clock
- Backend errors degrade to misses; only ping raises
============================================================
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from pidao_monitoring.exceptions import StoreError
from pidao_monitoring.store import (
    MemoryTTLStore,
    RedisTTLStore,
    create_store,
    normalize_pattern,
)


class TestNormalizePattern:
    """Tests for glob/prefix normalization."""

    def test_bare_prefix_gets_wildcard(self):
        assert normalize_pattern("health:solana:") == "health:solana:*"

    def test_glob_is_kept(self):
        assert normalize_pattern("audit:*:x") == "audit:*:x"


class TestMemoryTTLStore:
    """Tests for MemoryTTLStore."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, store):
        assert await store.set("k", {"a": 1, "b": [1, 2]}, 60)
        assert await store.get("k") == {"a": 1, "b": [1, 2]}

    @pytest.mark.asyncio
    async def test_missing_key_is_none(self, store):
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_expiry_follows_clock(self, store, clock):
        await store.set("k", 1, 60)

        clock.advance(59)
        assert await store.get("k") == 1

        clock.advance(1)
        assert await store.get("k") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_no_ttl_never_expires(self, store, clock):
        await store.set("k", "v", None)
        clock.advance(days=365)
        assert await store.get("k") == "v"
        assert store.ttl("k") is None

    @pytest.mark.asyncio
    async def test_ttl_reports_remaining_seconds(self, store, clock):
        await store.set("k", "v", 100)
        clock.advance(40)
        assert store.ttl("k") == pytest.approx(60)

    @pytest.mark.asyncio
    async def test_keys_by_prefix_and_pattern(self, store):
        await store.set("health:solana:1", 1, 60)
        await store.set("health:solana:2", 2, 60)
        await store.set("health:redis:1", 3, 60)

        assert await store.keys("health:solana:") == ["health:solana:1", "health:solana:2"]
        assert await store.keys("health:*:1") == ["health:redis:1", "health:solana:1"]

    @pytest.mark.asyncio
    async def test_keys_skip_expired(self, store, clock):
        await store.set("a:1", 1, 10)
        await store.set("a:2", 2, 100)
        clock.advance(20)
        assert await store.keys("a:") == ["a:2"]

    @pytest.mark.asyncio
    async def test_get_many_omits_missing(self, store):
        await store.set("a", 1, 60)
        await store.set("b", 2, 60)

        assert await store.get_many(["a", "b", "c"]) == {"a": 1, "b": 2}
        assert await store.get_many([]) == {}

    @pytest.mark.asyncio
    async def test_delete_and_invalidate(self, store):
        await store.set("x:1", 1, 60)
        await store.set("x:2", 2, 60)
        await store.set("y:1", 3, 60)

        assert await store.delete("y:1")
        assert not await store.delete("y:1")
        assert await store.invalidate_by_pattern("x:") == 2
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_unserializable_value_is_rejected(self, store):
        assert not await store.set("k", object(), 60)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_get_or_set_caches(self, store):
        producer = AsyncMock(return_value={"v": 1})

        first = await store.get_or_set("k", 60, producer)
        second = await store.get_or_set("k", 60, producer)

        assert first == second == {"v": 1}
        producer.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_or_set_propagates_producer_error(self, store):
        producer = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await store.get_or_set("k", 60, producer)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_backend_error_degrades_to_miss(self, store):
        store._get_raw = AsyncMock(side_effect=OSError("connection reset"))
        store._scan = AsyncMock(side_effect=OSError("connection reset"))

        assert await store.get("k") is None
        assert await store.keys("k") == []

    @pytest.mark.asyncio
    async def test_ping(self, store):
        assert await store.ping() is True

        store._ping = AsyncMock(side_effect=OSError("unreachable"))
        with pytest.raises(StoreError):
            await store.ping()


class TestRedisTTLStore:
    """Tests for RedisTTLStore against a mocked client."""

    def _client(self):
        client = MagicMock()
        client.get = AsyncMock(return_value='{"a": 1}')
        client.mget = AsyncMock(return_value=['1', None])
        client.setex = AsyncMock()
        client.set = AsyncMock()
        client.delete = AsyncMock(return_value=1)
        client.ping = AsyncMock(return_value=True)
        client.aclose = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_set_uses_setex_with_ttl(self):
        client = self._client()
        store = RedisTTLStore(client=client)

        assert await store.set("k", {"a": 1}, 30)
        client.setex.assert_awaited_once_with("k", 30, '{"a": 1}')

        assert await store.set("k2", 5)
        client.set.assert_awaited_once_with("k2", "5")

    @pytest.mark.asyncio
    async def test_get_and_get_many_decode_json(self):
        store = RedisTTLStore(client=self._client())

        assert await store.get("k") == {"a": 1}
        assert await store.get_many(["x", "y"]) == {"x": 1}

    @pytest.mark.asyncio
    async def test_set_failure_returns_false(self):
        client = self._client()
        client.setex = AsyncMock(side_effect=RedisConnectionError("down"))
        store = RedisTTLStore(client=client)

        assert not await store.set("k", 1, 30)

    @pytest.mark.asyncio
    async def test_ping_failure_raises_store_error(self):
        client = self._client()
        client.ping = AsyncMock(side_effect=RedisConnectionError("down"))
        store = RedisTTLStore(client=client)

        with pytest.raises(StoreError):
            await store.ping()

    @pytest.mark.asyncio
    async def test_close(self):
        client = self._client()
        store = RedisTTLStore(client=client)

        await store.close()
        client.aclose.assert_awaited_once()


class TestCreateStore:
    """Tests for create_store."""

    def test_memory_backend(self, clock):
        assert isinstance(create_store("memory", clock=clock), MemoryTTLStore)
