"""Unit tests for xssgate/audit/cache.py — InMemoryStagingCache and RedisStagingCache.

RedisStagingCache is exercised against an AsyncMock client; no Redis
server is required.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError

from xssgate.audit.cache import InMemoryStagingCache, RedisStagingCache, split_index
from xssgate.audit.protocol import StagingCache


class TestSplitIndex:

    def test_splits_on_comma(self) -> None:
        assert split_index("log-a,log-b,log-c") == ["log-a", "log-b", "log-c"]

    def test_ignores_empty_fragments(self) -> None:
        assert split_index(",log-a,,log-b,") == ["log-a", "log-b"]

    def test_empty_string(self) -> None:
        assert split_index("") == []


class TestInMemoryStagingCache:

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryStagingCache(), StagingCache)

    async def test_get_missing_returns_none(self) -> None:
        assert await InMemoryStagingCache().get("nope") is None

    async def test_set_get_delete(self) -> None:
        cache = InMemoryStagingCache()
        await cache.set("log-a", "value")
        assert await cache.get("log-a") == "value"
        await cache.delete("log-a")
        assert await cache.get("log-a") is None

    async def test_delete_missing_is_noop(self) -> None:
        await InMemoryStagingCache().delete("nope")

    async def test_append_to_index(self) -> None:
        cache = InMemoryStagingCache()
        await cache.append_to_index("log-index", "log-a")
        await cache.append_to_index("log-index", "log-b")
        assert await cache.get("log-index") == "log-a,log-b"

    async def test_close_clears(self) -> None:
        cache = InMemoryStagingCache()
        await cache.set("k", "v")
        await cache.close()
        assert len(cache) == 0


class TestInMemoryExpiry:

    async def test_value_expires_after_ttl(self, clock) -> None:
        cache = InMemoryStagingCache(ttl_seconds=10.0, clock=clock)
        await cache.set("log-a", "A")
        clock.advance(9.5)
        assert await cache.get("log-a") == "A"
        clock.advance(1.0)
        assert await cache.get("log-a") is None
        assert len(cache) == 0

    async def test_no_ttl_never_expires(self, clock) -> None:
        cache = InMemoryStagingCache(clock=clock)
        await cache.set("log-a", "A")
        clock.advance(10 ** 9)
        assert await cache.get("log-a") == "A"

    async def test_rewrite_restarts_ttl(self, clock) -> None:
        cache = InMemoryStagingCache(ttl_seconds=10.0, clock=clock)
        await cache.set("log-a", "A")
        clock.advance(8.0)
        await cache.set("log-a", "A2")
        clock.advance(8.0)
        assert await cache.get("log-a") == "A2"

    async def test_set_purges_expired_entries(self, clock) -> None:
        cache = InMemoryStagingCache(ttl_seconds=10.0, clock=clock)
        await cache.set("log-a", "A")
        await cache.set("log-b", "B")
        clock.advance(11.0)
        await cache.set("log-c", "C")
        assert len(cache) == 1

    async def test_index_does_not_expire(self, clock) -> None:
        cache = InMemoryStagingCache(ttl_seconds=10.0, clock=clock)
        await cache.append_to_index("log-index", "log-a")
        clock.advance(11.0)
        assert cache.purge_expired() == 0
        assert await cache.get("log-index") == "log-a"


class TestRedisStagingCache:

    def test_satisfies_protocol(self) -> None:
        assert isinstance(RedisStagingCache(AsyncMock()), StagingCache)

    async def test_get_set_delete_delegate(self) -> None:
        client = AsyncMock()
        client.get.return_value = "value"
        cache = RedisStagingCache(client)

        await cache.set("log-a", "value")
        assert await cache.get("log-a") == "value"
        await cache.delete("log-a")

        client.set.assert_awaited_once_with("log-a", "value", ex=None)
        client.get.assert_awaited_once_with("log-a")
        client.delete.assert_awaited_once_with("log-a")

    async def test_append_creates_index_with_setnx(self) -> None:
        client = AsyncMock()
        client.setnx.return_value = True
        cache = RedisStagingCache(client)

        await cache.append_to_index("log-index", "log-a")

        client.setnx.assert_awaited_once_with("log-index", "log-a")
        client.append.assert_not_awaited()

    async def test_append_extends_existing_index(self) -> None:
        client = AsyncMock()
        client.setnx.return_value = False
        cache = RedisStagingCache(client)

        await cache.append_to_index("log-index", "log-b")

        client.append.assert_awaited_once_with("log-index", ",log-b")

    async def test_health_check_ok(self) -> None:
        client = AsyncMock()
        client.ping.return_value = True
        assert await RedisStagingCache(client).health_check() is True

    async def test_health_check_connection_error(self) -> None:
        client = AsyncMock()
        client.ping.side_effect = RedisConnectionError("refused")
        assert await RedisStagingCache(client).health_check() is False

    async def test_close(self) -> None:
        client = AsyncMock()
        await RedisStagingCache(client).close()
        client.aclose.assert_awaited_once()

    def test_from_url_decodes_responses(self) -> None:
        cache = RedisStagingCache.from_url("redis://localhost:6379/0")
        assert cache._client.connection_pool.connection_kwargs["decode_responses"] is True

    async def test_set_with_ttl_uses_expiry_in_whole_seconds(self) -> None:
        client = AsyncMock()
        cache = RedisStagingCache(client, ttl_seconds=10.2)

        await cache.set("log-a", "value")

        assert cache.ttl_seconds == 11
        client.set.assert_awaited_once_with("log-a", "value", ex=11)

    async def test_index_append_has_no_expiry(self) -> None:
        client = AsyncMock()
        client.setnx.return_value = True
        await RedisStagingCache(client, ttl_seconds=60).append_to_index("log-index", "log-a")
        client.expire.assert_not_awaited()

    def test_from_url_passes_ttl(self) -> None:
        cache = RedisStagingCache.from_url("redis://localhost:6379/0", ttl_seconds=90.0)
        assert cache.ttl_seconds == 90
