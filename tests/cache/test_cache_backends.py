import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from crudcore.cache import MemoryCache, RedisCache
from crudcore.errors import ConfigurationError


@pytest.mark.asyncio
class TestMemoryCache:
    async def test_set_get_delete(self):
        cache = MemoryCache(prefix="app:")
        await cache.set("a", {"x": 1})
        assert await cache.get("a") == {"x": 1}
        assert await cache.get("missing") is None

        await cache.delete("a")
        assert await cache.get("a") is None

    async def test_values_are_copied(self):
        cache = MemoryCache()
        value = {"items": [1]}
        await cache.set("a", value)
        value["items"].append(2)
        (await cache.get("a"))["items"].append(3)
        assert await cache.get("a") == {"items": [1]}

    async def test_entries_expire(self):
        now = [1000.0]
        cache = MemoryCache(default_ttl=10)
        cache._clock = lambda: now[0]
        await cache.set("short", 1, ttl=1)
        await cache.set("default", 2)

        now[0] += 5
        assert await cache.get("short") is None
        assert await cache.get("default") == 2
        now[0] += 10
        assert await cache.get("default") is None
        assert len(cache) == 0

    async def test_clear_by_prefix(self):
        cache = MemoryCache()
        await cache.set("crud:User:show:1", 1)
        await cache.set("crud:User:index:2", 2)
        await cache.set("crud:Post:show:1", 3)

        await cache.clear("crud:User:")
        assert await cache.get("crud:User:show:1") is None
        assert await cache.get("crud:Post:show:1") == 3

        await cache.clear()
        assert len(cache) == 0


@pytest.fixture
def redis_cache():
    return RedisCache(url="redis://localhost:6379/0", default_ttl=100, prefix="test:")


@pytest.mark.asyncio
class TestRedisCache:
    async def test_init_connects_and_pings(self, redis_cache):
        with patch("redis.asyncio.from_url") as from_url:
            client = AsyncMock()
            from_url.return_value = client
            await redis_cache.init()
            from_url.assert_called_once_with(
                redis_cache.url, encoding="utf-8", decode_responses=True
            )
            client.ping.assert_awaited_once()

    @pytest.mark.parametrize(
        "method,args",
        [("get", ("k",)), ("set", ("k", 1)), ("delete", ("k",)), ("clear", ())],
    )
    async def test_requires_init(self, redis_cache, method, args):
        with pytest.raises(ConfigurationError):
            await getattr(redis_cache, method)(*args)

    async def test_get_decodes_json(self, redis_cache):
        redis_cache._redis = AsyncMock()
        redis_cache._redis.get.return_value = json.dumps({"data": [1]})
        assert await redis_cache.get("k") == {"data": [1]}
        redis_cache._redis.get.assert_awaited_once_with("test:k")

    async def test_get_miss(self, redis_cache):
        redis_cache._redis = AsyncMock()
        redis_cache._redis.get.return_value = None
        assert await redis_cache.get("k") is None

    async def test_set_encodes_json_with_ttl(self, redis_cache):
        redis_cache._redis = AsyncMock()
        await redis_cache.set("k", {"a": 1})
        await redis_cache.set("j", [1], ttl=5)
        assert redis_cache._redis.set.await_args_list[0].args == ("test:k", '{"a": 1}')
        assert redis_cache._redis.set.await_args_list[0].kwargs == {"ex": 100}
        assert redis_cache._redis.set.await_args_list[1].kwargs == {"ex": 5}

    async def test_clear_scans_prefix(self, redis_cache):
        async def scan_iter(match):
            assert match == "test:crud:User:*"
            for key in ("test:crud:User:show:a", "test:crud:User:index:b"):
                yield key

        client = MagicMock()
        client.scan_iter = scan_iter
        client.delete = AsyncMock()
        redis_cache._redis = client

        await redis_cache.clear("crud:User:")
        client.delete.assert_awaited_once_with("test:crud:User:show:a", "test:crud:User:index:b")

    async def test_close(self, redis_cache):
        client = AsyncMock()
        redis_cache._redis = client
        await redis_cache.close()
        client.aclose.assert_awaited_once()
        assert redis_cache._redis is None
