"""
Cache backends.

- MemoryCache: per-process dict with expiry; the default when no
  ``CACHE_URL`` is configured
- RedisCache: shared cache on Redis through ``redis.asyncio``; values are
  stored as JSON strings
"""

import copy
import json
import time
from typing import Any, Dict, Optional, Tuple

from redis import asyncio as aredis

from crudcore.cache.base import BaseCache
from crudcore.errors.exceptions import ConfigurationError
from crudcore.logging import Logger, ensure_logger


class MemoryCache(BaseCache):
    """
    In-process cache with per-entry expiry.

    Expired entries are dropped when they are read. Stored values are copied
    on the way in and out, so callers cannot mutate cached data.

    Args:
        default_ttl: Lifetime in seconds of entries stored without a ttl
        prefix: Namespace prepended to every key
        logger: Optional logger
    """

    def __init__(
        self, default_ttl: int = 300, prefix: str = "", logger: Optional[Logger] = None
    ):
        self.default_ttl = default_ttl
        self.prefix = prefix
        self.logger = ensure_logger(logger, __name__)
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._clock = time.monotonic

    async def get(self, key: str) -> Optional[Any]:
        full_key = f"{self.prefix}{key}"
        entry = self._entries.get(full_key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[full_key]
            self.logger.debug(f"Cache entry expired: {full_key}")
            return None
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        lifetime = ttl if ttl is not None else self.default_ttl
        self._entries[f"{self.prefix}{key}"] = (copy.deepcopy(value), self._clock() + lifetime)

    async def delete(self, key: str) -> None:
        self._entries.pop(f"{self.prefix}{key}", None)

    async def clear(self, prefix: Optional[str] = None) -> None:
        start = f"{self.prefix}{prefix or ''}"
        for key in [k for k in self._entries if k.startswith(start)]:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


class RedisCache(BaseCache):
    """
    Redis cache backend.

    Call ``init`` before use and ``close`` on shutdown.

    Args:
        url: ``redis://`` or ``rediss://`` connection URL
        default_ttl: Expiry in seconds of entries stored without a ttl
        prefix: Namespace prepended to every key
        logger: Optional logger
    """

    def __init__(
        self,
        url: str,
        default_ttl: int = 300,
        prefix: str = "",
        logger: Optional[Logger] = None,
    ):
        self.url = url
        self.default_ttl = default_ttl
        self.prefix = prefix
        self.logger = ensure_logger(logger, __name__)
        self._redis: Optional[aredis.Redis] = None

    async def init(self) -> None:
        """Connect and verify the connection with PING."""
        self._redis = aredis.from_url(self.url, encoding="utf-8", decode_responses=True)
        await self._redis.ping()

    def _client(self) -> aredis.Redis:
        if self._redis is None:
            raise ConfigurationError(message="Redis cache is not initialized; call init() first")
        return self._redis

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._client().get(f"{self.prefix}{key}")
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expire = ttl if ttl is not None else self.default_ttl
        await self._client().set(f"{self.prefix}{key}", json.dumps(value), ex=expire)

    async def delete(self, key: str) -> None:
        await self._client().delete(f"{self.prefix}{key}")

    async def clear(self, prefix: Optional[str] = None) -> None:
        client = self._client()
        pattern = f"{self.prefix}{prefix or ''}*"
        # SCAN keeps Redis responsive on large keyspaces
        keys = [key async for key in client.scan_iter(match=pattern)]
        if keys:
            await client.delete(*keys)
        self.logger.debug(f"Cleared {len(keys)} cache key(s) matching {pattern}")

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.debug("Redis cache connection closed")
