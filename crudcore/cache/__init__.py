"""
Cache module for crudcore.

Async cache backends for CRUD read responses:

- BaseCache: backend interface
- MemoryCache: in-process backend with expiry
- RedisCache: Redis backend (``redis.asyncio``)
- init_cache / get_cache / shutdown_cache: application-wide lifecycle

Limitations:
- MemoryCache is per process; use Redis when several workers serve the
  same resources.
- Values must be JSON-serializable.
"""

from crudcore.cache.backends import MemoryCache, RedisCache
from crudcore.cache.base import BaseCache
from crudcore.cache.manager import get_cache, init_cache, shutdown_cache

__all__ = [
    "BaseCache",
    "MemoryCache",
    "RedisCache",
    "init_cache",
    "get_cache",
    "shutdown_cache",
]
