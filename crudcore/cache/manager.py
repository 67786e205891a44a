"""
Application-wide cache lifecycle.

``init_cache`` builds the backend from settings (Redis when ``CACHE_URL``
is set, an in-process MemoryCache otherwise), ``get_cache`` is the FastAPI
dependency handing it out and ``shutdown_cache`` closes it.
"""

from typing import Optional

from crudcore.cache.backends import MemoryCache, RedisCache
from crudcore.cache.base import BaseCache
from crudcore.config.base import BaseAppSettings
from crudcore.errors.exceptions import ConfigurationError
from crudcore.logging import Logger, ensure_logger

# Module-level cache instance
cache: Optional[BaseCache] = None


async def init_cache(
    settings: BaseAppSettings, logger: Optional[Logger] = None
) -> Optional[BaseCache]:
    """
    Create the cache backend.

    A Redis backend that cannot be reached is logged and left out, so the
    application runs uncached instead of failing to start.

    Returns:
        The backend, or None when Redis could not be initialized
    """
    global cache

    log = ensure_logger(logger, __name__, settings)
    ttl = settings.CACHE_DEFAULT_TTL
    prefix = settings.CACHE_KEY_PREFIX or ""

    if not settings.CACHE_URL:
        cache = MemoryCache(default_ttl=ttl, prefix=prefix, logger=log)
        log.info("MemoryCache initialized")
        return cache

    redis_cache = RedisCache(url=settings.CACHE_URL, default_ttl=ttl, prefix=prefix, logger=log)
    try:
        await redis_cache.init()
    except Exception as e:
        cache = None
        log.error(f"RedisCache initialization failed: {e}")
        return None

    cache = redis_cache
    log.info("RedisCache initialized")
    return cache


async def get_cache() -> BaseCache:
    """
    FastAPI dependency returning the cache backend.

    Raises:
        ConfigurationError: If ``init_cache`` has not produced a backend
    """
    if cache is None:
        raise ConfigurationError(message="Cache is not initialized; call init_cache first")
    return cache


async def shutdown_cache(logger: Optional[Logger] = None) -> None:
    """Close the cache backend."""
    global cache

    log = ensure_logger(logger, __name__)
    if cache is not None:
        await cache.close()
        cache = None
        log.info("Cache closed")
