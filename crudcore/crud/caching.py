"""
Read-through caching of CRUD responses.

ResponseCache sits between a CrudService and a cache backend. Show and
index responses are stored under a key derived from the operation and its
request arguments; every write clears all keys of the resource.

Cached responses are stored in their JSON form, so a response served by a
cached service carries JSON-ready data (ISO strings instead of datetimes)
whether it was a hit or a miss.

Limitations:
- Invalidation clears the whole resource namespace; there is no
  per-record invalidation.
- With a store that commits outside the service (request-scoped sessions),
  a read that runs between a write and its commit can cache the old state
  until the entry expires.
- Lifecycle hooks of show do not run for responses served from the cache.
"""

import hashlib
import json
from typing import Any, Optional

from crudcore.cache.base import BaseCache
from crudcore.logging import Logger, ensure_logger
from crudcore.schemas import CrudResponse


class ResponseCache:
    """
    Response cache of one resource.

    Backend errors never fail a request: they are logged and the request is
    served uncached.

    Args:
        backend: Cache backend
        prefix: Namespace of the resource's keys
        ttl: Lifetime of cached responses in seconds; the backend default when None
        logger: Optional logger
    """

    def __init__(
        self,
        backend: BaseCache,
        prefix: str,
        ttl: Optional[int] = None,
        logger: Optional[Logger] = None,
    ):
        self.backend = backend
        self.prefix = prefix
        self.ttl = ttl
        self.logger = ensure_logger(logger, __name__)

    def key(self, operation: str, **arguments: Any) -> str:
        """Key of one read: ``<prefix>:<operation>:<hash of the arguments>``."""
        key_data = {
            name: dict(value) if hasattr(value, "keys") else value
            for name, value in arguments.items()
        }
        key_str = json.dumps(key_data, sort_keys=True, default=str)
        key_hash = hashlib.sha256(key_str.encode()).hexdigest()
        return f"{self.prefix}:{operation}:{key_hash}"

    async def get(self, key: str) -> Optional[CrudResponse]:
        try:
            cached = await self.backend.get(key)
        except Exception as e:
            self.logger.error(f"Cache get error for key {key}: {e}")
            return None
        if cached is None:
            self.logger.debug(f"Cache miss: {key}")
            return None
        self.logger.debug(f"Cache hit: {key}")
        return CrudResponse.model_validate(cached)

    async def set(self, key: str, response: CrudResponse) -> CrudResponse:
        """Store ``response`` and return it in the form later hits will have."""
        value = response.model_dump(mode="json", by_alias=True)
        try:
            await self.backend.set(key, value, self.ttl)
        except Exception as e:
            self.logger.error(f"Cache set error for key {key}: {e}")
        return CrudResponse.model_validate(value)

    async def invalidate(self) -> None:
        """Drop every cached response of the resource."""
        try:
            await self.backend.clear(prefix=f"{self.prefix}:")
        except Exception as e:
            self.logger.error(f"Cache invalidation failed for {self.prefix}: {e}")
            return
        self.logger.debug(f"Cache invalidated: {self.prefix}")
