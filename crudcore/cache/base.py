from abc import ABC, abstractmethod
from typing import Any, Optional


class BaseCache(ABC):
    """
    Async key/value cache used for CRUD read responses.

    Values are JSON-ready structures (dicts, lists, scalars). Keys are
    plain strings; backends may add their own namespace prefix.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Value stored under ``key``, or None on a miss."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store ``value`` for ``ttl`` seconds (the backend default when None)."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove one key."""

    @abstractmethod
    async def clear(self, prefix: Optional[str] = None) -> None:
        """Remove every key starting with ``prefix``, or everything without one."""

    async def close(self) -> None:
        """Release backend resources."""
