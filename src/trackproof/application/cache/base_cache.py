"""Base cache interface and in-memory implementation."""

import asyncio
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class BaseCache(ABC, Generic[K, V]):
    """Base cache interface for all cache implementations."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value if found, None otherwise
        """
        pass

    @abstractmethod
    async def set(self, key: K, value: V) -> None:
        """Set value in cache (always overwrites)."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from cache."""
        pass


class InMemoryCache(BaseCache[K, V]):
    """In-memory cache implementation using a dictionary.

    Process-local: restart = cache lost, nothing shared across processes. No TTL:
    what we store here (platform track IDs) doesn't go stale.
    """

    # Listen up future me, the _lock is CRITICAL for async safety. Two coroutines doing
    # read-modify-write on the dict at the same time would corrupt state. Always
    # "async with self._lock" before touching self._cache!
    def __init__(self) -> None:
        """Initialize in-memory cache."""
        self._cache: dict[K, V] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: K) -> V | None:
        """Get value from cache."""
        async with self._lock:
            return self._cache.get(key)

    async def set(self, key: K, value: V) -> None:
        """Set value in cache."""
        async with self._lock:
            self._cache[key] = value

    async def clear(self) -> None:
        """Clear all entries from cache."""
        async with self._lock:
            self._cache.clear()

    # Not locked: a snapshot that may be slightly stale under concurrent writes
    def keys(self) -> list[K]:
        """Snapshot of current keys."""
        return list(self._cache)

    def __len__(self) -> int:
        return len(self._cache)
