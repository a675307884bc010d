"""Small TTL cache for fetched index documents."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with TTL."""

    value: T
    expires_at: float
    created_at: float = field(default_factory=time.time)

    def is_expired(self) -> bool:
        """Check if this entry has expired."""
        return time.time() > self.expires_at


class TTLCache(Generic[T]):
    """In-memory key/value cache whose entries expire after a TTL."""

    def __init__(self, default_ttl: int = 3600):
        """Initialize the cache.

        Args:
            default_ttl: Default time-to-live in seconds.
        """
        self._default_ttl = default_ttl
        self._cache: Dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> Optional[T]:
        """Return the cached value or None if missing/expired."""
        entry = self._cache.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._cache[key]
            return None
        return entry.value

    def set(self, key: str, value: T, ttl: Optional[int] = None) -> None:
        """Cache ``value`` under ``key``.

        Args:
            key: Cache key.
            value: Value to store.
            ttl: Optional TTL override in seconds.
        """
        effective_ttl = ttl if ttl is not None else self._default_ttl
        self._cache[key] = CacheEntry(value=value, expires_at=time.time() + effective_ttl)

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or every key when ``key`` is None."""
        if key is None:
            self._cache.clear()
        else:
            self._cache.pop(key, None)

