"""In-memory key-value store for single-process deployments and tests."""

import asyncio
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from shopauth.cache.base import CacheBackend


@dataclass
class CacheEntry:
    """A single cache entry with optional expiration."""

    value: Any
    expires_at: datetime | None = None

    def is_expired(self) -> bool:
        """Check if this entry has expired."""
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= self.expires_at


class InMemoryCache(CacheBackend):
    """Simple in-memory store with TTL support.

    All operations run under one asyncio lock, which makes ``incr`` atomic
    within the process. It's suitable for single-process deployments or
    testing; multi-instance deployments need ``RedisCache``.
    """

    def __init__(
        self,
        default_ttl: int | None = None,
        cleanup_interval: int = 60,
    ):
        """Initialize the in-memory store.

        Args:
            default_ttl: Default TTL in seconds (None for no expiration)
            cleanup_interval: How often to clean expired entries (seconds)
        """
        self._cache: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self.default_ttl = default_ttl
        self.cleanup_interval = cleanup_interval
        self._last_cleanup = datetime.now(timezone.utc)

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._cache[key]
            return None
        return entry

    @staticmethod
    def _expiry(ttl: int | float | None) -> datetime | None:
        if ttl is None:
            return None
        return datetime.now(timezone.utc) + timedelta(seconds=ttl)

    async def get(self, key: str) -> Any | None:
        """Get a value from the store.

        Args:
            key: The key

        Returns:
            The stored value or None if not found/expired
        """
        async with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry else None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> None:
        """Set a value in the store.

        Args:
            key: The key
            value: The value to store
            ttl: Time-to-live in seconds (None uses default)
        """
        async with self._lock:
            actual_ttl = ttl if ttl is not None else self.default_ttl
            self._cache[key] = CacheEntry(value=value, expires_at=self._expiry(actual_ttl))
            self._maybe_cleanup()

    async def delete(self, key: str) -> bool:
        """Delete a value from the store.

        Args:
            key: The key

        Returns:
            True if the key existed
        """
        async with self._lock:
            if self._live_entry(key) is not None:
                del self._cache[key]
                return True
            return False

    async def exists(self, key: str) -> bool:
        """Check if a key exists and is not expired."""
        async with self._lock:
            return self._live_entry(key) is not None

    async def incr(self, key: str, ttl: int) -> int:
        """Atomically increment a counter, setting the window on creation."""
        async with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self._cache[key] = CacheEntry(value=1, expires_at=self._expiry(ttl))
                self._maybe_cleanup()
                return 1
            entry.value = int(entry.value) + 1
            return entry.value

    async def ttl(self, key: str) -> int | None:
        """Remaining whole seconds before the key expires."""
        async with self._lock:
            entry = self._live_entry(key)
            if entry is None or entry.expires_at is None:
                return None
            remaining = (entry.expires_at - datetime.now(timezone.utc)).total_seconds()
            return max(1, math.ceil(remaining))

    async def clear(self) -> None:
        """Clear all entries from the store."""
        async with self._lock:
            self._cache.clear()

    def expire_now(self, key: str) -> None:
        """Force a key to expire immediately (test helper for window expiry)."""
        entry = self._cache.get(key)
        if entry is not None:
            entry.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

    def _maybe_cleanup(self) -> None:
        """Periodically clean up expired entries."""
        now = datetime.now(timezone.utc)
        if (now - self._last_cleanup).total_seconds() < self.cleanup_interval:
            return

        self._last_cleanup = now
        keys_to_delete = [
            key for key, entry in self._cache.items()
            if entry.is_expired()
        ]
        for key in keys_to_delete:
            del self._cache[key]

    @property
    def size(self) -> int:
        """Get the current number of entries in the store."""
        return len(self._cache)

