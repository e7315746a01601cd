"""Base interface for the fast key-value store."""

from abc import ABC, abstractmethod
from typing import Any


class CacheBackend(ABC):
    """Abstract base class for the shared fast key-value store.

    The rate limiter and token blacklist only rely on the primitives
    declared here. ``incr`` must be atomic: increment and, on the first
    increment, set the expiry, as one indivisible operation.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value from the store.

        Args:
            key: The key

        Returns:
            The stored value or None if not found
        """
        pass

    @abstractmethod
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
            ttl: Time-to-live in seconds (None for no expiration)
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value from the store.

        Args:
            key: The key

        Returns:
            True if the key existed and was deleted
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists in the store.

        Args:
            key: The key

        Returns:
            True if the key exists
        """
        pass

    @abstractmethod
    async def incr(self, key: str, ttl: int) -> int:
        """Atomically increment a counter.

        When the post-increment value is 1 (the key was created by this
        call) the key's expiry is set to ``ttl`` seconds.

        Args:
            key: The counter key
            ttl: Window length in seconds applied on creation

        Returns:
            The post-increment value
        """
        pass

    @abstractmethod
    async def ttl(self, key: str) -> int | None:
        """Remaining time-to-live of a key.

        Args:
            key: The key

        Returns:
            Seconds until expiry, or None if the key is missing or persistent
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from the store."""
        pass

    async def close(self) -> None:
        """Release connections held by the backend."""
        return None
