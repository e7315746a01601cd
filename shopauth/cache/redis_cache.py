"""Redis-backed key-value store shared by all service instances."""

import logging
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shopauth.cache.base import CacheBackend
from shopauth.core.exceptions import StoreError

logger = logging.getLogger(__name__)


class RedisCache(CacheBackend):
    """Thin Redis wrapper for rate-limit counters and blacklist markers.

    Values are stored as strings. Connection and command failures are
    raised as ``StoreError`` so callers see one error type per store.
    """

    DEFAULT_OPERATION_TIMEOUT = 5.0

    # INCR and first-hit EXPIRE as one atomic step
    _INCR_WITH_WINDOW_SCRIPT = """
local current = redis.call('INCR', KEYS[1])
if current == 1 then
  redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return current
"""

    def __init__(
        self,
        redis_url: str,
        *,
        socket_timeout: float = DEFAULT_OPERATION_TIMEOUT,
        client: aioredis.Redis | None = None,
    ):
        """Initialize the Redis store.

        Args:
            redis_url: Connection URL, e.g. ``redis://localhost:6379/0``
            socket_timeout: Timeout for connects and commands (seconds)
            client: Pre-built client (tests inject a fake here)
        """
        self.redis_url = redis_url
        self.client = client or aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        self._incr_with_window = self.client.register_script(
            self._INCR_WITH_WINDOW_SCRIPT
        )

    @staticmethod
    def _wrap(operation: str, error: RedisError) -> StoreError:
        logger.error(f"Redis {operation} failed: {type(error).__name__}")
        return StoreError(
            f"Key-value store {operation} failed: {error}",
            operation=operation,
            original_error=error,
        )

    async def get(self, key: str) -> Any | None:
        try:
            return await self.client.get(key)
        except RedisError as e:
            raise self._wrap("get", e) from e

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        try:
            await self.client.set(key, str(value), ex=ttl)
        except RedisError as e:
            raise self._wrap("set", e) from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.client.delete(key))
        except RedisError as e:
            raise self._wrap("delete", e) from e

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.client.exists(key))
        except RedisError as e:
            raise self._wrap("exists", e) from e

    async def incr(self, key: str, ttl: int) -> int:
        try:
            return int(await self._incr_with_window(keys=[key], args=[int(ttl)]))
        except RedisError as e:
            raise self._wrap("incr", e) from e

    async def ttl(self, key: str) -> int | None:
        try:
            remaining = await self.client.ttl(key)
        except RedisError as e:
            raise self._wrap("ttl", e) from e
        # -2: missing key, -1: no expiry
        if remaining is None or remaining < 0:
            return None
        return int(remaining)

    async def clear(self) -> None:
        try:
            await self.client.flushdb()
        except RedisError as e:
            raise self._wrap("clear", e) from e

    async def close(self) -> None:
        await self.client.aclose()
