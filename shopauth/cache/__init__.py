"""Fast key-value store for shopauth.

This module provides the shared store behind rate limiting and the
token blacklist: an in-memory backend for single-process use and tests,
and a Redis backend for multi-instance deployments.
"""

from shopauth.cache.base import CacheBackend
from shopauth.cache.memory import InMemoryCache
from shopauth.cache.keys import CacheKeyBuilder
from shopauth.cache.redis_cache import RedisCache

__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "CacheKeyBuilder",
    "RedisCache",
]
