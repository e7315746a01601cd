"""Rate limiting for sensitive authentication operations.

Counters live in the shared key-value store so every service instance sees
the same totals. Checking and counting are one atomic increment: there is
no separate "is limited" read followed by a "register attempt" write.
"""

import logging
from dataclasses import dataclass

from shopauth.cache.base import CacheBackend
from shopauth.core.exceptions import RateLimitError
from shopauth.core.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for a rate limit rule.

    Attributes:
        requests: Maximum number of requests allowed in the window
        window_seconds: Fixed window length in seconds
        message: Message raised when the limit is exceeded
    """

    requests: int
    window_seconds: int
    message: str = "Too many requests. Try again later"


def limits_from_settings(settings: Settings) -> dict[str, RateLimitConfig]:
    """Build the named rules from settings."""
    return {
        "login": RateLimitConfig(
            requests=settings.login_max_attempts,
            window_seconds=settings.login_window_minutes * 60,
            message="Too many login attempts. Try again later",
        ),
        "register": RateLimitConfig(
            requests=settings.register_max_attempts,
            window_seconds=settings.register_window_minutes * 60,
            message="Too many registration attempts. Try again later",
        ),
        "password_reset": RateLimitConfig(
            requests=settings.password_reset_max_attempts,
            window_seconds=settings.password_reset_window_minutes * 60,
            message="Too many reset requests. Try again later",
        ),
        "forgot_password": RateLimitConfig(
            requests=settings.forgot_password_max_attempts,
            window_seconds=settings.forgot_password_window_minutes * 60,
            message="Too many password reset emails requested. Try again later",
        ),
        "two_factor": RateLimitConfig(
            requests=settings.two_factor_max_attempts,
            window_seconds=settings.two_factor_window_minutes * 60,
            message="Too many two-factor attempts. Try again later",
        ),
    }


class RateLimiter:
    """Fixed-window rate limiter over a ``CacheBackend``.

    The window starts at the first counted attempt and the counter key
    simply expires when it ends.
    """

    DEFAULT_LIMITS = {
        "login": RateLimitConfig(requests=5, window_seconds=15 * 60),
        "register": RateLimitConfig(requests=3, window_seconds=3600),
        "password_reset": RateLimitConfig(requests=3, window_seconds=3600),
        "forgot_password": RateLimitConfig(requests=3, window_seconds=3600),
        "two_factor": RateLimitConfig(requests=5, window_seconds=300),
    }

    def __init__(
        self,
        cache: CacheBackend,
        limits: dict[str, RateLimitConfig] | None = None,
    ):
        """Initialize the rate limiter.

        Args:
            cache: The shared key-value store
            limits: Custom rule configurations merged over the defaults
        """
        self.cache = cache
        self.limits = {**self.DEFAULT_LIMITS, **(limits or {})}

    async def check_and_increment(self, key: str, limit: int, window: int) -> bool:
        """Count an attempt and report whether it is over the limit.

        Args:
            key: The counter key
            limit: Attempts allowed per window
            window: Window length in seconds

        Returns:
            True when the post-increment count exceeds ``limit``
        """
        count = await self.cache.incr(key, window)
        return count > limit

    async def is_limited(self, key: str, limit: int) -> bool:
        """Check-only read; does not count an attempt.

        Args:
            key: The counter key
            limit: Attempts allowed per window

        Returns:
            True when the counter has already reached ``limit``
        """
        value = await self.cache.get(key)
        if value is None:
            return False
        return int(value) >= limit

    async def reset(self, key: str) -> None:
        """Delete a counter immediately.

        Args:
            key: The counter key to reset
        """
        await self.cache.delete(key)

    async def retry_after(self, key: str) -> int | None:
        """Seconds until the current window for ``key`` ends."""
        return await self.cache.ttl(key)

    async def hit(self, operation: str, key: str) -> None:
        """Count an attempt against a named rule.

        Args:
            operation: Rule name (e.g., "login")
            key: The counter key

        Raises:
            RateLimitError: If the attempt exceeds the rule's limit
        """
        config = self.limits[operation]
        if await self.check_and_increment(key, config.requests, config.window_seconds):
            retry_after = await self.retry_after(key) or config.window_seconds
            logger.warning(f"Rate limit exceeded for {operation}")
            raise RateLimitError(config.message, retry_after=retry_after)
