"""Token blacklist for immediate access token revocation.

Revoked tokens are remembered in the shared key-value store only for as
long as they would otherwise stay valid, so the blacklist never grows
beyond the set of live tokens.
"""

import logging
import math
from datetime import datetime, timezone

from shopauth.cache.base import CacheBackend
from shopauth.cache.keys import CacheKeyBuilder

logger = logging.getLogger(__name__)

ACCESS = "access"


class TokenBlacklist:
    """Denylist of revoked tokens keyed by ``(token, type)``.

    Tokens are fingerprinted before they are used as keys; the raw token
    is never written to the store.
    """

    def __init__(
        self,
        cache: CacheBackend,
        key_builder: CacheKeyBuilder | None = None,
    ):
        """Initialize the token blacklist.

        Args:
            cache: The shared key-value store
            key_builder: Key builder (defaults to the "shopauth" prefix)
        """
        self.cache = cache
        self.keys = key_builder or CacheKeyBuilder()

    async def add(self, token: str, token_type: str, ttl: int | float) -> bool:
        """Add a token to the blacklist.

        Args:
            token: The raw token
            token_type: The token class (e.g., "access")
            ttl: Seconds the marker should live; ``<= 0`` is a no-op

        Returns:
            True if a marker was written
        """
        if ttl <= 0:
            return False
        await self.cache.set(
            self.keys.blacklist_key(token, token_type),
            "1",
            ttl=max(1, math.ceil(ttl)),
        )
        logger.info(f"Blacklisted {token_type} token for {math.ceil(ttl)}s")
        return True

    async def revoke(self, token: str, token_type: str, expires_at: datetime) -> bool:
        """Blacklist a token until its natural expiry.

        Args:
            token: The raw token
            token_type: The token class
            expires_at: When the token expires on its own

        Returns:
            True if a marker was written (False for already-expired tokens)
        """
        ttl = (expires_at - datetime.now(timezone.utc)).total_seconds()
        return await self.add(token, token_type, ttl)

    async def is_blacklisted(self, token: str, token_type: str = ACCESS) -> bool:
        """Check if a token is blacklisted.

        Args:
            token: The raw token
            token_type: The token class

        Returns:
            True if the token is blacklisted, False otherwise
        """
        return await self.cache.exists(self.keys.blacklist_key(token, token_type))
