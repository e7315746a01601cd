"""Key generation for rate-limit counters and blacklist markers."""

import hashlib


def fingerprint(value: str) -> str:
    """SHA-256 hex digest used to keep raw secrets out of keys."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class CacheKeyBuilder:
    """Utility class for building consistent store keys.

    Keys are ``{prefix}:{operation}:{identity}:{origin}`` for counters and
    ``{prefix}:blacklist:{type}:{fingerprint}`` for blacklist markers.
    Tokens are always fingerprinted before they become part of a key.
    """

    def __init__(self, prefix: str = "shopauth"):
        """Initialize the key builder.

        Args:
            prefix: Global prefix for all keys
        """
        self.prefix = prefix

    def rate_limit_key(self, operation: str, identity: str, origin: str | None = None) -> str:
        """Generate a counter key.

        Args:
            operation: The limited operation (e.g., "login")
            identity: The subject (normalized email, token fingerprint)
            origin: The caller's IP address

        Returns:
            Key like "shopauth:login:a@x.com:10.0.0.1"
        """
        return f"{self.prefix}:{operation}:{identity}:{origin or 'unknown'}"

    def login_key(self, email: str, ip: str | None) -> str:
        return self.rate_limit_key("login", email, ip)

    def register_key(self, ip: str | None) -> str:
        return self.rate_limit_key("register", "any", ip)

    def forgot_password_key(self, email: str, ip: str | None) -> str:
        return self.rate_limit_key("forgot", email, ip)

    def reset_key(self, token: str, ip: str | None) -> str:
        return self.rate_limit_key("reset", fingerprint(token), ip)

    def two_factor_key(self, email: str, ip: str | None) -> str:
        return self.rate_limit_key("2fa", email, ip)

    def blacklist_key(self, token: str, token_type: str) -> str:
        """Generate a blacklist marker key.

        Args:
            token: The raw token
            token_type: The token class (e.g., "access")

        Returns:
            Key like "shopauth:blacklist:access:<sha256>"
        """
        return f"{self.prefix}:blacklist:{token_type}:{fingerprint(token)}"

