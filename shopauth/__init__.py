"""shopauth: authentication and session lifecycle core for shop services."""

__version__ = "0.1.0"

# Core components
from shopauth.core.exceptions import (
    AccountLockedError,
    ConcurrentUpdateError,
    ConfigurationError,
    ConflictError,
    DuplicateAccountError,
    ForbiddenError,
    InternalError,
    MalformedTokenError,
    NotFoundError,
    NotificationError,
    RateLimitError,
    ShopAuthError,
    StoreError,
    UnauthorizedError,
    ValidationError,
)
from shopauth.core.settings import Settings, get_settings

# Auth components
from shopauth.auth.admin import AdminService
from shopauth.auth.blacklist import TokenBlacklist
from shopauth.auth.models import (
    Account,
    AccountSummary,
    AuthResult,
    Principal,
    Roles,
    TokenPair,
)
from shopauth.auth.passwords import PasswordHasher
from shopauth.auth.rate_limit import RateLimitConfig, RateLimiter
from shopauth.auth.service import AuthService
from shopauth.auth.tokens import TokenSigner

# Cache components
from shopauth.cache import CacheBackend, CacheKeyBuilder, InMemoryCache, RedisCache

# Store components
from shopauth.store import AccountStore, InMemoryAccountStore, S3AccountStore

# Notifications
from shopauth.notifications import (
    LoggingNotificationSender,
    NotificationSender,
    SmtpNotificationSender,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Settings",
    "get_settings",
    "ShopAuthError",
    "ValidationError",
    "ConflictError",
    "UnauthorizedError",
    "AccountLockedError",
    "ForbiddenError",
    "NotFoundError",
    "RateLimitError",
    "InternalError",
    "StoreError",
    "ConcurrentUpdateError",
    "DuplicateAccountError",
    "MalformedTokenError",
    "NotificationError",
    "ConfigurationError",
    # Auth
    "Account",
    "AccountSummary",
    "AuthResult",
    "Principal",
    "Roles",
    "TokenPair",
    "AuthService",
    "AdminService",
    "PasswordHasher",
    "TokenSigner",
    "RateLimiter",
    "RateLimitConfig",
    "TokenBlacklist",
    # Cache
    "CacheBackend",
    "InMemoryCache",
    "RedisCache",
    "CacheKeyBuilder",
    # Store
    "AccountStore",
    "InMemoryAccountStore",
    "S3AccountStore",
    # Notifications
    "NotificationSender",
    "LoggingNotificationSender",
    "SmtpNotificationSender",
]
