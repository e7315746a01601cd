"""Authentication components for shopauth."""

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

__all__ = [
    "Account",
    "AccountSummary",
    "AdminService",
    "AuthResult",
    "AuthService",
    "PasswordHasher",
    "Principal",
    "RateLimitConfig",
    "RateLimiter",
    "Roles",
    "TokenBlacklist",
    "TokenPair",
    "TokenSigner",
]
