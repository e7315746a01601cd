"""Authentication models for shopauth."""

import uuid
from datetime import datetime, timezone
from typing import ClassVar, Literal

from pydantic import BaseModel, EmailStr, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from shopauth.core.exceptions import ValidationError


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    """Normalize an email for storage and lookup."""
    return email.strip().lower()


_EMAIL = TypeAdapter(EmailStr)


def parse_email(email: str | None) -> str:
    """Validate a caller-supplied email and return its normalized form.

    Raises:
        ValidationError: The address is malformed. Control characters such
            as CR/LF are rejected here, before the address can reach a
            mail header.
    """
    try:
        return normalize_email(_EMAIL.validate_python(email or ""))
    except PydanticValidationError as e:
        raise ValidationError("A valid email address is required", field="email") from e


class Roles:
    """Fixed role constants. Roles are flat strings, not a policy engine."""

    CLIENT: ClassVar[str] = "Client"
    ADMIN: ClassVar[str] = "Admin"
    ALL: ClassVar[frozenset[str]] = frozenset({"Client", "Admin"})


RoleName = Literal["Client", "Admin"]


class Account(BaseModel):
    """One registered identity.

    Accounts are persisted by an ``AccountStore`` and mutated by every
    auth-relevant action. ``version`` is the optimistic concurrency token:
    a store only accepts an update whose version matches the stored one.

    Security: ``password_hash``, ``refresh_token_hash`` and the single-use
    tokens must never be logged or returned to clients.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    email: EmailStr
    password_hash: str | None = None
    role: RoleName = Roles.CLIENT

    refresh_token_hash: str | None = None
    refresh_token_expiry: datetime | None = None

    email_confirmed: bool = False
    email_confirmation_token: str | None = None

    password_reset_token: str | None = None
    password_reset_token_expiry: datetime | None = None

    two_factor_enabled: bool = False
    two_factor_code: str | None = None
    two_factor_code_expiry: datetime | None = None

    failed_login_attempts: int = 0
    last_failed_login_at: datetime | None = None
    lockout_until: datetime | None = None

    last_login_at: datetime | None = None
    last_login_ip: str | None = None

    is_banned: bool = False

    # Federated identity (external provider logins)
    external_provider: str | None = None
    external_id: str | None = None
    display_name: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 0

    def is_locked(self, now: datetime | None = None) -> bool:
        """Check whether a lockout is currently in force."""
        if self.lockout_until is None:
            return False
        return self.lockout_until > (now or utcnow())

    def has_live_session(self, now: datetime | None = None) -> bool:
        """Check whether the stored refresh token is still usable."""
        if self.refresh_token_hash is None or self.refresh_token_expiry is None:
            return False
        return self.refresh_token_expiry > (now or utcnow())

    def clear_session(self) -> None:
        """Drop the refresh-token fingerprint (immediate revocation)."""
        self.refresh_token_hash = None
        self.refresh_token_expiry = None


class AccountSummary(BaseModel):
    """Admin-facing projection of an account without secrets."""

    id: uuid.UUID
    email: str
    role: str
    is_banned: bool
    email_confirmed: bool
    two_factor_enabled: bool
    lockout_until: datetime | None = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountSummary":
        return cls(
            id=account.id,
            email=account.email,
            role=account.role,
            is_banned=account.is_banned,
            email_confirmed=account.email_confirmed,
            two_factor_enabled=account.two_factor_enabled,
            lockout_until=account.lockout_until,
        )


class Principal(BaseModel):
    """Identity proven by a validated access token."""

    account_id: uuid.UUID
    email: str
    role: str
    token_id: str
    issued_at: datetime
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == Roles.ADMIN


class TokenPair(BaseModel):
    """Access and refresh tokens issued together."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthResult(BaseModel):
    """Outcome of an auth flow.

    Token fields are only populated when a session was issued; pending
    states (email confirmation, two-factor) carry a message instead.
    """

    message: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None
    role: str | None = None
    account_id: uuid.UUID | None = None
    requires_two_factor: bool = False

    @classmethod
    def from_tokens(
        cls,
        tokens: TokenPair,
        account: Account,
        message: str | None = None,
    ) -> "AuthResult":
        return cls(
            message=message,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            role=account.role,
            account_id=account.id,
        )

    @property
    def has_tokens(self) -> bool:
        return self.access_token is not None
