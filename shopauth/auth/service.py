"""Authentication service for shopauth.

``AuthService`` composes the password hasher, token signer, rate limiter,
token blacklist, credential store and notification sender into the
register / login / refresh / logout / reset / two-factor flows.

Every account write is a conditional update on ``Account.version``. Writes
go through ``_apply``, which re-reads the account and re-applies the change
when another request wrote first; the change itself re-checks whatever
precondition it depends on (e.g., that the refresh token is still current),
so a lost race surfaces as a typed failure rather than a divergent state.
"""

import asyncio
import hmac
import logging
import secrets
import uuid
from datetime import timedelta
from typing import Awaitable, Callable

from shopauth.auth.blacklist import ACCESS, TokenBlacklist
from shopauth.auth.models import (
    Account,
    AuthResult,
    Principal,
    TokenPair,
    normalize_email,
    parse_email,
    utcnow,
)
from shopauth.auth.passwords import PasswordHasher
from shopauth.auth.rate_limit import RateLimiter, limits_from_settings
from shopauth.auth.tokens import TokenSigner
from shopauth.cache.base import CacheBackend
from shopauth.cache.keys import CacheKeyBuilder
from shopauth.core.exceptions import (
    AccountLockedError,
    ConcurrentUpdateError,
    ConflictError,
    DuplicateAccountError,
    ForbiddenError,
    MalformedTokenError,
    NotFoundError,
    NotificationError,
    UnauthorizedError,
    ValidationError,
)
from shopauth.core.settings import Settings
from shopauth.notifications import (
    LoggingNotificationSender,
    NotificationSender,
    redact_email,
)
from shopauth.store.base import AccountStore

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
FORGOT_PASSWORD_MESSAGE = "If an account with this email exists, a reset link has been sent"
REGISTERED_MESSAGE = "Registration successful. Please check your email to confirm your account"
TWO_FACTOR_PENDING_MESSAGE = "A verification code has been sent to your email"

# Attempts for a conditional write before giving up
UPDATE_RETRIES = 3


class AuthService:
    """Session and credential lifecycle orchestrator.

    The service holds no in-process lock: all coordination between
    concurrent requests (and between service instances) goes through the
    credential store's conditional updates and the key-value store's atomic
    counters.
    """

    def __init__(
        self,
        settings: Settings,
        store: AccountStore,
        cache: CacheBackend,
        notifier: NotificationSender | None = None,
        *,
        hasher: PasswordHasher | None = None,
        signer: TokenSigner | None = None,
        limiter: RateLimiter | None = None,
        blacklist: TokenBlacklist | None = None,
        key_builder: CacheKeyBuilder | None = None,
    ):
        """Initialize the auth service.

        Args:
            settings: Immutable shopauth settings
            store: Credential store
            cache: Shared key-value store for rate limits and the blacklist
            notifier: Notification sender (defaults to logging only)
            hasher: Password hasher (defaults to bcrypt at settings rounds)
            signer: Token signer (defaults to one built from settings)
            limiter: Rate limiter (defaults to the settings-driven rules)
            blacklist: Token blacklist over ``cache``
            key_builder: Key builder (defaults to the settings key prefix)
        """
        self.settings = settings
        self.store = store
        self.cache = cache
        self.notifier = notifier or LoggingNotificationSender()
        self.keys = key_builder or CacheKeyBuilder(settings.key_prefix)
        self.hasher = hasher or PasswordHasher(rounds=settings.bcrypt_rounds)
        self.signer = signer or TokenSigner(settings)
        self.limiter = limiter or RateLimiter(cache, limits_from_settings(settings))
        self.blacklist = blacklist or TokenBlacklist(cache, self.keys)

    # ===== Internal helpers =====

    async def _save(self, account: Account) -> Account:
        # A started write runs to completion even if the caller is cancelled
        return await asyncio.shield(self.store.update(account))

    async def _apply(
        self,
        account: Account,
        change: Callable[[Account], None],
        retries: int = UPDATE_RETRIES,
    ) -> Account:
        """Apply ``change`` and persist it, re-reading on version conflicts.

        Args:
            account: The account as last read
            change: Mutates the account in place; may raise to abort
            retries: Maximum number of write attempts

        Returns:
            The stored account

        Raises:
            ConcurrentUpdateError: If every attempt lost to another writer
            UnauthorizedError: If the account disappeared meanwhile
        """
        for attempt in range(1, retries + 1):
            change(account)
            try:
                return await self._save(account)
            except ConcurrentUpdateError:
                if attempt == retries:
                    logger.error(f"Giving up on account {account.id} after {retries} conflicting writes")
                    raise
                logger.info(f"Account {account.id} changed concurrently, retrying ({attempt}/{retries})")
                fresh = await self.store.get_by_id(account.id)
                if fresh is None:
                    raise UnauthorizedError(INVALID_CREDENTIALS)
                account = fresh
        raise ConcurrentUpdateError(str(account.id))

    async def _notify(
        self,
        send: Callable[[str, str], Awaitable[None]],
        email: str,
        secret: str,
    ) -> None:
        try:
            await send(email, secret)
        except NotificationError as e:
            logger.error(f"Notification to {redact_email(email)} failed: {e.message}")
        except Exception:
            # Delivery never decides the outcome of the auth flow
            logger.exception(f"Notification sender crashed for {redact_email(email)}")

    def _attach_session(self, account: Account, tokens: TokenPair) -> None:
        account.refresh_token_hash = self.signer.hash_refresh_token(tokens.refresh_token)
        account.refresh_token_expiry = utcnow() + timedelta(
            days=self.settings.refresh_token_expire_days
        )

    def _check_password_strength(self, password: str) -> None:
        is_valid, message = self.hasher.check_strength(password)
        if not is_valid:
            raise ValidationError(message, field="password")

    def _record_failure(self, account: Account) -> None:
        now = utcnow()
        if account.lockout_until is not None and not account.is_locked(now):
            # The previous lockout has elapsed; start counting afresh
            account.failed_login_attempts = 0
            account.lockout_until = None
        account.failed_login_attempts += 1
        account.last_failed_login_at = now
        if (
            account.failed_login_attempts >= self.settings.lockout_threshold
            and not account.is_locked(now)
        ):
            account.lockout_until = now + timedelta(minutes=self.settings.lockout_minutes)
            logger.warning(
                f"Account {account.id} locked after {account.failed_login_attempts} failed logins"
            )

    # ===== Registration and confirmation =====

    async def register(
        self,
        email: str,
        password: str,
        origin_ip: str | None = None,
    ) -> AuthResult:
        """Register a new, unconfirmed account.

        No tokens are issued; the account must confirm its email first.

        Args:
            email: The email to register (normalized before use)
            password: The plain text password
            origin_ip: Caller address for the registration rate limit. Calls
                without one share a single "unknown" bucket.

        Returns:
            A result carrying a confirmation-pending message

        Raises:
            RateLimitError: If the origin registered too often
            ConflictError: If the email is already registered
            ValidationError: If the email is malformed or the password weak
        """
        email = parse_email(email)
        await self.limiter.hit("register", self.keys.register_key(origin_ip))

        if await self.store.get_by_email(email) is not None:
            raise ConflictError("An account with this email already exists")
        self._check_password_strength(password)

        account = Account(
            email=email,
            password_hash=self.hasher.hash(password),
            email_confirmation_token=secrets.token_urlsafe(32),
        )
        try:
            account = await asyncio.shield(self.store.create(account))
        except DuplicateAccountError as e:
            raise ConflictError("An account with this email already exists") from e

        logger.info(f"Registered account {account.id} for {redact_email(email)}")
        await self._notify(
            self.notifier.send_confirmation, account.email, account.email_confirmation_token
        )
        return AuthResult(
            message=REGISTERED_MESSAGE,
            account_id=account.id,
            role=account.role,
        )

    async def verify_email(self, token: str) -> AuthResult:
        """Confirm an email address with its single-use token.

        Raises:
            UnauthorizedError: If the token is unknown or already used
        """
        account = await self.store.get_by_confirmation_token(token) if token else None
        if account is None:
            raise UnauthorizedError("Invalid or expired confirmation token")

        def confirm(acc: Account) -> None:
            if acc.email_confirmation_token != token:
                raise UnauthorizedError("Invalid or expired confirmation token")
            acc.email_confirmed = True
            acc.email_confirmation_token = None

        account = await self._apply(account, confirm)
        logger.info(f"Email confirmed for account {account.id}")
        return AuthResult(message="Email confirmed", account_id=account.id, role=account.role)

    # ===== Login =====

    async def login(
        self,
        email: str,
        password: str,
        origin_ip: str | None = None,
    ) -> AuthResult:
        """Authenticate with email and password.

        Args:
            email: The account email
            password: The plain text password
            origin_ip: Caller address (part of the rate-limit key)

        Returns:
            Tokens and role, or a two-factor pending result without tokens

        Raises:
            ForbiddenError: If the account is banned or its email unconfirmed
            RateLimitError: If too many attempts came from this email and origin
            UnauthorizedError: On bad credentials
            AccountLockedError: If the account is locked out
            ValidationError: If the email is malformed
        """
        email = parse_email(email)
        account = await self.store.get_by_email(email)

        if account is not None and account.is_banned:
            logger.warning(f"Login attempt on banned account {account.id}")
            raise ForbiddenError("Account is banned")

        limit_key = self.keys.login_key(email, origin_ip)
        await self.limiter.hit("login", limit_key)

        if account is None:
            self.hasher.dummy_verify(password)
            logger.info(f"Failed login for unknown email {redact_email(email)}")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not self.hasher.verify(password, account.password_hash):
            await self._apply(account, self._record_failure)
            logger.info(f"Failed login for account {account.id}")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if account.is_locked():
            raise AccountLockedError(account.lockout_until)

        now = utcnow()

        def succeed(acc: Account) -> None:
            acc.failed_login_attempts = 0
            acc.lockout_until = None
            acc.last_login_at = now
            acc.last_login_ip = origin_ip

        if not account.email_confirmed:
            await self._apply(account, succeed)
            raise ForbiddenError("Email address has not been confirmed")

        if account.two_factor_enabled:
            code = str(secrets.randbelow(900000) + 100000)
            expiry = now + timedelta(minutes=self.settings.two_factor_code_minutes)

            def start_two_factor(acc: Account) -> None:
                succeed(acc)
                acc.two_factor_code = code
                acc.two_factor_code_expiry = expiry

            account = await self._apply(account, start_two_factor)
            await self._notify(self.notifier.send_two_factor_code, account.email, code)
            logger.info(f"Two-factor code issued for account {account.id}")
            return AuthResult(
                message=TWO_FACTOR_PENDING_MESSAGE,
                account_id=account.id,
                requires_two_factor=True,
            )

        tokens = self.signer.issue_token_pair(account)

        def start_session(acc: Account) -> None:
            succeed(acc)
            self._attach_session(acc, tokens)

        account = await self._apply(account, start_session)
        await self.limiter.reset(limit_key)
        logger.info(f"Account {account.id} logged in")
        return AuthResult.from_tokens(tokens, account, message="Login successful")

    async def confirm_two_factor(
        self,
        email: str,
        code: str,
        origin_ip: str | None = None,
    ) -> AuthResult:
        """Complete a two-factor login with the emailed code.

        Raises:
            RateLimitError: If too many codes were tried
            UnauthorizedError: If the code does not match or has expired
            ForbiddenError: If the account was banned meanwhile
        """
        email = normalize_email(email or "")
        await self.limiter.hit("two_factor", self.keys.two_factor_key(email, origin_ip))

        account = await self.store.get_by_email(email) if email else None

        def code_matches(acc: Account) -> bool:
            if not acc.two_factor_code or acc.two_factor_code_expiry is None:
                return False
            if acc.two_factor_code_expiry <= utcnow():
                return False
            return hmac.compare_digest(
                acc.two_factor_code.encode("utf-8"), (code or "").encode("utf-8")
            )

        if account is None or not code_matches(account):
            raise UnauthorizedError("Invalid or expired two-factor code")
        if account.is_banned:
            raise ForbiddenError("Account is banned")

        tokens = self.signer.issue_token_pair(account)

        def finish(acc: Account) -> None:
            if not code_matches(acc):
                raise UnauthorizedError("Invalid or expired two-factor code")
            acc.two_factor_code = None
            acc.two_factor_code_expiry = None
            self._attach_session(acc, tokens)

        account = await self._apply(account, finish)
        await self.limiter.reset(self.keys.login_key(email, origin_ip))
        await self.limiter.reset(self.keys.two_factor_key(email, origin_ip))
        logger.info(f"Two-factor login completed for account {account.id}")
        return AuthResult.from_tokens(tokens, account, message="Login successful")

    # ===== Sessions =====

    async def refresh_token(self, refresh_token: str) -> AuthResult:
        """Exchange a refresh token for a new token pair (rotation).

        The presented token becomes unusable. When two requests rotate the
        same token concurrently, exactly one succeeds.

        Raises:
            UnauthorizedError: If the token is unknown, expired or already used
            ForbiddenError: If the account is banned
        """
        if not refresh_token:
            raise UnauthorizedError("Invalid or expired refresh token")
        token_hash = self.signer.hash_refresh_token(refresh_token)
        account = await self.store.get_by_refresh_token_hash(token_hash)
        if account is None or not account.has_live_session():
            raise UnauthorizedError("Invalid or expired refresh token")
        if account.is_banned:
            raise ForbiddenError("Account is banned")

        tokens = self.signer.issue_token_pair(account)

        def rotate(acc: Account) -> None:
            if acc.refresh_token_hash != token_hash or not acc.has_live_session():
                logger.warning(f"Refresh token for account {acc.id} was already rotated")
                raise UnauthorizedError("Invalid or expired refresh token")
            self._attach_session(acc, tokens)

        account = await self._apply(account, rotate)
        logger.info(f"Rotated refresh token for account {account.id}")
        return AuthResult.from_tokens(tokens, account)

    async def logout(self, refresh_token: str | None, access_token: str | None = None) -> None:
        """End a session.

        Clears the stored refresh token and blacklists the access token for
        its remaining lifetime. A refresh token that matches no session makes
        the whole call a silent no-op, so logging out twice is harmless. With
        no refresh token at all, only the access token is revoked.
        """
        if refresh_token:
            token_hash = self.signer.hash_refresh_token(refresh_token)
            account = await self.store.get_by_refresh_token_hash(token_hash)
            if account is None:
                return

            def revoke(acc: Account) -> None:
                if acc.refresh_token_hash == token_hash:
                    acc.clear_session()

            account = await self._apply(account, revoke)
            logger.info(f"Account {account.id} logged out")

        if access_token:
            try:
                expires_at = self.signer.expiry_of(access_token)
            except MalformedTokenError:
                logger.warning("Logout with an unreadable access token; not blacklisted")
                return
            await self.blacklist.revoke(access_token, ACCESS, expires_at)

    async def authenticate(self, access_token: str) -> Principal:
        """Resolve an access token to a principal.

        Raises:
            UnauthorizedError: If the token is invalid, expired or revoked
        """
        principal = self.signer.validate(access_token)
        if principal is None:
            raise UnauthorizedError("Invalid or expired token")
        if await self.blacklist.is_blacklisted(access_token, ACCESS):
            logger.info(f"Rejected revoked token {principal.token_id}")
            raise UnauthorizedError("Token has been revoked")
        return principal

    # ===== Password reset =====

    async def forgot_password(self, email: str, origin_ip: str | None = None) -> AuthResult:
        """Start a password reset.

        The response is identical whether or not the email is registered.

        Raises:
            RateLimitError: If resets were requested too often
        """
        email = normalize_email(email or "")
        await self.limiter.hit("forgot_password", self.keys.forgot_password_key(email, origin_ip))

        account = await self.store.get_by_email(email) if email else None
        if account is not None and not account.is_banned:
            token = secrets.token_urlsafe(32)
            expiry = utcnow() + timedelta(minutes=self.settings.password_reset_token_minutes)

            def issue(acc: Account) -> None:
                acc.password_reset_token = token
                acc.password_reset_token_expiry = expiry

            account = await self._apply(account, issue)
            await self._notify(self.notifier.send_password_reset, account.email, token)
            logger.info(f"Password reset requested for account {account.id}")

        return AuthResult(message=FORGOT_PASSWORD_MESSAGE)

    async def reset_password(
        self,
        token: str,
        new_password: str,
        origin_ip: str | None = None,
    ) -> AuthResult:
        """Set a new password using a reset token.

        Also clears any lockout and ends the current session.

        Raises:
            RateLimitError: If this token was tried too often from this origin
            UnauthorizedError: If the token is unknown, used or expired
            ValidationError: If the new password is weak
        """
        if not token:
            raise UnauthorizedError("Invalid or expired reset token")
        limit_key = self.keys.reset_key(token, origin_ip)
        await self.limiter.hit("password_reset", limit_key)

        def token_valid(acc: Account) -> bool:
            return (
                acc.password_reset_token == token
                and acc.password_reset_token_expiry is not None
                and acc.password_reset_token_expiry > utcnow()
            )

        account = await self.store.get_by_reset_token(token)
        if account is None or not token_valid(account):
            raise UnauthorizedError("Invalid or expired reset token")
        self._check_password_strength(new_password)
        password_hash = self.hasher.hash(new_password)

        def reset(acc: Account) -> None:
            if not token_valid(acc):
                raise UnauthorizedError("Invalid or expired reset token")
            acc.password_hash = password_hash
            acc.password_reset_token = None
            acc.password_reset_token_expiry = None
            acc.failed_login_attempts = 0
            acc.lockout_until = None
            acc.clear_session()

        account = await self._apply(account, reset)
        await self.limiter.reset(limit_key)
        logger.info(f"Password reset for account {account.id}")
        return AuthResult(message="Password has been reset", account_id=account.id)

    # ===== Federated login =====

    async def handle_external_login(
        self,
        provider: str,
        provider_user_id: str,
        email: str,
        name: str | None = None,
    ) -> AuthResult:
        """Sign in with an identity already verified by an external provider.

        Finds or creates the account by email; new accounts are confirmed
        immediately and have no password.

        Raises:
            ValidationError: If provider details or the email are missing
            ForbiddenError: If the account is banned
        """
        if not provider or not provider_user_id:
            raise ValidationError("External provider and user id are required", field="provider")
        email = parse_email(email)

        account = await self.store.get_by_email(email)
        if account is None:
            try:
                account = await asyncio.shield(
                    self.store.create(
                        Account(
                            email=email,
                            email_confirmed=True,
                            external_provider=provider,
                            external_id=provider_user_id,
                            display_name=name,
                        )
                    )
                )
                logger.info(f"Created account {account.id} from {provider} login")
            except DuplicateAccountError:
                account = await self.store.get_by_email(email)
                if account is None:
                    raise
        if account.is_banned:
            raise ForbiddenError("Account is banned")

        tokens = self.signer.issue_token_pair(account)
        now = utcnow()

        def start_session(acc: Account) -> None:
            if acc.external_provider is None:
                acc.external_provider = provider
                acc.external_id = provider_user_id
            if acc.display_name is None:
                acc.display_name = name
            acc.email_confirmed = True
            acc.email_confirmation_token = None
            acc.last_login_at = now
            self._attach_session(acc, tokens)

        account = await self._apply(account, start_session)
        logger.info(f"Account {account.id} logged in via {provider}")
        return AuthResult.from_tokens(tokens, account, message="Login successful")

    # ===== Two-factor settings =====

    async def _set_two_factor(self, account_id: uuid.UUID, enabled: bool) -> Account:
        account = await self.store.get_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")

        def toggle(acc: Account) -> None:
            acc.two_factor_enabled = enabled
            if not enabled:
                acc.two_factor_code = None
                acc.two_factor_code_expiry = None

        account = await self._apply(account, toggle)
        logger.info(f"Two-factor {'enabled' if enabled else 'disabled'} for account {account.id}")
        return account

    async def enable_two_factor(self, account_id: uuid.UUID) -> Account:
        """Turn on emailed two-factor codes for an account."""
        return await self._set_two_factor(account_id, True)

    async def disable_two_factor(self, account_id: uuid.UUID) -> Account:
        """Turn off two-factor codes and discard any pending code."""
        return await self._set_two_factor(account_id, False)
