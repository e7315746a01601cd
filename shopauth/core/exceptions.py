"""Custom exceptions for shopauth.

This module provides the typed failure hierarchy raised by the
authentication core. Each exception carries a stable error code and an
HTTP-equivalent status so the boundary layer can map it to a response
without inspecting messages.
"""

from datetime import datetime


class ShopAuthError(Exception):
    """Base exception for all shopauth errors.

    All shopauth exceptions inherit from this class, making it easy
    to catch all framework-specific errors.
    """

    code: str = "SERVER_ERROR"
    status_code: int = 500

    def __init__(self, message: str, hint: str | None = None):
        """Initialize the exception.

        Args:
            message: The error message
            hint: Optional hint for resolving the error
        """
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message

    def to_dict(self) -> dict:
        """Structured ``{code, message}`` pair for the boundary layer."""
        return {"code": self.code, "message": self.message}


class ValidationError(ShopAuthError):
    """Raised when input is malformed or a password is too weak."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
    ):
        """Initialize the validation error.

        Args:
            message: The error message
            field: The field that failed validation (never its value)
        """
        self.field = field

        hint = None
        if field:
            hint = f"Check the value for field '{field}'."

        super().__init__(message, hint)


class ConflictError(ShopAuthError):
    """Raised when an account with the same email already exists."""

    code = "USER_EXISTS"
    status_code = 409


class UnauthorizedError(ShopAuthError):
    """Raised for bad credentials, bad or expired tokens and lockouts."""

    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Invalid credentials"):
        hint = None
        if "token" in message.lower():
            hint = "Obtain a new token by logging in again."
        super().__init__(message, hint)


class AccountLockedError(UnauthorizedError):
    """Raised when login is attempted during an active lockout."""

    code = "ACCOUNT_LOCKED"

    def __init__(self, locked_until: datetime):
        """Initialize the lockout error.

        Args:
            locked_until: When the lockout expires
        """
        self.locked_until = locked_until
        super().__init__(f"Account is locked until {locked_until.isoformat()}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["locked_until"] = self.locked_until.isoformat()
        return data


class ForbiddenError(ShopAuthError):
    """Raised for banned accounts and unconfirmed emails."""

    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(ShopAuthError):
    """Raised by administrative operations on a missing account."""

    code = "NOT_FOUND"
    status_code = 404


class RateLimitError(ShopAuthError):
    """Raised when rate limit is exceeded."""

    code = "TOO_MANY_REQUESTS"
    status_code = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
    ):
        """Initialize the rate limit error.

        Args:
            message: The error message
            retry_after: Seconds until the rate limit resets
        """
        self.retry_after = retry_after

        if retry_after:
            hint = f"Try again in {retry_after} seconds."
        else:
            hint = "Please wait before making more requests."

        super().__init__(message, hint)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.retry_after:
            data["retry_after"] = self.retry_after
        return data


class InternalError(ShopAuthError):
    """Raised when a lower layer (store, crypto) fails unexpectedly."""

    code = "SERVER_ERROR"
    status_code = 500


class StoreError(InternalError):
    """Raised when the credential store or KV store is unavailable."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        original_error: Exception | None = None,
    ):
        """Initialize the store error.

        Args:
            message: The error message
            operation: The store operation that failed (e.g., 'get_object')
            original_error: The original exception
        """
        self.operation = operation
        self.original_error = original_error

        hint = None
        if "NoSuchBucket" in message:
            hint = "The specified bucket does not exist."
        elif "AccessDenied" in message:
            hint = "Check your IAM permissions for this operation."
        elif "Connection" in message:
            hint = "Check that the store is reachable."

        super().__init__(message, hint)


class ConcurrentUpdateError(StoreError):
    """Raised when a conditional account update loses to another writer."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(
            f"Account {account_id} was modified concurrently",
            operation="update",
        )


class DuplicateAccountError(StoreError):
    """Raised by a store when the normalized email is already taken."""

    def __init__(self, message: str = "An account with this email already exists"):
        super().__init__(message, operation="create")


class MalformedTokenError(ShopAuthError):
    """Raised when a token cannot be parsed at all."""

    code = "MALFORMED_TOKEN"
    status_code = 400


class ConfigurationError(ShopAuthError):
    """Raised when shopauth configuration is invalid."""

    def __init__(
        self,
        message: str | None = None,
        missing_fields: list[str] | None = None,
    ):
        """Initialize the configuration error.

        Args:
            message: Custom error message
            missing_fields: List of missing configuration fields
        """
        self.missing_fields = missing_fields or []

        if missing_fields:
            fields_str = ", ".join(missing_fields)
            message = f"Missing required configuration: {fields_str}"
            hint = "Set these as SHOPAUTH_* environment variables or in your .env file."
        else:
            hint = "Check your shopauth configuration."

        super().__init__(message or "Invalid shopauth configuration", hint)


class NotificationError(ShopAuthError):
    """Raised by a notification sender when a message cannot be delivered.

    The orchestrator catches this and logs it; delivery failures never fail
    an auth flow.
    """

    code = "NOTIFICATION_FAILED"
    status_code = 502
