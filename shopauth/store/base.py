"""Credential store interface."""

import uuid
from abc import ABC, abstractmethod

from shopauth.auth.models import Account


class AccountStore(ABC):
    """Persistent record of accounts.

    Implementations must enforce email uniqueness themselves (two
    concurrent registrations with the same email cannot both succeed) and
    must implement ``update`` as a conditional write on ``Account.version``.
    Returned accounts are copies; mutating them has no effect until they
    are passed back to ``update``.
    """

    @abstractmethod
    async def create(self, account: Account) -> Account:
        """Persist a new account.

        Args:
            account: The account to store (email already normalized)

        Returns:
            The stored account

        Raises:
            DuplicateAccountError: If the email is already taken
        """

    @abstractmethod
    async def get_by_id(self, account_id: uuid.UUID) -> Account | None:
        """Get an account by ID."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Account | None:
        """Get an account by normalized email."""

    @abstractmethod
    async def get_by_refresh_token_hash(self, token_hash: str) -> Account | None:
        """Get the account whose current refresh-token fingerprint matches."""

    @abstractmethod
    async def get_by_reset_token(self, token: str) -> Account | None:
        """Get the account holding a password reset token (expired or not)."""

    @abstractmethod
    async def get_by_confirmation_token(self, token: str) -> Account | None:
        """Get the account holding an email confirmation token."""

    @abstractmethod
    async def update(self, account: Account) -> Account:
        """Write an account if nobody else has written it since it was read.

        Args:
            account: The modified account carrying the version it was read at

        Returns:
            The stored account with its version incremented

        Raises:
            ConcurrentUpdateError: If the stored version differs
            NotFoundError: If the account no longer exists
        """

    @abstractmethod
    async def delete(self, account_id: uuid.UUID) -> bool:
        """Delete an account.

        Returns:
            True if the account existed
        """

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """List every stored account."""
