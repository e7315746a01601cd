"""Administrative account operations."""

import asyncio
import logging
import uuid

from shopauth.auth.models import Account, AccountSummary, Roles
from shopauth.core.exceptions import NotFoundError, ValidationError
from shopauth.store.base import AccountStore

logger = logging.getLogger(__name__)


class AdminService:
    """Account management for administrators.

    Every operation takes an account ID and raises ``NotFoundError`` when no
    such account exists.
    """

    def __init__(self, store: AccountStore):
        self.store = store

    async def _get(self, account_id: uuid.UUID) -> Account:
        account = await self.store.get_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    async def _save(self, account: Account) -> Account:
        return await asyncio.shield(self.store.update(account))

    async def list_accounts(self) -> list[AccountSummary]:
        """List all accounts without secrets, oldest first."""
        accounts = await self.store.list_accounts()
        accounts.sort(key=lambda a: a.created_at)
        return [AccountSummary.from_account(a) for a in accounts]

    async def get_account(self, account_id: uuid.UUID) -> AccountSummary:
        return AccountSummary.from_account(await self._get(account_id))

    async def ban(self, account_id: uuid.UUID) -> AccountSummary:
        """Ban an account and end its current session.

        Access tokens already issued stay valid until they expire; callers
        that need instant revocation should also blacklist them.
        """
        account = await self._get(account_id)
        account.is_banned = True
        account.clear_session()
        account = await self._save(account)
        logger.warning(f"Account {account_id} banned")
        return AccountSummary.from_account(account)

    async def unban(self, account_id: uuid.UUID) -> AccountSummary:
        account = await self._get(account_id)
        account.is_banned = False
        account = await self._save(account)
        logger.info(f"Account {account_id} unbanned")
        return AccountSummary.from_account(account)

    async def change_role(self, account_id: uuid.UUID, role: str) -> AccountSummary:
        """Change an account's role.

        Raises:
            ValidationError: If ``role`` is not one of the fixed roles
            NotFoundError: If the account does not exist
        """
        if role not in Roles.ALL:
            raise ValidationError(
                f"Unknown role '{role}'. Expected one of: {', '.join(sorted(Roles.ALL))}",
                field="role",
            )
        account = await self._get(account_id)
        account.role = role
        account = await self._save(account)
        logger.info(f"Account {account_id} role changed to {role}")
        return AccountSummary.from_account(account)

    async def confirm_email(self, account_id: uuid.UUID) -> AccountSummary:
        account = await self._get(account_id)
        account.email_confirmed = True
        account.email_confirmation_token = None
        account = await self._save(account)
        return AccountSummary.from_account(account)

    async def delete_account(self, account_id: uuid.UUID) -> None:
        if not await self.store.delete(account_id):
            raise NotFoundError(f"Account {account_id} not found")
        logger.warning(f"Account {account_id} deleted")
