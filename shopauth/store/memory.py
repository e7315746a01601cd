"""In-memory credential store for single-process use and tests."""

import asyncio
import uuid
from typing import Callable

from shopauth.auth.models import Account, normalize_email, utcnow
from shopauth.core.exceptions import (
    ConcurrentUpdateError,
    DuplicateAccountError,
    NotFoundError,
)
from shopauth.store.base import AccountStore


class InMemoryAccountStore(AccountStore):
    """Dict-backed ``AccountStore``.

    One asyncio lock serializes writes, so the version check in ``update``
    and the uniqueness check in ``create`` are atomic within the process.
    """

    def __init__(self):
        self._accounts: dict[uuid.UUID, Account] = {}
        self._lock = asyncio.Lock()

    def _find(self, predicate: Callable[[Account], bool]) -> Account | None:
        for account in self._accounts.values():
            if predicate(account):
                return account.model_copy(deep=True)
        return None

    async def create(self, account: Account) -> Account:
        async with self._lock:
            email = normalize_email(account.email)
            if any(a.email == email for a in self._accounts.values()):
                raise DuplicateAccountError()
            stored = account.model_copy(deep=True, update={"email": email, "version": 1})
            self._accounts[stored.id] = stored
            return stored.model_copy(deep=True)

    async def get_by_id(self, account_id: uuid.UUID) -> Account | None:
        account = self._accounts.get(account_id)
        return account.model_copy(deep=True) if account else None

    async def get_by_email(self, email: str) -> Account | None:
        email = normalize_email(email)
        return self._find(lambda a: a.email == email)

    async def get_by_refresh_token_hash(self, token_hash: str) -> Account | None:
        if not token_hash:
            return None
        return self._find(lambda a: a.refresh_token_hash == token_hash)

    async def get_by_reset_token(self, token: str) -> Account | None:
        if not token:
            return None
        return self._find(lambda a: a.password_reset_token == token)

    async def get_by_confirmation_token(self, token: str) -> Account | None:
        if not token:
            return None
        return self._find(lambda a: a.email_confirmation_token == token)

    async def update(self, account: Account) -> Account:
        async with self._lock:
            current = self._accounts.get(account.id)
            if current is None:
                raise NotFoundError(f"Account {account.id} not found")
            if current.version != account.version:
                raise ConcurrentUpdateError(str(account.id))
            stored = account.model_copy(
                deep=True,
                update={"version": current.version + 1, "updated_at": utcnow()},
            )
            self._accounts[account.id] = stored
            return stored.model_copy(deep=True)

    async def delete(self, account_id: uuid.UUID) -> bool:
        async with self._lock:
            return self._accounts.pop(account_id, None) is not None

    async def list_accounts(self) -> list[Account]:
        return [a.model_copy(deep=True) for a in self._accounts.values()]

    def clear(self) -> None:
        """Clear all stored accounts."""
        self._accounts.clear()
