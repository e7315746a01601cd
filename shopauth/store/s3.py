"""S3-backed credential store.

Each account is one JSON object. S3 has no secondary indexes, so lookups
by email and by token go through small index objects that point at the
account ID; an index hit is always re-checked against the account itself,
which makes stale index entries harmless.

Concurrency control uses S3 conditional writes: ``IfNoneMatch="*"`` on the
email index object makes registration unique, and ``IfMatch=<etag>`` on the
account object turns ``update`` into a compare-and-swap.
"""

import json
import logging
import uuid
from typing import Any

from botocore.exceptions import ClientError

from shopauth.auth.models import Account, normalize_email, utcnow
from shopauth.cache.keys import fingerprint
from shopauth.core.exceptions import (
    ConcurrentUpdateError,
    DuplicateAccountError,
    NotFoundError,
    StoreError,
)
from shopauth.store.base import AccountStore

logger = logging.getLogger(__name__)

# index name -> Account attribute it covers
INDEXES = {
    "emails": "email",
    "refresh_tokens": "refresh_token_hash",
    "reset_tokens": "password_reset_token",
    "confirmation_tokens": "email_confirmation_token",
}

PRECONDITION_CODES = {"PreconditionFailed", "412", "ConditionalRequestConflict", "409"}
MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3AccountStore(AccountStore):
    """``AccountStore`` persisting accounts as JSON objects in S3."""

    def __init__(
        self,
        s3_client: Any,
        bucket_name: str,
        base_path: str = "shopauth/",
    ):
        """Initialize the store.

        Args:
            s3_client: An aiobotocore S3 client (or a compatible mock)
            bucket_name: Bucket holding the account objects
            base_path: Key prefix for all objects written by the store
        """
        self.s3_client = s3_client
        self.bucket_name = bucket_name
        self.base_path = base_path if base_path.endswith("/") else f"{base_path}/"

    def _account_key(self, account_id: uuid.UUID | str) -> str:
        return f"{self.base_path}accounts/{account_id}.json"

    def _index_key(self, index: str, value: str) -> str:
        return f"{self.base_path}{index}/{fingerprint(value)}"

    def _index_values(self, account: Account) -> dict[str, str]:
        values = {}
        for index, attr in INDEXES.items():
            value = getattr(account, attr)
            if value:
                values[index] = value
        return values

    async def _read(self, key: str) -> tuple[dict, str] | None:
        try:
            response = await self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
            body = await response["Body"].read()
            return json.loads(body.decode("utf-8")), response.get("ETag", "")
        except ClientError as e:
            if _error_code(e) in MISSING_CODES:
                return None
            raise StoreError(f"S3 read failed: {e}", operation="get_object", original_error=e) from e

    async def _write(self, key: str, data: dict, **conditions) -> None:
        await self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=json.dumps(data).encode("utf-8"),
            ContentType="application/json",
            **conditions,
        )

    async def _delete(self, key: str) -> None:
        try:
            await self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            logger.warning(f"Could not delete index object: {_error_code(e)}")

    async def _put_index(self, index: str, value: str, account_id: uuid.UUID) -> None:
        try:
            await self._write(self._index_key(index, value), {"account_id": str(account_id)})
        except ClientError as e:
            raise StoreError(f"S3 index write failed: {e}", operation="put_object", original_error=e) from e

    async def _load(self, account_id: uuid.UUID | str) -> tuple[Account, str] | None:
        result = await self._read(self._account_key(account_id))
        if result is None:
            return None
        data, etag = result
        return Account.model_validate(data), etag

    async def _lookup(self, index: str, value: str) -> Account | None:
        if not value:
            return None
        entry = await self._read(self._index_key(index, value))
        if entry is None:
            return None
        loaded = await self._load(entry[0]["account_id"])
        if loaded is None:
            return None
        account = loaded[0]
        # Index objects can lag behind the account; the account is authoritative
        if getattr(account, INDEXES[index]) != value:
            return None
        return account

    async def create(self, account: Account) -> Account:
        stored = account.model_copy(
            deep=True,
            update={"email": normalize_email(account.email), "version": 1},
        )
        email_key = self._index_key("emails", stored.email)
        try:
            await self._write(email_key, {"account_id": str(stored.id)}, IfNoneMatch="*")
        except ClientError as e:
            if _error_code(e) in PRECONDITION_CODES:
                raise DuplicateAccountError() from e
            raise StoreError(f"S3 write failed: {e}", operation="put_object", original_error=e) from e

        try:
            await self._write(
                self._account_key(stored.id),
                stored.model_dump(mode="json"),
                IfNoneMatch="*",
            )
        except ClientError as e:
            await self._delete(email_key)
            raise StoreError(f"S3 write failed: {e}", operation="put_object", original_error=e) from e

        for index, value in self._index_values(stored).items():
            if index != "emails":
                await self._put_index(index, value, stored.id)
        return stored

    async def get_by_id(self, account_id: uuid.UUID) -> Account | None:
        loaded = await self._load(account_id)
        return loaded[0] if loaded else None

    async def get_by_email(self, email: str) -> Account | None:
        return await self._lookup("emails", normalize_email(email))

    async def get_by_refresh_token_hash(self, token_hash: str) -> Account | None:
        return await self._lookup("refresh_tokens", token_hash)

    async def get_by_reset_token(self, token: str) -> Account | None:
        return await self._lookup("reset_tokens", token)

    async def get_by_confirmation_token(self, token: str) -> Account | None:
        return await self._lookup("confirmation_tokens", token)

    async def update(self, account: Account) -> Account:
        loaded = await self._load(account.id)
        if loaded is None:
            raise NotFoundError(f"Account {account.id} not found")
        current, etag = loaded
        if current.version != account.version:
            raise ConcurrentUpdateError(str(account.id))

        stored = account.model_copy(
            deep=True,
            update={"version": current.version + 1, "updated_at": utcnow()},
        )
        old_indexes = self._index_values(current)
        new_indexes = self._index_values(stored)

        # New index entries first so a successful write is always reachable
        for index, value in new_indexes.items():
            if old_indexes.get(index) != value and index != "emails":
                await self._put_index(index, value, stored.id)

        try:
            await self._write(
                self._account_key(stored.id),
                stored.model_dump(mode="json"),
                IfMatch=etag,
            )
        except ClientError as e:
            if _error_code(e) in PRECONDITION_CODES:
                raise ConcurrentUpdateError(str(account.id)) from e
            raise StoreError(f"S3 write failed: {e}", operation="put_object", original_error=e) from e

        for index, value in old_indexes.items():
            if new_indexes.get(index) != value and index != "emails":
                await self._delete(self._index_key(index, value))
        return stored

    async def delete(self, account_id: uuid.UUID) -> bool:
        loaded = await self._load(account_id)
        if loaded is None:
            return False
        account = loaded[0]
        await self._delete(self._account_key(account_id))
        for index, value in self._index_values(account).items():
            await self._delete(self._index_key(index, value))
        return True

    async def list_accounts(self) -> list[Account]:
        prefix = f"{self.base_path}accounts/"
        accounts = []
        token = None
        while True:
            kwargs = {"Bucket": self.bucket_name, "Prefix": prefix}
            if token:
                kwargs["ContinuationToken"] = token
            try:
                response = await self.s3_client.list_objects_v2(**kwargs)
            except ClientError as e:
                raise StoreError(f"S3 list failed: {e}", operation="list_objects_v2", original_error=e) from e
            for item in response.get("Contents", []):
                result = await self._read(item["Key"])
                if result is not None:
                    accounts.append(Account.model_validate(result[0]))
            if not response.get("IsTruncated"):
                break
            token = response.get("NextContinuationToken")
        return accounts
