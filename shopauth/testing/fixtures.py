"""Pytest fixtures for shopauth testing.

To use these fixtures, add to your conftest.py:

    pytest_plugins = ["shopauth.testing.fixtures"]

Or import specific fixtures:

    from shopauth.testing.fixtures import shopauth_settings, mock_s3
"""

from typing import AsyncGenerator

import pytest

from shopauth.auth.admin import AdminService
from shopauth.auth.service import AuthService
from shopauth.cache.memory import InMemoryCache
from shopauth.core.settings import Settings
from shopauth.store.memory import InMemoryAccountStore
from shopauth.store.s3 import S3AccountStore
from shopauth.testing.mocks import InMemoryS3, RecordingNotificationSender
from shopauth.testing.utils import create_test_settings


@pytest.fixture
def shopauth_settings() -> Settings:
    """Provide test settings for shopauth.

    Returns:
        Settings instance configured for testing
    """
    return create_test_settings()


@pytest.fixture
def mock_s3() -> InMemoryS3:
    """Provide in-memory S3 mock.

    Returns:
        InMemoryS3 instance
    """
    s3 = InMemoryS3()
    yield s3
    s3.clear()


@pytest.fixture
def s3_test_bucket() -> str:
    """Provide test bucket name."""
    return "test-bucket"


@pytest.fixture
def s3_base_path() -> str:
    """Provide test base path."""
    return "test/"


@pytest.fixture
async def s3_client(mock_s3: InMemoryS3, s3_test_bucket: str) -> AsyncGenerator[InMemoryS3, None]:
    """Provide async S3 client for testing.

    Yields:
        InMemoryS3 instance with the test bucket created
    """
    await mock_s3.create_bucket(Bucket=s3_test_bucket)
    yield mock_s3


@pytest.fixture
def s3_account_store(s3_client: InMemoryS3, s3_test_bucket: str, s3_base_path: str) -> S3AccountStore:
    """Provide an S3 credential store over the in-memory S3 mock."""
    return S3AccountStore(s3_client, s3_test_bucket, s3_base_path)


@pytest.fixture
def account_store() -> InMemoryAccountStore:
    """Provide an in-memory credential store."""
    store = InMemoryAccountStore()
    yield store
    store.clear()


@pytest.fixture
async def memory_cache() -> AsyncGenerator[InMemoryCache, None]:
    """Provide an in-memory key-value store."""
    cache = InMemoryCache()
    yield cache
    await cache.clear()


@pytest.fixture
def notifier() -> RecordingNotificationSender:
    """Provide a notification sender that records instead of sending."""
    return RecordingNotificationSender()


@pytest.fixture
def auth_service(
    shopauth_settings: Settings,
    account_store: InMemoryAccountStore,
    memory_cache: InMemoryCache,
    notifier: RecordingNotificationSender,
) -> AuthService:
    """Provide an auth service over in-memory backends."""
    return AuthService(shopauth_settings, account_store, memory_cache, notifier)


@pytest.fixture
def admin_service(account_store: InMemoryAccountStore) -> AdminService:
    """Provide an admin service over the in-memory store."""
    return AdminService(account_store)
