"""Testing utilities for shopauth applications."""

from unittest import IsolatedAsyncioTestCase

from shopauth.auth.admin import AdminService
from shopauth.auth.models import Account
from shopauth.auth.service import AuthService
from shopauth.cache.memory import InMemoryCache
from shopauth.core.settings import Settings
from shopauth.store.memory import InMemoryAccountStore
from shopauth.testing.mocks import RecordingNotificationSender

TEST_PASSWORD = "Abc12345!"


def create_test_settings(
    bucket_name: str = "test-bucket",
    base_path: str = "test/",
    secret_key: str = "test-secret-key-for-testing-only",
    **overrides
) -> Settings:
    """Create shopauth settings for testing.

    bcrypt runs at its minimum cost so tests stay fast.

    Args:
        bucket_name: The S3 bucket name for tests
        base_path: The S3 base path for tests
        secret_key: JWT secret key for tests
        **overrides: Additional settings to override

    Returns:
        Settings instance configured for testing
    """
    values = {
        "aws_bucket_name": bucket_name,
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "aws_default_region": "us-east-1",
        "aws_url": "http://localhost:4566",
        "secret_key": secret_key,
        "s3_base_path": base_path,
        "bcrypt_rounds": 4,
        "debug": True,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class ShopAuthTestCase(IsolatedAsyncioTestCase):
    """Base test case with an auth service over in-memory backends.

    Example:
        >>> class TestSignup(ShopAuthTestCase):
        ...     async def test_register(self):
        ...         result = await self.auth.register("a@x.com", "Abc12345!")
        ...         self.assertIsNotNone(result.account_id)
    """

    settings_overrides: dict = {}

    def setUp(self) -> None:
        """Set up test fixtures."""
        super().setUp()
        self.settings = create_test_settings(**self.settings_overrides)
        self.store = InMemoryAccountStore()
        self.cache = InMemoryCache()
        self.notifier = RecordingNotificationSender()
        self.auth = AuthService(self.settings, self.store, self.cache, self.notifier)
        self.admin = AdminService(self.store)

    def tearDown(self) -> None:
        """Clean up after test."""
        self.store.clear()
        super().tearDown()

    async def create_confirmed_account(
        self,
        email: str = "user@example.com",
        password: str = TEST_PASSWORD,
    ) -> Account:
        """Register an account and confirm its email.

        Returns:
            The stored, confirmed account
        """
        await self.auth.register(email, password)
        token = self.notifier.last("confirmation").secret
        await self.auth.verify_email(token)
        return await self.store.get_by_email(email)
