"""Testing utilities for shopauth applications.

This module provides an in-memory S3 mock, a recording notification
sender, settings helpers and pytest fixtures.

Usage in conftest.py:
    from shopauth.testing import (
        create_test_settings,
        InMemoryS3,
        RecordingNotificationSender,
    )

Or use provided fixtures directly:
    pytest_plugins = ["shopauth.testing.fixtures"]
"""

from shopauth.testing.mocks import (
    InMemoryS3,
    RecordingNotificationSender,
    mock_s3_client,
)
from shopauth.testing.utils import (
    TEST_PASSWORD,
    ShopAuthTestCase,
    create_test_settings,
)

__all__ = [
    "InMemoryS3",
    "RecordingNotificationSender",
    "mock_s3_client",
    "TEST_PASSWORD",
    "ShopAuthTestCase",
    "create_test_settings",
]
