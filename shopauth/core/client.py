"""S3 client manager for the S3 credential store."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from aiobotocore.client import AioBaseClient
from aiobotocore.session import get_session
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shopauth.core.exceptions import ConfigurationError, StoreError
from shopauth.core.settings import Settings

logger = logging.getLogger(__name__)


def adjust_endpoint_url(
    endpoint_url: str | None, bucket_name: str | None
) -> str | None:
    """Adjust endpoint URL for path-style addressing if needed.

    Args:
        endpoint_url: The S3 endpoint URL
        bucket_name: The S3 bucket name

    Returns:
        Adjusted endpoint URL or None
    """
    if not endpoint_url:
        return None
    if bucket_name and f"{bucket_name}." in endpoint_url:
        return endpoint_url.replace(f"{bucket_name}.", "")
    return endpoint_url


class S3ClientManager:
    """Creates aiobotocore S3 clients from shopauth settings."""

    def __init__(self, settings: Settings):
        """Initialize the client manager.

        Args:
            settings: shopauth settings with the ``aws_*`` fields set

        Raises:
            ConfigurationError: If no bucket is configured
        """
        if not settings.aws_bucket_name:
            raise ConfigurationError(missing_fields=["SHOPAUTH_AWS_BUCKET_NAME"])
        self.settings = settings
        self.bucket_name = settings.aws_bucket_name
        self._session = get_session()
        self._endpoint_url = adjust_endpoint_url(
            settings.aws_url, settings.aws_bucket_name
        )
        self._client_config = Config(
            s3={"addressing_style": "path"},
            retries={
                "max_attempts": settings.aws_retry_attempts,
                "mode": "standard",
            },
        )

    @asynccontextmanager
    async def get_async_client(self) -> AsyncGenerator[AioBaseClient, None]:
        """Get an async S3 client within a context manager.

        Yields:
            An aiobotocore S3 client

        Raises:
            StoreError: If the client cannot be created
        """
        try:
            client_context = self._session.create_client(
                "s3",
                region_name=self.settings.aws_default_region,
                aws_access_key_id=self.settings.aws_access_key_id,
                aws_secret_access_key=self.settings.aws_secret_access_key,
                endpoint_url=self._endpoint_url,
                config=self._client_config,
            )
        except BotoCoreError as e:
            raise StoreError(
                f"Failed to create async S3 client: {e}",
                operation="create_client",
                original_error=e,
            ) from e
        async with client_context as client:
            yield client

    async def ensure_bucket_exists(self, client: AioBaseClient) -> None:
        """Ensure the configured S3 bucket exists, creating it if necessary.

        Raises:
            StoreError: If the bucket cannot be checked or created
        """
        try:
            await client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            # Handle both numeric codes and named codes
            if error_code not in ("404", "NoSuchBucket", "NotFound"):
                raise StoreError(
                    f"Error checking bucket: {e}",
                    operation="head_bucket",
                    original_error=e,
                ) from e
            try:
                await client.create_bucket(Bucket=self.bucket_name)
                logger.info(f"Created bucket {self.bucket_name}")
            except ClientError as create_error:
                raise StoreError(
                    f"Failed to create bucket: {create_error}",
                    operation="create_bucket",
                    original_error=create_error,
                ) from create_error
