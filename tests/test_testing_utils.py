"""Tests for testing utilities module."""

import json

import pytest
from botocore.exceptions import ClientError

from shopauth.core.exceptions import NotificationError
from shopauth.testing import create_test_settings
from shopauth.testing.mocks import InMemoryS3, RecordingNotificationSender, mock_s3_client


class TestInMemoryS3:
    """Tests for InMemoryS3 mock."""

    @pytest.mark.asyncio
    async def test_put_and_get_object(self):
        """Test putting and getting an object."""
        s3 = InMemoryS3()
        data = {"name": "test", "value": 123}

        put = await s3.put_object(
            Bucket="test-bucket",
            Key="test/key.json",
            Body=json.dumps(data).encode()
        )

        response = await s3.get_object(Bucket="test-bucket", Key="test/key.json")
        body = await response["Body"].read()

        assert json.loads(body.decode()) == data
        assert response["ETag"] == put["ETag"]

    @pytest.mark.asyncio
    async def test_get_nonexistent_object(self):
        """Test getting an object that doesn't exist."""
        s3 = InMemoryS3()

        with pytest.raises(ClientError) as exc_info:
            await s3.get_object(Bucket="test-bucket", Key="nonexistent")

        assert exc_info.value.response["Error"]["Code"] == "NoSuchKey"

    @pytest.mark.asyncio
    async def test_etag_changes_with_content(self):
        """Test that ETags track the body."""
        s3 = InMemoryS3()

        first = await s3.put_object(Bucket="bucket", Key="a.json", Body=b'{"v": 1}')
        second = await s3.put_object(Bucket="bucket", Key="a.json", Body=b'{"v": 2}')

        assert first["ETag"] != second["ETag"]
        assert first["ETag"].startswith('"')

    @pytest.mark.asyncio
    async def test_if_none_match_rejects_existing_key(self):
        """Test create-only writes."""
        s3 = InMemoryS3()
        await s3.put_object(Bucket="bucket", Key="a.json", Body=b"{}", IfNoneMatch="*")

        with pytest.raises(ClientError) as exc_info:
            await s3.put_object(Bucket="bucket", Key="a.json", Body=b"{}", IfNoneMatch="*")

        assert exc_info.value.response["Error"]["Code"] == "PreconditionFailed"
        assert exc_info.value.response["ResponseMetadata"]["HTTPStatusCode"] == 412

    @pytest.mark.asyncio
    async def test_if_match(self):
        """Test compare-and-swap writes."""
        s3 = InMemoryS3()
        put = await s3.put_object(Bucket="bucket", Key="a.json", Body=b'{"v": 1}')

        await s3.put_object(Bucket="bucket", Key="a.json", Body=b'{"v": 2}', IfMatch=put["ETag"])

        with pytest.raises(ClientError):
            await s3.put_object(Bucket="bucket", Key="a.json", Body=b'{"v": 3}', IfMatch=put["ETag"])

    @pytest.mark.asyncio
    async def test_if_match_missing_key(self):
        """Test that IfMatch fails when the key is gone."""
        s3 = InMemoryS3()

        with pytest.raises(ClientError):
            await s3.put_object(Bucket="bucket", Key="a.json", Body=b"{}", IfMatch='"abc"')

    @pytest.mark.asyncio
    async def test_delete_nonexistent_object(self):
        """Test deleting a nonexistent object (should not raise)."""
        s3 = InMemoryS3()

        await s3.delete_object(Bucket="test-bucket", Key="nonexistent")

    @pytest.mark.asyncio
    async def test_list_objects_v2(self):
        """Test listing objects with prefix."""
        s3 = InMemoryS3()

        await s3.put_object(Bucket="bucket", Key="prefix/a.json", Body=b'{}')
        await s3.put_object(Bucket="bucket", Key="prefix/b.json", Body=b'{}')
        await s3.put_object(Bucket="bucket", Key="other/c.json", Body=b'{}')

        response = await s3.list_objects_v2(Bucket="bucket", Prefix="prefix/")

        keys = [obj["Key"] for obj in response["Contents"]]
        assert keys == ["prefix/a.json", "prefix/b.json"]

    @pytest.mark.asyncio
    async def test_list_objects_pagination(self):
        """Test continuation tokens."""
        s3 = InMemoryS3()
        for name in "abc":
            await s3.put_object(Bucket="bucket", Key=f"{name}.json", Body=b'{}')

        first = await s3.list_objects_v2(Bucket="bucket", MaxKeys=2)
        second = await s3.list_objects_v2(
            Bucket="bucket", MaxKeys=2, ContinuationToken=first["NextContinuationToken"]
        )

        assert first["IsTruncated"] is True
        assert [o["Key"] for o in second["Contents"]] == ["c.json"]
        assert second["IsTruncated"] is False

    @pytest.mark.asyncio
    async def test_head_bucket(self):
        """Test that head_bucket reports missing buckets as 404."""
        s3 = InMemoryS3()

        with pytest.raises(ClientError) as exc_info:
            await s3.head_bucket(Bucket="bucket")
        assert exc_info.value.response["Error"]["Code"] == "404"

        await s3.create_bucket(Bucket="bucket")
        await s3.head_bucket(Bucket="bucket")

    @pytest.mark.asyncio
    async def test_clear(self):
        """Test clearing all data."""
        s3 = InMemoryS3()

        await s3.put_object(Bucket="bucket", Key="a.json", Body=b'{}')
        s3.clear()

        response = await s3.list_objects_v2(Bucket="bucket")
        assert response.get("KeyCount", 0) == 0


class TestMockS3ClientContextManager:
    """Tests for mock_s3_client context manager."""

    def test_context_manager(self):
        """Test using mock_s3_client as context manager."""
        with mock_s3_client() as s3:
            assert isinstance(s3, InMemoryS3)


class TestRecordingNotificationSender:
    """Tests for RecordingNotificationSender."""

    @pytest.mark.asyncio
    async def test_records_by_kind(self):
        """Test that notifications are recorded in order."""
        sender = RecordingNotificationSender()

        await sender.send_confirmation("a@x.com", "tok-1")
        await sender.send_password_reset("a@x.com", "tok-2")
        await sender.send_confirmation("b@x.com", "tok-3")

        assert [n.kind for n in sender.sent] == ["confirmation", "password_reset", "confirmation"]
        assert sender.last("confirmation").email == "b@x.com"
        assert sender.last("two_factor") is None

    @pytest.mark.asyncio
    async def test_fail_mode(self):
        """Test simulated delivery failure."""
        sender = RecordingNotificationSender(fail=True)

        with pytest.raises(NotificationError):
            await sender.send_two_factor_code("a@x.com", "123456")
        assert sender.sent == []


def test_create_test_settings_overrides():
    """Test that overrides reach the settings."""
    settings = create_test_settings(login_max_attempts=50)

    assert settings.login_max_attempts == 50
    assert settings.bcrypt_rounds == 4
    assert settings.aws_bucket_name == "test-bucket"
