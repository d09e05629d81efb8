"""
Unit tests for the object storage clients.

The R2 client is built with real boto3 but its S3 client is swapped for a
recorder, so no request ever leaves the process.
"""

import pytest

from plantstore.infrastructure.storage.client import (
    MockStorageClient,
    R2StorageClient,
    StorageConfig,
    StorageError,
    create_storage_client,
)


class FakeS3:
    def __init__(self, error=None) -> None:
        self.error = error
        self.put_calls: list[dict] = []

    def put_object(self, **kwargs):
        self.put_calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return {"ETag": '"abc"'}


def make_config(**overrides) -> StorageConfig:
    values = dict(
        access_key_id="key",
        secret_access_key="secret",
        bucket_name="plant-images",
        endpoint_url="https://acct.r2.cloudflarestorage.com",
    )
    values.update(overrides)
    return StorageConfig(**values)


def make_client(fake_s3: FakeS3, **overrides) -> R2StorageClient:
    client = R2StorageClient(make_config(**overrides))
    client._s3_client = fake_s3
    return client


class TestStorageConfig:
    def test_public_base_prefers_public_url(self):
        config = make_config(public_base_url="https://cdn.example.com/")

        assert config.public_base == "https://cdn.example.com"

    def test_public_base_falls_back_to_path_style(self):
        config = make_config()

        assert config.public_base == "https://acct.r2.cloudflarestorage.com/plant-images"


class TestR2StorageClient:
    """Tests for the boto3-backed client."""

    @pytest.mark.asyncio
    async def test_public_upload_sends_metadata(self):
        fake = FakeS3()
        client = make_client(fake)

        path = await client.upload_object(
            "plants/p1/leaf.png",
            b"png",
            content_type="image/png",
            cache_control="public, max-age=86400",
            public=True,
        )

        assert path == "plants/p1/leaf.png"
        assert fake.put_calls == [{
            "Bucket": "plant-images",
            "Key": "plants/p1/leaf.png",
            "Body": b"png",
            "ContentType": "image/png",
            "CacheControl": "public, max-age=86400",
            "ACL": "public-read",
        }]

    @pytest.mark.asyncio
    async def test_private_upload_has_no_acl(self):
        fake = FakeS3()
        client = make_client(fake)

        await client.upload_object("plants/p1/a.png", b"x", content_type="image/png")

        assert "ACL" not in fake.put_calls[0]
        assert "CacheControl" not in fake.put_calls[0]

    @pytest.mark.asyncio
    async def test_acl_can_be_disabled(self):
        """Buckets served from a public domain reject ACL headers."""
        fake = FakeS3()
        client = make_client(fake, public_acl=None)

        await client.upload_object("plants/p1/a.png", b"x", content_type="image/png", public=True)

        assert "ACL" not in fake.put_calls[0]

    @pytest.mark.asyncio
    async def test_failure_raises_storage_error(self):
        client = make_client(FakeS3(error=RuntimeError("access denied")))

        with pytest.raises(StorageError, match="access denied"):
            await client.upload_object("plants/p1/a.png", b"x", content_type="image/png")

    def test_public_url(self):
        client = make_client(FakeS3(), public_base_url="https://pub-123.r2.dev")

        assert client.public_url("plants/p1/a.png") == "https://pub-123.r2.dev/plants/p1/a.png"


class TestMockStorageClient:
    @pytest.mark.asyncio
    async def test_keeps_object_and_metadata(self):
        client = MockStorageClient()

        await client.upload_object(
            "plants/p1/a.png", b"x", content_type="image/png", cache_control="c", public=True
        )

        stored = client.objects["plants/p1/a.png"]
        assert (stored.data, stored.content_type, stored.cache_control, stored.public) == (
            b"x", "image/png", "c", True
        )

    def test_default_public_url(self):
        assert MockStorageClient().public_url("plants/p1/a.png") == "mock://storage/plants/p1/a.png"


class TestFactory:
    def test_mock_mode(self):
        assert isinstance(create_storage_client(mock_mode=True), MockStorageClient)

    def test_mock_mode_uses_configured_public_base(self):
        client = create_storage_client(
            config=make_config(public_base_url="https://cdn.example.com"),
            mock_mode=True,
        )

        assert client.public_url("a.png") == "https://cdn.example.com/a.png"

    def test_real_mode_requires_config(self):
        with pytest.raises(ValueError, match="config"):
            create_storage_client()

    def test_real_mode_builds_r2_client(self):
        assert isinstance(create_storage_client(config=make_config()), R2StorageClient)
