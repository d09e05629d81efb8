"""
Object storage client for plant images.

Supports Cloudflare R2 (S3-compatible) with mock mode for local development.
Objects are written publicly readable, so read paths never need a round trip:
the public URL of an object is computed from the bucket's public base and
the object's key.

Mock mode stores objects in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for R2/S3-compatible storage.

    public_base_url is where the bucket is served from publicly (an r2.dev
    subdomain or a custom domain). When unset, path-style
    `{endpoint_url}/{bucket_name}` is used, which is what plain S3 serves.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    region: str = "auto"  # R2 uses 'auto' for region
    public_base_url: Optional[str] = None
    public_acl: Optional[str] = "public-read"

    @property
    def public_base(self) -> str:
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}"


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    async def upload_object(
        self,
        storage_path: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: Optional[str] = None,
        public: bool = False,
    ) -> str:
        """Upload an object and return its storage path."""
        ...

    def public_url(self, storage_path: str) -> str:
        """Public URL of an object. Pure computation, no network call."""
        ...


class R2StorageClient:
    """
    Cloudflare R2 object storage client.

    Uses boto3 because R2 is S3-compatible. This abstraction means
    we could swap to actual S3, MinIO, or other S3-compatible storage
    with minimal changes.

    boto3 is synchronous, so uploads run in a worker thread. That keeps
    the event loop free and lets several uploads proceed at once.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize R2 client with boto3.

        boto3 is imported here (not at module level) so mock mode
        never loads it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for R2 storage. Install with: pip install boto3"
            )

        self._config = config

        # R2 requires v4 signatures and has specific endpoint patterns
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized R2 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    async def upload_object(
        self,
        storage_path: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: Optional[str] = None,
        public: bool = False,
    ) -> str:
        """
        Upload an object to R2 storage.

        Public objects get the configured canned ACL. Buckets that expose
        objects through a public domain instead of ACLs can set
        public_acl to None.
        """
        params = {
            'Bucket': self._config.bucket_name,
            'Key': storage_path,
            'Body': data,
            'ContentType': content_type,
        }
        if cache_control:
            params['CacheControl'] = cache_control
        if public and self._config.public_acl:
            params['ACL'] = self._config.public_acl

        try:
            await asyncio.to_thread(self._s3_client.put_object, **params)
        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"storage_path": storage_path, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}") from e

        logger.debug(
            "Uploaded object",
            extra={
                "storage_path": storage_path,
                "content_type": content_type,
                "size_bytes": len(data),
            }
        )

        return storage_path

    def public_url(self, storage_path: str) -> str:
        return f"{self._config.public_base}/{storage_path.lstrip('/')}"


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class StoredObject:
    """An object held by the mock client, with the metadata it was written with."""
    data: bytes
    content_type: str
    cache_control: Optional[str] = None
    public: bool = False


class MockStorageClient:
    """
    In-memory storage for local development.

    This mock enables testing the full API flow without provisioning
    real object storage. Objects are stored in a dictionary keyed by
    storage path and "URLs" are built from a fake public base.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(self, public_base_url: str = "mock://storage") -> None:
        self._public_base = public_base_url.rstrip("/")
        self.objects: dict[str, StoredObject] = {}
        logger.info("Initialized mock storage client (in-memory)")

    async def upload_object(
        self,
        storage_path: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: Optional[str] = None,
        public: bool = False,
    ) -> str:
        """Store object in memory."""
        self.objects[storage_path] = StoredObject(
            data=data,
            content_type=content_type,
            cache_control=cache_control,
            public=public,
        )

        logger.debug(
            "Stored object in mock storage",
            extra={"storage_path": storage_path, "size_bytes": len(data)}
        )

        return storage_path

    def public_url(self, storage_path: str) -> str:
        return f"{self._public_base}/{storage_path.lstrip('/')}"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (R2 or Mock)
    """
    if mock_mode:
        if config is not None and config.public_base_url:
            return MockStorageClient(public_base_url=config.public_base_url)
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2StorageClient(config)
