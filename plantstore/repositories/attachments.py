"""
Attachment storage for plant records.

Every record owns a folder in object storage named after its id:

    {folder}/{record_id}/{attachment name}

so two records can never collide on an attachment name. Objects are written
publicly readable, which lets the read path build URLs without asking the
storage service anything.
"""

import asyncio
import logging
from typing import Optional, Sequence

from ..core.plants.models import Attachment
from ..infrastructure.storage.client import StorageClient
from .errors import AttachmentStoreError, InvalidArgumentError

logger = logging.getLogger(__name__)

ONE_DAY_SECONDS = 60 * 60 * 24


class AttachmentManager:
    """
    Stores a record's attachments and derives their public URLs.

    Uploads for one record run concurrently. There is no rollback: if one
    upload fails, the others still complete and stay in storage, and the
    AttachmentStoreError raised lists what was stored.
    """

    def __init__(
        self,
        storage: StorageClient,
        folder: str = "plants",
        cache_max_age_seconds: int = ONE_DAY_SECONDS,
    ) -> None:
        self._storage = storage
        self._folder = folder.strip("/")
        self._cache_control = f"public, max-age={cache_max_age_seconds}"

    def folder_for(self, record_id: str) -> str:
        return f"{self._folder}/{record_id}"

    async def store_attachments(
        self,
        record_id: str,
        files: Optional[Sequence[Attachment]],
    ) -> list[str]:
        """
        Upload every file under the record's folder.

        Returns the stored names in input order. Duplicate names are
        rejected before anything is uploaded, since the second upload
        would silently replace the first.
        """
        if not files:
            return []

        names = [file.stored_name for file in files]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise InvalidArgumentError(
                f"Duplicate attachment names: {', '.join(duplicates)}"
            )

        # return_exceptions keeps one failure from cancelling its siblings
        results = await asyncio.gather(
            *(self._store_one(record_id, file) for file in files),
            return_exceptions=True,
        )

        failed = {
            name: result
            for name, result in zip(names, results)
            if isinstance(result, BaseException)
        }
        if failed:
            stored = [name for name in names if name not in failed]
            logger.error(
                "Attachment batch partially failed",
                extra={
                    "record_id": record_id,
                    "stored": stored,
                    "failed": list(failed),
                }
            )
            raise AttachmentStoreError(record_id, stored, failed)

        logger.info(
            "Stored attachments",
            extra={"record_id": record_id, "count": len(names)}
        )

        return names

    def resolve_urls(self, record_id: str, names: Sequence[str]) -> list[str]:
        """Public URL for each name, in the same order."""
        if not names:
            return []

        folder = self.folder_for(record_id)
        return [self._storage.public_url(f"{folder}/{name}") for name in names]

    async def _store_one(self, record_id: str, file: Attachment) -> str:
        await self._storage.upload_object(
            f"{self.folder_for(record_id)}/{file.stored_name}",
            file.content,
            content_type=file.mime_type,
            cache_control=self._cache_control,
            public=True,
        )
        return file.stored_name
