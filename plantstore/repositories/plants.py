"""
Repository for plant records.

This module implements the repository pattern for plant data access.
The repository:
1. Translates between Plant domain objects and stored documents
2. Puts attachments in object storage and expands their names to URLs
3. Provides a clean interface for the API layer

Stored documents keep the plant's fields flattened at the top level, next
to `images` (the attachment names) and `created_at` (the listing order):

    {"name": "Monstera", "species": "M. deliciosa",
     "images": ["leaf.png"], "created_at": "2026-10-17T09:30:00.000000+00:00"}

Documents are parsed through PlantDocument on the way out, so a document
with the wrong shape fails here with MalformedDocumentError instead of
leaking half-valid data into the application.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator
from pydantic_core import PydanticSerializationError

from ..core.plants.models import Attachment, Page, Plant, utc_now
from ..infrastructure.snowflake.documents import DocumentSnapshot, DocumentStore
from ..infrastructure.storage.client import StorageClient
from .attachments import ONE_DAY_SECONDS, AttachmentManager
from .errors import InvalidArgumentError, MalformedDocumentError
from .paginator import MissingCursorPolicy, Paginator

logger = logging.getLogger(__name__)

RESERVED_FIELDS = frozenset({"id", "images", "created_at"})


def format_timestamp(value: datetime) -> str:
    """Fixed-width ISO-8601 in UTC, so string order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


class PlantDocument(BaseModel):
    """
    Shape of a plant as stored in the document store.

    Any key besides `images` and `created_at` is a plant field.
    """
    model_config = ConfigDict(extra="allow")

    images: list[str] = Field(default_factory=list)
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return format_timestamp(value)

    @property
    def fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class PlantRepository:
    """
    Repository for plant persistence.

    Each method corresponds to a use case the application needs:
    - create: Persist a new plant and its images
    - consult_by_id: Load one plant with image URLs
    - list: Page through plants, newest first

    Single-plant reads always resolve image URLs. Listings don't unless
    resolve_urls_in_list is set, since list views may never show images
    and the expansion would be wasted.
    """

    def __init__(
        self,
        documents: DocumentStore,
        storage: StorageClient,
        *,
        collection: str = "plants",
        storage_folder: str = "plants",
        cache_max_age_seconds: int = ONE_DAY_SECONDS,
        resolve_urls_in_list: bool = False,
        missing_cursor: MissingCursorPolicy = MissingCursorPolicy.RESTART,
        max_per_page: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._documents = documents
        self._collection = collection
        self._resolve_urls_in_list = resolve_urls_in_list
        self._clock = clock
        self._attachments = AttachmentManager(
            storage,
            folder=storage_folder,
            cache_max_age_seconds=cache_max_age_seconds,
        )
        self._paginator = Paginator(
            documents,
            collection,
            order_by="created_at",
            missing_cursor=missing_cursor,
            max_per_page=max_per_page,
        )

    async def create(
        self,
        fields: Mapping[str, Any],
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> Plant:
        """
        Persist a new plant.

        The id is allocated before anything is written so the images can
        be stored under it. If storing the images fails, no document is
        written (images that did make it are left in storage, see
        AttachmentStoreError).
        """
        self._validate_fields(fields)

        plant_id = self._documents.new_id()
        names = await self._attachments.store_attachments(plant_id, attachments)

        document = PlantDocument(images=names, created_at=self._clock(), **fields)
        try:
            data = document.model_dump(mode="json")
        except PydanticSerializationError as e:
            raise InvalidArgumentError(f"Plant fields are not serializable: {e}") from e

        await self._documents.set(self._collection, plant_id, data)

        # Return what a later read will see, not the caller's raw values
        stored = PlantDocument.model_validate(data)

        logger.info(
            "Created plant",
            extra={"plant_id": plant_id, "image_count": len(names)}
        )

        return Plant(
            id=plant_id,
            fields=stored.fields,
            attachment_names=list(stored.images),
            created_at=stored.created_at,
        )

    async def consult_by_id(self, plant_id: str) -> Optional[Plant]:
        """Load a plant with its image URLs, or None if there is no such plant."""
        snapshot = await self._documents.get(self._collection, plant_id)
        if snapshot is None:
            logger.debug("Plant not found", extra={"plant_id": plant_id})
            return None

        return self._build_plant(snapshot, resolve_urls=True)

    async def list(
        self,
        last_key: Optional[str] = None,
        per_page: int = 20,
    ) -> Page[Plant]:
        """
        One page of plants, newest first.

        Pass the id of the last plant from the previous page as last_key
        to continue where it left off.
        """
        page = await self._paginator.list(last_key, per_page)

        return Page(
            items=[
                self._build_plant(snapshot, resolve_urls=self._resolve_urls_in_list)
                for snapshot in page.items
            ],
            has_more=page.has_more,
        )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _validate_fields(self, fields: Mapping[str, Any]) -> None:
        if not isinstance(fields, Mapping):
            raise InvalidArgumentError("Plant fields must be a mapping")

        bad_keys = [key for key in fields if not isinstance(key, str) or not key]
        if bad_keys:
            raise InvalidArgumentError(f"Plant field names must be non-empty strings: {bad_keys!r}")

        reserved = sorted(RESERVED_FIELDS.intersection(fields))
        if reserved:
            raise InvalidArgumentError(f"Reserved plant field names: {', '.join(reserved)}")

    def _build_plant(self, snapshot: DocumentSnapshot, resolve_urls: bool) -> Plant:
        """Construct a Plant from a stored document."""
        try:
            document = PlantDocument.model_validate(snapshot.data)
        except ValidationError as e:
            logger.error(
                "Stored plant document is malformed",
                extra={"plant_id": snapshot.id, "error": str(e)}
            )
            raise MalformedDocumentError(snapshot.id, str(e)) from e

        urls = None
        if resolve_urls:
            urls = self._attachments.resolve_urls(snapshot.id, document.images)

        return Plant(
            id=snapshot.id,
            fields=document.fields,
            attachment_names=list(document.images),
            created_at=document.created_at,
            attachment_urls=urls,
        )
