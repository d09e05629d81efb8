"""
Plant API endpoints.

Thin HTTP plumbing over PlantRepository:
- POST /          create a plant (multipart: JSON fields + image files)
- GET  /          list plants, newest first, cursor-paginated
- GET  /{id}      one plant with its image URLs

All the interesting behavior (pagination, image storage, URL expansion)
lives in the repository. Routes only parse requests and translate
repository errors to HTTP status codes.
"""

import json
import logging
from typing import Any, Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field

from ...core.plants.models import Attachment, Plant
from ...repositories.errors import (
    AttachmentStoreError,
    DocumentStoreError,
    InvalidArgumentError,
)
from ..dependencies import PlantRepositoryDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class PlantResponse(BaseModel):
    """A plant as returned to clients."""
    id: str = Field(description="Plant identifier")
    fields: dict[str, Any] = Field(description="Plant attributes as submitted")
    images: list[str] = Field(description="Stored image names")
    image_urls: Optional[list[str]] = Field(
        None,
        description="Public image URLs, in the same order as images. Null when not resolved."
    )
    created_at: str = Field(description="When the plant was created (ISO format)")

    @classmethod
    def from_plant(cls, plant: Plant) -> "PlantResponse":
        return cls(
            id=plant.id,
            fields=plant.fields,
            images=plant.attachment_names,
            image_urls=plant.attachment_urls,
            created_at=plant.created_at.isoformat(),
        )


class PlantListResponse(BaseModel):
    """One page of plants."""
    items: list[PlantResponse] = Field(description="Plants, newest first")
    has_more: bool = Field(description="Whether older plants remain")
    last_key: Optional[str] = Field(
        None,
        description="Pass as last_key to fetch the next page"
    )


def _http_error(e: Exception) -> HTTPException:
    """Map repository errors to HTTP errors."""
    if isinstance(e, InvalidArgumentError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, AttachmentStoreError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to store images: {', '.join(e.failed)}",
        )
    if isinstance(e, DocumentStoreError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Plant storage is unavailable",
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=PlantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a plant",
    description="Create a plant from JSON fields and optional image files",
)
async def create_plant(
    settings: SettingsDep,
    repository: PlantRepositoryDep,
    data: Annotated[str, Form(description="JSON object with the plant's fields")] = "{}",
    images: Annotated[list[UploadFile], File(description="Plant images")] = [],
) -> PlantResponse:
    try:
        fields = json.loads(data)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"data is not valid JSON: {e.msg}"
        )
    if not isinstance(fields, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="data must be a JSON object"
        )

    if len(images) > settings.max_attachments_per_plant:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.max_attachments_per_plant} images per plant"
        )

    attachments = []
    total_bytes = 0
    for upload in images:
        content = await upload.read()
        total_bytes += len(content)
        if total_bytes > settings.max_upload_size_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Images exceed {settings.max_upload_size_mb} MB"
            )
        try:
            attachments.append(Attachment(
                name=upload.filename or "",
                content=content,
                mime_type=upload.content_type or "application/octet-stream",
            ))
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(
        "Creating plant",
        extra={"field_count": len(fields), "image_count": len(attachments)}
    )

    try:
        plant = await repository.create(fields, attachments)
    except (InvalidArgumentError, AttachmentStoreError, DocumentStoreError) as e:
        logger.error("Plant creation failed", extra={"error": str(e)})
        raise _http_error(e)

    return PlantResponse.from_plant(plant)


@router.get(
    "",
    response_model=PlantListResponse,
    status_code=status.HTTP_200_OK,
    summary="List plants",
    description="Plants newest first. Pass the previous page's last_key to continue.",
)
async def list_plants(
    settings: SettingsDep,
    repository: PlantRepositoryDep,
    last_key: Annotated[Optional[str], Query(description="Id of the last plant already seen")] = None,
    per_page: Annotated[Optional[int], Query(description="Page size")] = None,
) -> PlantListResponse:
    if per_page is None:
        per_page = settings.plants_default_per_page

    try:
        page = await repository.list(last_key, per_page)
    except (InvalidArgumentError, DocumentStoreError) as e:
        logger.error(
            "Plant listing failed",
            extra={"last_key": last_key, "per_page": per_page, "error": str(e)}
        )
        raise _http_error(e)

    return PlantListResponse(
        items=[PlantResponse.from_plant(plant) for plant in page.items],
        has_more=page.has_more,
        last_key=page.last_key,
    )


@router.get(
    "/{plant_id}",
    response_model=PlantResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a plant",
    description="Retrieve one plant including public image URLs",
)
async def consult_plant(
    plant_id: str,
    repository: PlantRepositoryDep,
) -> PlantResponse:
    try:
        plant = await repository.consult_by_id(plant_id)
    except DocumentStoreError as e:
        logger.error(
            "Plant lookup failed",
            extra={"plant_id": plant_id, "error": str(e)}
        )
        raise _http_error(e)

    if plant is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Plant not found"
        )

    return PlantResponse.from_plant(plant)
