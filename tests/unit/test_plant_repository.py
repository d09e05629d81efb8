"""
Unit tests for PlantRepository.

These exercise the full create -> consult -> list flow against the
in-memory stores, plus the failure paths at each store boundary.
"""

from datetime import date, datetime

import pytest

from plantstore.core.plants.models import Attachment
from plantstore.infrastructure.snowflake.documents import DocumentStoreError
from plantstore.repositories.errors import (
    AttachmentStoreError,
    CursorNotFoundError,
    InvalidArgumentError,
    MalformedDocumentError,
)
from plantstore.repositories.paginator import MissingCursorPolicy
from plantstore.repositories.plants import PlantRepository
from tests.helpers import (
    EPOCH,
    PUBLIC_BASE,
    RecordingDocumentStore,
    RecordingStorageClient,
    StepClock,
    at,
)


def image(name: str) -> Attachment:
    return Attachment(name=name, content=b"img:" + name.encode(), mime_type="image/png")


class FailingWriteStore(RecordingDocumentStore):
    """Document store whose writes always fail."""

    async def set(self, collection, doc_id, data):
        raise DocumentStoreError("warehouse suspended")


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreate:
    """Tests for creating plants."""

    @pytest.mark.asyncio
    async def test_returns_plant_with_names_but_no_urls(self, repository):
        plant = await repository.create(
            {"name": "Monstera", "watering_days": 7},
            [image("leaf.png"), image("pot.png")],
        )

        assert plant.id
        assert plant.fields == {"name": "Monstera", "watering_days": 7}
        assert plant.attachment_names == ["leaf.png", "pot.png"]
        assert plant.attachment_urls is None
        assert plant.created_at == EPOCH

    @pytest.mark.asyncio
    async def test_stores_images_under_new_plant_id(self, repository, storage):
        plant = await repository.create({"name": "Fern"}, [image("frond.png")])

        assert list(storage.objects) == [f"plants/{plant.id}/frond.png"]

    @pytest.mark.asyncio
    async def test_document_layout(self, repository, documents):
        """Fields are flattened next to images and created_at."""
        plant = await repository.create({"name": "Fern"}, [image("frond.png")])

        snapshot = await documents.get("plants", plant.id)

        assert snapshot.data == {
            "name": "Fern",
            "images": ["frond.png"],
            "created_at": "2026-01-01T00:00:00.000000+00:00",
        }

    @pytest.mark.asyncio
    async def test_without_images(self, repository, storage):
        plant = await repository.create({"name": "Cactus"})

        assert plant.attachment_names == []
        assert storage.upload_calls == []

    @pytest.mark.asyncio
    async def test_images_stored_before_document_written(self, documents):
        """If an image upload fails, no document is written."""
        storage = RecordingStorageClient(fail_names=("bad.png",))
        repository = PlantRepository(documents, storage, clock=StepClock())

        with pytest.raises(AttachmentStoreError) as exc_info:
            await repository.create({"name": "Fern"}, [image("ok.png"), image("bad.png")])

        assert not any(call[0] == "set" for call in documents.calls)
        assert exc_info.value.stored == ["ok.png"]
        # The successful sibling is left behind
        assert list(storage.objects) == [f"plants/{exc_info.value.record_id}/ok.png"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["id", "images", "created_at"])
    async def test_reserved_field_names_rejected(self, repository, documents, storage, field):
        with pytest.raises(InvalidArgumentError, match=field):
            await repository.create({field: "x"}, [image("a.png")])

        assert documents.calls == []
        assert storage.upload_calls == []

    @pytest.mark.asyncio
    async def test_non_mapping_fields_rejected(self, repository):
        with pytest.raises(InvalidArgumentError):
            await repository.create(["not", "a", "mapping"])

    @pytest.mark.asyncio
    async def test_unserializable_fields_rejected(self, repository, documents):
        with pytest.raises(InvalidArgumentError, match="serializable"):
            await repository.create({"when": object()})

        assert not any(call[0] == "set" for call in documents.calls)

    @pytest.mark.asyncio
    async def test_document_store_failure_propagates(self, storage):
        repository = PlantRepository(FailingWriteStore(), storage, clock=StepClock())

        with pytest.raises(DocumentStoreError, match="warehouse suspended"):
            await repository.create({"name": "Fern"})


# ---------------------------------------------------------------------------
# Consult
# ---------------------------------------------------------------------------

class TestConsultById:
    """Tests for reading a single plant."""

    @pytest.mark.asyncio
    async def test_round_trip_with_urls(self, repository):
        created = await repository.create(
            {"name": "Monstera", "tags": ["tropical", "indoor"]},
            [image("leaf.png"), image("pot.png")],
        )

        plant = await repository.consult_by_id(created.id)

        assert plant.id == created.id
        assert plant.fields == {"name": "Monstera", "tags": ["tropical", "indoor"]}
        assert plant.attachment_names == ["leaf.png", "pot.png"]
        assert plant.attachment_urls == [
            f"{PUBLIC_BASE}/plants/{created.id}/leaf.png",
            f"{PUBLIC_BASE}/plants/{created.id}/pot.png",
        ]
        assert plant.created_at == created.created_at

    @pytest.mark.asyncio
    async def test_created_fields_match_stored_fields(self, repository):
        """Non-JSON values come back from create in the form a later read returns."""
        created = await repository.create({"planted": date(2026, 1, 2), "tags": ("a", "b")})

        consulted = await repository.consult_by_id(created.id)

        assert created.fields == {"planted": "2026-01-02", "tags": ["a", "b"]}
        assert consulted.fields == created.fields
        assert consulted.created_at == created.created_at

    @pytest.mark.asyncio
    async def test_plant_without_images_has_empty_urls(self, repository, storage):
        created = await repository.create({"name": "Cactus"})

        plant = await repository.consult_by_id(created.id)

        assert plant.attachment_urls == []
        assert storage.url_calls == []

    @pytest.mark.asyncio
    async def test_missing_plant_is_none(self, repository):
        assert await repository.consult_by_id("no-such-plant") is None

    @pytest.mark.asyncio
    async def test_malformed_document_raises(self, repository, documents):
        documents._put_raw("plants", "broken", {"images": "leaf.png", "created_at": "yesterday"})

        with pytest.raises(MalformedDocumentError) as exc_info:
            await repository.consult_by_id("broken")

        assert exc_info.value.doc_id == "broken"
        assert isinstance(exc_info.value, DocumentStoreError)

    @pytest.mark.asyncio
    async def test_document_without_images_key_is_accepted(self, repository, documents):
        documents._put_raw("plants", "legacy", {"name": "Old fern", "created_at": "2026-01-01T00:00:03+00:00"})

        plant = await repository.consult_by_id("legacy")

        assert plant.attachment_names == []
        assert plant.created_at == at(3)


# ---------------------------------------------------------------------------
# List
# ---------------------------------------------------------------------------

class TestList:
    """Tests for paginated listing through the repository."""

    @pytest.mark.asyncio
    async def test_pages_newest_first(self, repository):
        created = [await repository.create({"n": i}) for i in range(5)]

        first = await repository.list(None, 2)
        second = await repository.list(first.last_key, 2)
        third = await repository.list(second.last_key, 2)

        listed = first.items + second.items + third.items
        assert [p.id for p in listed] == [p.id for p in reversed(created)]
        assert [first.has_more, second.has_more, third.has_more] == [True, True, False]

    @pytest.mark.asyncio
    async def test_exhaustive_and_strictly_ordered(self, repository):
        created_ids = {(await repository.create({"n": i})).id for i in range(11)}

        seen = []
        last_key = None
        while True:
            page = await repository.list(last_key, 4)
            assert len(page.items) <= 4
            seen.extend(page.items)
            if not page.has_more:
                break
            last_key = page.last_key

        assert len(seen) == 11
        assert {p.id for p in seen} == created_ids
        times = [p.created_at for p in seen]
        assert all(a > b for a, b in zip(times, times[1:]))

    @pytest.mark.asyncio
    async def test_list_omits_urls_by_default(self, repository, storage):
        await repository.create({"name": "Fern"}, [image("frond.png")])

        page = await repository.list()

        assert page.items[0].attachment_names == ["frond.png"]
        assert page.items[0].attachment_urls is None
        assert storage.url_calls == []

    @pytest.mark.asyncio
    async def test_list_resolves_urls_when_enabled(self, documents, storage):
        repository = PlantRepository(
            documents, storage, resolve_urls_in_list=True, clock=StepClock()
        )
        plant = await repository.create({"name": "Fern"}, [image("frond.png")])

        page = await repository.list()

        assert page.items[0].attachment_urls == [f"{PUBLIC_BASE}/plants/{plant.id}/frond.png"]

    @pytest.mark.asyncio
    async def test_unknown_cursor_restarts(self, repository):
        await repository.create({"name": "Fern"})

        page = await repository.list("gone", 10)

        assert len(page.items) == 1

    @pytest.mark.asyncio
    async def test_unknown_cursor_rejected_under_error_policy(self, documents, storage):
        repository = PlantRepository(
            documents, storage, missing_cursor=MissingCursorPolicy.ERROR
        )

        with pytest.raises(CursorNotFoundError):
            await repository.list("gone", 10)

    @pytest.mark.asyncio
    async def test_non_positive_page_size(self, repository, documents):
        with pytest.raises(InvalidArgumentError):
            await repository.list(None, 0)

        assert documents.calls == []

    @pytest.mark.asyncio
    async def test_malformed_document_in_page_raises(self, repository, documents):
        documents._put_raw("plants", "broken", {"images": 42, "created_at": "2026-01-01T00:00:00+00:00"})

        with pytest.raises(MalformedDocumentError):
            await repository.list()

    @pytest.mark.asyncio
    async def test_created_at_is_timezone_aware(self, repository):
        await repository.create({"name": "Fern"})

        page = await repository.list()

        assert isinstance(page.items[0].created_at, datetime)
        assert page.items[0].created_at.tzinfo is not None
