"""
Test helpers for plant registry tests.

Everything runs against the in-memory document store and the mock
storage client. Small subclasses add call recording or failure
injection where a test needs to observe the store boundary.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from plantstore.infrastructure.snowflake.documents import InMemoryDocumentStore
from plantstore.infrastructure.storage.client import MockStorageClient, StorageError
from plantstore.repositories.plants import format_timestamp

PUBLIC_BASE = "https://images.example.com"
EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


def at(seconds: int) -> datetime:
    """A fixed point in time, `seconds` after the test epoch."""
    return EPOCH + timedelta(seconds=seconds)


class StepClock:
    """Clock that moves forward one second every time it is read."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self._next = start

    def __call__(self) -> datetime:
        now = self._next
        self._next += timedelta(seconds=1)
        return now


class RecordingDocumentStore(InMemoryDocumentStore):
    """In-memory store that remembers every call made to it."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple] = []

    async def get(self, collection, doc_id):
        self.calls.append(("get", collection, doc_id))
        return await super().get(collection, doc_id)

    async def set(self, collection, doc_id, data):
        self.calls.append(("set", collection, doc_id))
        await super().set(collection, doc_id, data)

    async def query(self, collection, *, order_by, limit, start_after=None):
        self.calls.append(("query", collection, limit, start_after.id if start_after else None))
        return await super().query(
            collection, order_by=order_by, limit=limit, start_after=start_after
        )


class RecordingStorageClient(MockStorageClient):
    """
    Mock storage that records calls and can fail chosen uploads.

    Uploads yield to the event loop once, so concurrent uploads overlap
    and max_in_flight shows how many ran at the same time.
    """

    def __init__(self, fail_names: tuple = ()) -> None:
        super().__init__(public_base_url=PUBLIC_BASE)
        self.fail_names = set(fail_names)
        self.upload_calls: list[str] = []
        self.url_calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def upload_object(self, storage_path, data, *, content_type, cache_control=None, public=False):
        self.upload_calls.append(storage_path)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if storage_path.rsplit("/", 1)[-1] in self.fail_names:
                raise StorageError(f"Upload failed: {storage_path}")
            return await super().upload_object(
                storage_path,
                data,
                content_type=content_type,
                cache_control=cache_control,
                public=public,
            )
        finally:
            self.in_flight -= 1

    def public_url(self, storage_path):
        self.url_calls.append(storage_path)
        return super().public_url(storage_path)


async def seed(store, doc_id: str, seconds: int, collection: str = "plants", **fields) -> None:
    """Write a plant document created `seconds` after the epoch."""
    await store.set(collection, doc_id, {
        **fields,
        "images": [],
        "created_at": format_timestamp(at(seconds)),
    })
