"""
Shared fixtures for plant registry tests.
"""

import pytest

from plantstore.repositories.plants import PlantRepository
from tests.helpers import RecordingDocumentStore, RecordingStorageClient, StepClock


@pytest.fixture
def documents() -> RecordingDocumentStore:
    return RecordingDocumentStore()


@pytest.fixture
def storage() -> RecordingStorageClient:
    return RecordingStorageClient()


@pytest.fixture
def repository(documents, storage) -> PlantRepository:
    return PlantRepository(documents, storage, clock=StepClock())
