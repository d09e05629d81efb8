"""
Repository layer for plants.

Repositories translate between domain models and the document and object
stores. Stores are passed in, never looked up globally.
"""

from .attachments import AttachmentManager
from .errors import (
    AttachmentStoreError,
    CursorNotFoundError,
    DocumentStoreError,
    InvalidArgumentError,
    MalformedDocumentError,
    PlantStoreError,
)
from .paginator import MissingCursorPolicy, Paginator
from .plants import PlantDocument, PlantRepository

__all__ = [
    "AttachmentManager",
    "AttachmentStoreError",
    "CursorNotFoundError",
    "DocumentStoreError",
    "InvalidArgumentError",
    "MalformedDocumentError",
    "MissingCursorPolicy",
    "Paginator",
    "PlantDocument",
    "PlantRepository",
    "PlantStoreError",
]
