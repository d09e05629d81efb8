"""
Errors raised by the plant repositories.

Argument errors and attachment failures are ours. Document store failures
belong to the store layer and propagate unchanged; they are re-exported
here so callers can catch everything from one place.
"""

from typing import Mapping, Sequence

from ..infrastructure.snowflake.documents import DocumentStoreError


class PlantStoreError(Exception):
    """Base class for repository-level failures."""
    pass


class InvalidArgumentError(PlantStoreError, ValueError):
    """Raised before any store access when a caller passes bad input."""
    pass


class CursorNotFoundError(InvalidArgumentError):
    """
    Raised when a listing cursor doesn't resolve to a document.

    Only raised under MissingCursorPolicy.ERROR. The default policy
    restarts the listing instead.
    """

    def __init__(self, last_key: str) -> None:
        super().__init__(f"No plant matches cursor {last_key!r}")
        self.last_key = last_key


class AttachmentStoreError(PlantStoreError):
    """
    Raised when one or more attachments of a batch could not be stored.

    Uploads that succeeded in the same batch are NOT rolled back. Object
    storage has no multi-object transaction, so `stored` tells the caller
    exactly which objects were left behind.
    """

    def __init__(
        self,
        record_id: str,
        stored: Sequence[str],
        failed: Mapping[str, BaseException],
    ) -> None:
        names = ", ".join(failed)
        super().__init__(
            f"Failed to store {len(failed)} attachment(s) for {record_id}: {names}"
        )
        self.record_id = record_id
        self.stored = list(stored)
        self.failed = dict(failed)


class MalformedDocumentError(DocumentStoreError):
    """Raised when a stored document doesn't have the expected shape."""

    def __init__(self, doc_id: str, detail: str) -> None:
        super().__init__(f"Document {doc_id} is malformed: {detail}")
        self.doc_id = doc_id


__all__ = [
    "AttachmentStoreError",
    "CursorNotFoundError",
    "DocumentStoreError",
    "InvalidArgumentError",
    "MalformedDocumentError",
    "PlantStoreError",
]
