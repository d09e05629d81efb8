"""
Cursor-based pagination over a document collection.

A cursor is just the id of the last document the caller saw. Each request
re-reads that document and asks the store for what comes after it, so no
pagination state lives on the server between requests.
"""

import logging
from enum import Enum
from typing import Optional

from ..core.plants.models import Page
from ..infrastructure.snowflake.documents import DocumentSnapshot, DocumentStore
from .errors import CursorNotFoundError, InvalidArgumentError

logger = logging.getLogger(__name__)


class MissingCursorPolicy(Enum):
    """What to do when the cursor document no longer exists."""
    RESTART = "restart"  # List from the newest document
    ERROR = "error"      # Reject with CursorNotFoundError


class Paginator:
    """
    Pages through a collection newest first.

    One extra document is requested per page: if it comes back there is
    at least one more page, which saves a second round trip to count.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        order_by: str = "created_at",
        missing_cursor: MissingCursorPolicy = MissingCursorPolicy.RESTART,
        max_per_page: Optional[int] = None,
    ) -> None:
        self._store = store
        self._collection = collection
        self._order_by = order_by
        self._missing_cursor = missing_cursor
        self._max_per_page = max_per_page

    async def list(
        self,
        last_key: Optional[str],
        per_page: int,
    ) -> Page[DocumentSnapshot]:
        self._validate_per_page(per_page)

        start_after = await self._resolve_cursor(last_key)

        snapshots = await self._store.query(
            self._collection,
            order_by=self._order_by,
            limit=per_page + 1,
            start_after=start_after,
        )

        page = Page(items=snapshots[:per_page], has_more=len(snapshots) > per_page)

        logger.debug(
            "Listed page",
            extra={
                "collection": self._collection,
                "last_key": last_key,
                "per_page": per_page,
                "returned": len(page.items),
                "has_more": page.has_more,
            }
        )

        return page

    def _validate_per_page(self, per_page: int) -> None:
        # bool is an int subclass, but per_page=True is never intended
        if not isinstance(per_page, int) or isinstance(per_page, bool):
            raise InvalidArgumentError(f"per_page must be an integer, got {per_page!r}")
        if per_page <= 0:
            raise InvalidArgumentError(f"per_page must be positive, got {per_page}")
        if self._max_per_page is not None and per_page > self._max_per_page:
            raise InvalidArgumentError(
                f"per_page must be at most {self._max_per_page}, got {per_page}"
            )

    async def _resolve_cursor(self, last_key: Optional[str]) -> Optional[DocumentSnapshot]:
        if not last_key:
            return None

        snapshot = await self._store.get(self._collection, last_key)
        if snapshot is not None:
            return snapshot

        if self._missing_cursor is MissingCursorPolicy.ERROR:
            raise CursorNotFoundError(last_key)

        logger.warning(
            "Cursor document not found, listing from the beginning",
            extra={"collection": self._collection, "last_key": last_key}
        )
        return None
