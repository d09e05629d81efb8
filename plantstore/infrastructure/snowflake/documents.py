"""
Document store backed by Snowflake.

Documents are JSON objects grouped into named collections and keyed by an
opaque id. Snowflake keeps them in a single table with a VARIANT column:

    CREATE TABLE IF NOT EXISTS DOCUMENTS (
        collection VARCHAR NOT NULL,
        doc_id     VARCHAR NOT NULL,
        data       VARIANT NOT NULL,
        written_at TIMESTAMP_TZ DEFAULT CURRENT_TIMESTAMP(),
        PRIMARY KEY (collection, doc_id)
    );

Ordered queries page with a keyset ("start after this document") rather
than OFFSET, so a page boundary stays put while new documents arrive.
Ordering is by the requested field descending, then by doc_id descending to
keep ties stable. Order fields are compared as strings: callers store
fixed-width ISO-8601 timestamps there. Documents missing the order field
are left out of ordered queries.

An in-memory implementation with identical semantics backs mock mode
and the tests.
"""

import asyncio
import copy
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol
from uuid import uuid4

from .client import SnowflakeConnection

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DocumentStoreError(Exception):
    """Raised when a document store read, write or query fails."""
    pass


@dataclass(frozen=True)
class DocumentSnapshot:
    """A document as read from the store: its id plus its raw fields."""
    id: str
    data: dict[str, Any] = field(default_factory=dict)


def new_document_id() -> str:
    return uuid4().hex


class DocumentStore(Protocol):
    """
    Protocol for document persistence.

    The repositories only depend on this protocol, so tests can hand
    them the in-memory store and production can hand them Snowflake.
    """

    def new_id(self) -> str:
        """Allocate an id for a document that has not been written yet."""
        ...

    async def get(self, collection: str, doc_id: str) -> Optional[DocumentSnapshot]:
        """Fetch one document, or None if it does not exist."""
        ...

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Write a document under the given id."""
        ...

    async def query(
        self,
        collection: str,
        *,
        order_by: str,
        limit: int,
        start_after: Optional[DocumentSnapshot] = None,
    ) -> list[DocumentSnapshot]:
        """Documents ordered by `order_by` descending, after `start_after`."""
        ...


def _cursor_value(snapshot: DocumentSnapshot, order_by: str) -> Any:
    value = snapshot.data.get(order_by)
    if value is None:
        raise DocumentStoreError(
            f"Cursor document {snapshot.id} has no '{order_by}' field"
        )
    return value


def _check_identifier(name: str, what: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid {what}: {name!r}")
    return name


class SnowflakeDocumentStore:
    """
    Snowflake implementation of DocumentStore.

    The connector is synchronous, so each statement runs in a worker
    thread. Every driver failure surfaces as DocumentStoreError; nothing
    is retried here.
    """

    def __init__(self, connection: SnowflakeConnection, table: str = "DOCUMENTS") -> None:
        self._conn = connection
        self._table = _check_identifier(table, "table name")

    def new_id(self) -> str:
        return new_document_id()

    async def get(self, collection: str, doc_id: str) -> Optional[DocumentSnapshot]:
        rows = await self._execute(
            f"""
            SELECT doc_id, data
            FROM {self._table}
            WHERE collection = %s AND doc_id = %s
            """,
            (collection, doc_id),
            fetch=True,
        )
        if not rows:
            return None
        return self._snapshot_from_row(rows[0])

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        # PARSE_JSON is not allowed in a VALUES clause, hence INSERT ... SELECT
        await self._execute(
            f"""
            INSERT INTO {self._table} (collection, doc_id, data)
            SELECT %s, %s, PARSE_JSON(%s)
            """,
            (collection, doc_id, json.dumps(data)),
        )

        logger.debug(
            "Wrote document",
            extra={"collection": collection, "doc_id": doc_id}
        )

    async def query(
        self,
        collection: str,
        *,
        order_by: str,
        limit: int,
        start_after: Optional[DocumentSnapshot] = None,
    ) -> list[DocumentSnapshot]:
        order_field = f'data:"{_check_identifier(order_by, "order field")}"::STRING'
        params: list[Any] = [collection]
        keyset = ""

        if start_after is not None:
            value = _cursor_value(start_after, order_by)
            keyset = f"AND ({order_field} < %s OR ({order_field} = %s AND doc_id < %s))"
            params.extend([str(value), str(value), start_after.id])

        params.append(limit)

        rows = await self._execute(
            f"""
            SELECT doc_id, data
            FROM {self._table}
            WHERE collection = %s
              AND {order_field} IS NOT NULL
              {keyset}
            ORDER BY {order_field} DESC, doc_id DESC
            LIMIT %s
            """,
            tuple(params),
            fetch=True,
        )
        return [self._snapshot_from_row(row) for row in rows]

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _run(self, query: str, params: tuple, fetch: bool) -> list:
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
            if fetch:
                return cursor.fetchall()
            self._conn.commit()
            return []
        finally:
            cursor.close()

    async def _execute(self, query: str, params: tuple, fetch: bool = False) -> list:
        try:
            return await asyncio.to_thread(self._run, query, params, fetch)
        except Exception as e:
            logger.error(
                "Document store statement failed",
                extra={"table": self._table, "error": str(e)}
            )
            raise DocumentStoreError(f"Document store failure: {e}") from e

    def _snapshot_from_row(self, row) -> DocumentSnapshot:
        """
        Build a snapshot from a (doc_id, data) row.

        The connector returns VARIANT columns as JSON text; other drivers
        hand back already-parsed values. Both are accepted.
        """
        doc_id, raw = row[0], row[1]

        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as e:
                raise DocumentStoreError(
                    f"Document {doc_id} holds invalid JSON: {e}"
                ) from e

        if not isinstance(raw, dict):
            raise DocumentStoreError(
                f"Document {doc_id} is not a JSON object"
            )

        return DocumentSnapshot(id=str(doc_id), data=raw)


# ---------------------------------------------------------------------------
# In-memory Store for Local Development
# ---------------------------------------------------------------------------

class InMemoryDocumentStore:
    """
    In-memory document store for local development.

    Stores documents in a dictionary structure ({collection: {id: data}})
    and copies data on the way in and out, so callers can't mutate stored
    state by accident, just as with a real database.

    Not suitable for production, but perfect for:
    - Local development
    - Unit tests
    - CI/CD environments
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        logger.info("Initialized in-memory document store")

    def new_id(self) -> str:
        return new_document_id()

    async def get(self, collection: str, doc_id: str) -> Optional[DocumentSnapshot]:
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    async def query(
        self,
        collection: str,
        *,
        order_by: str,
        limit: int,
        start_after: Optional[DocumentSnapshot] = None,
    ) -> list[DocumentSnapshot]:
        documents = self._collections.get(collection, {})

        keyed = [
            ((str(data[order_by]), doc_id), doc_id, data)
            for doc_id, data in documents.items()
            if data.get(order_by) is not None
        ]
        keyed.sort(key=lambda item: item[0], reverse=True)

        if start_after is not None:
            cursor_key = (str(_cursor_value(start_after, order_by)), start_after.id)
            keyed = [item for item in keyed if item[0] < cursor_key]

        return [
            DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))
            for _, doc_id, data in keyed[:limit]
        ]

    # Helper method for testing
    def _put_raw(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Write a document without copying (for test setup)."""
        self._collections.setdefault(collection, {})[doc_id] = data


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_document_store(
    connection: Optional[SnowflakeConnection] = None,
    table: str = "DOCUMENTS",
    mock_mode: bool = False,
) -> DocumentStore:
    """
    Create a document store based on configuration.

    Args:
        connection: Open Snowflake connection (required if not mock_mode)
        table: Table holding the documents
        mock_mode: If True, return the in-memory store

    Returns:
        DocumentStore implementation (Snowflake or in-memory)
    """
    if mock_mode:
        return InMemoryDocumentStore()

    if connection is None:
        raise ValueError("connection is required when not in mock mode")

    return SnowflakeDocumentStore(connection, table=table)
