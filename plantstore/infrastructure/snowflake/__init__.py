"""
Snowflake integration: connection management and the document store.
"""

from .client import (
    SnowflakeConfig,
    SnowflakeConnection,
    SnowflakeConnectionError,
    get_snowflake_connection,
)
from .documents import (
    DocumentSnapshot,
    DocumentStore,
    DocumentStoreError,
    InMemoryDocumentStore,
    SnowflakeDocumentStore,
    create_document_store,
)

__all__ = [
    "DocumentSnapshot",
    "DocumentStore",
    "DocumentStoreError",
    "InMemoryDocumentStore",
    "SnowflakeConfig",
    "SnowflakeConnection",
    "SnowflakeConnectionError",
    "SnowflakeDocumentStore",
    "create_document_store",
    "get_snowflake_connection",
]
