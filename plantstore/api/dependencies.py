"""
FastAPI dependency injection.

Dependencies provide instances of stores, repositories, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests
- Configuration is centralized
- Resource lifecycle (connections, clients) is managed properly

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Generator

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..infrastructure.snowflake.client import SnowflakeConfig, get_snowflake_connection
from ..infrastructure.snowflake.documents import (
    DocumentStore,
    create_document_store,
)
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client
from ..repositories.paginator import MissingCursorPolicy
from ..repositories.plants import PlantRepository

logger = logging.getLogger(__name__)

# Global mock instances (shared across requests so data survives between them)
_mock_document_store = None
_mock_storage_client = None


def _storage_config(settings: Settings) -> StorageConfig:
    return StorageConfig(
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        bucket_name=settings.r2_bucket_name,
        endpoint_url=settings.r2_endpoint,
        public_base_url=settings.r2_public_url,
        public_acl=settings.r2_object_acl or None,
    )


# ---------------------------------------------------------------------------
# Store Dependencies
# ---------------------------------------------------------------------------

def get_document_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[DocumentStore, None, None]:
    """
    Provide the document store.

    This is a generator function (yields instead of returns) because
    the Snowflake connection must be closed after the request. FastAPI
    runs the code after `yield` once the response is sent.

    In mock mode, the same in-memory store is reused across requests.
    """
    global _mock_document_store

    if settings.snowflake_mock_mode:
        if _mock_document_store is None:
            _mock_document_store = create_document_store(mock_mode=True)
            logger.info("Created shared in-memory document store")
        yield _mock_document_store
        return

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    with get_snowflake_connection(config) as conn:
        logger.debug("Created Snowflake document store")
        yield create_document_store(conn, table=settings.snowflake_documents_table)


def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageClient:
    """
    Provide storage client for plant images.

    Returns either R2 client or mock client based on settings.
    In mock mode, the same client is reused across requests.
    """
    global _mock_storage_client

    if settings.r2_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(
                config=_storage_config(settings) if settings.r2_public_url else None,
                mock_mode=True,
            )
            logger.info("Created shared mock storage client")
        return _mock_storage_client

    client = create_storage_client(config=_storage_config(settings))
    logger.debug("Created R2 storage client")
    return client


# ---------------------------------------------------------------------------
# Repository Dependencies
# ---------------------------------------------------------------------------

def get_plant_repository(
    settings: Annotated[Settings, Depends(get_settings)],
    documents: Annotated[DocumentStore, Depends(get_document_store)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
) -> PlantRepository:
    """Provide PlantRepository wired to the configured stores."""
    return PlantRepository(
        documents,
        storage,
        collection=settings.plants_collection,
        storage_folder=settings.plants_storage_folder,
        cache_max_age_seconds=settings.attachment_cache_max_age_seconds,
        resolve_urls_in_list=settings.plants_list_resolve_urls,
        missing_cursor=MissingCursorPolicy(settings.plants_missing_cursor),
        max_per_page=settings.plants_max_per_page,
    )


def reset_mock_stores() -> None:
    """Drop the shared mock stores (for tests)."""
    global _mock_document_store, _mock_storage_client
    _mock_document_store = None
    _mock_storage_client = None


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_settings)]
DocumentStoreDep = Annotated[DocumentStore, Depends(get_document_store)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
PlantRepositoryDep = Annotated[PlantRepository, Depends(get_plant_repository)]
