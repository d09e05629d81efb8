"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.

Most code never touches this module directly - it goes through
SnowflakeDocumentStore, which owns the SQL and hands plain dictionaries
to the repositories.
"""

import base64
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional, Protocol

logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a fake without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "PLANTS"
    schema: str = "REGISTRY"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(
    key_path: Optional[str] = None,
    key_base64: Optional[str] = None,
) -> bytes:
    """
    Load a PEM private key for key-pair authentication.

    Snowflake requires the private key as DER bytes, not a file path.
    The key comes either from a file or from a base64-encoded PEM
    (handy for deployments where mounting files is awkward).
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    if key_path:
        with open(key_path, 'rb') as key_file:
            pem_bytes = key_file.read()
    elif key_base64:
        pem_bytes = base64.b64decode(key_base64)
    else:
        raise SnowflakeConnectionError("No private key source provided")

    private_key = serialization.load_pem_private_key(
        pem_bytes,
        password=None,  # No password on the key
        backend=default_backend()
    )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If a private key (path or base64) is set, uses key-pair auth
    - Otherwise, uses password auth

    Only connection failures are translated to SnowflakeConnectionError.
    Errors raised by the caller while the connection is open pass through
    untouched.

    Usage:
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            # do work
            conn.commit()
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    connect_params = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
        'client_session_keep_alive': True,
    }

    if config.private_key_path or config.private_key_base64:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params['private_key'] = _load_private_key(
            config.private_key_path,
            config.private_key_base64,
        )
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params['password'] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or a private key must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )
