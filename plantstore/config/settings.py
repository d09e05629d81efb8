"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without external services.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Plant Registry API"
    api_version: str = "v1"

    # Snowflake Configuration
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_private_key_base64: Optional[str] = Field(
        default=None,
        description="Base64-encoded private key (for deployment, alternative to file path)"
    )
    snowflake_database: str = Field(
        default="PLANTS",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="REGISTRY",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_documents_table: str = Field(
        default="DOCUMENTS",
        description="Table holding document collections (collection, doc_id, data VARIANT)"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory document store instead of Snowflake. Enables local dev without DB."
    )

    # R2/S3 Storage Configuration
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account ID for R2"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 secret access key"
    )
    r2_bucket_name: str = Field(
        default="plant-images",
        description="R2 bucket name for plant images"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="R2 endpoint URL. Auto-constructed from account_id if not provided."
    )
    r2_public_url: Optional[str] = Field(
        default=None,
        description="Public base URL of the bucket (r2.dev subdomain or custom domain)."
    )
    r2_object_acl: str = Field(
        default="public-read",
        description="Canned ACL for public objects. Empty disables ACLs (bucket served via public domain)."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real R2. Enables local dev without object storage."
    )

    # Plant Repository Behavior
    plants_collection: str = Field(
        default="plants",
        description="Document collection holding plants"
    )
    plants_storage_folder: str = Field(
        default="plants",
        description="Top-level folder for plant images in the bucket"
    )
    plants_default_per_page: int = Field(
        default=20,
        description="Page size when the client doesn't ask for one"
    )
    plants_max_per_page: int = Field(
        default=100,
        description="Largest page size a client may request"
    )
    plants_list_resolve_urls: bool = Field(
        default=False,
        description="Expand image URLs for every plant in list responses, not just single reads."
    )
    plants_missing_cursor: Literal["restart", "error"] = Field(
        default="restart",
        description="When last_key doesn't match a plant: list from the start, or reject the request."
    )
    attachment_cache_max_age_seconds: int = Field(
        default=60 * 60 * 24,
        description="Cache-Control max-age for stored images. Images never change once written."
    )

    # Upload Limits
    max_attachments_per_plant: int = Field(
        default=10,
        description="Maximum images per created plant"
    )
    max_upload_size_mb: int = Field(
        default=20,
        description="Maximum total image upload size in MB per request"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def r2_endpoint(self) -> str:
        """
        Construct R2 endpoint URL from account ID.

        R2 endpoints follow the pattern: https://{account_id}.r2.cloudflarestorage.com
        """
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        # Snowflake only required if not in mock mode
        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            has_key = self.snowflake_private_key_path or self.snowflake_private_key_base64
            if not self.snowflake_password and not has_key:
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        # R2 only required if not in mock mode
        if not self.r2_mock_mode:
            if not self.r2_account_id and not self.r2_endpoint_url:
                missing.append("R2_ACCOUNT_ID")
            if not self.r2_access_key_id:
                missing.append("R2_ACCESS_KEY_ID")
            if not self.r2_secret_access_key:
                missing.append("R2_SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
