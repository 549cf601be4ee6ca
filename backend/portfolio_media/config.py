"""
Portfolio Media Configuration Management Module

This module provides configuration management for the portfolio media service
using Pydantic Settings. It loads and validates the environment variables
required for:
- Application settings (name, environment, debug mode, logging)
- S3/MinIO object storage (endpoint, credentials, bucket, public URL base)
- Managed transfer tuning (multipart threshold and chunk size)

The upload policy itself (size ceilings, MIME allow-lists, JPEG quality) is
fixed and lives in ``portfolio_media.models.media.MediaPolicy``; it is not read
from the environment.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BYTES_PER_MB = 1024 * 1024


class Settings(BaseSettings):
    """
    Configuration settings for the portfolio media service.

    Values come from environment variables and an optional ``.env`` file, with
    full type validation. Every field has a development default so the service
    can start against a local MinIO without any configuration.

    Configuration Categories:
    - Application: name, environment, debug mode, logging, bind address
    - S3/MinIO: object storage credentials, bucket and public URL base
    - Transfer: multipart threshold and chunk size for resumable uploads

    Example usage:
        ```python
        from portfolio_media.config import Settings

        settings = Settings()
        print(f"Uploading into bucket: {settings.s3_bucket_name}")
        print(f"Public URLs start with: {settings.resolved_public_base_url}")
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="portfolio-media",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(
        default=True, description="Enable debug mode with hot-reload and verbose logging"
    )

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(
        default=False,
        description="Emit structured JSON log lines instead of human-readable text",
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8000, description="Port number for the API server", ge=1, le=65535)

    cors_origins: list[str] = Field(
        default=["http://localhost:5173"],
        description="List of allowed CORS origins for the portfolio site and admin CMS",
    )

    # =========================================================================
    # S3/MinIO Storage Configuration
    # =========================================================================

    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint URL for MinIO (None for AWS S3)"
    )

    s3_access_key_id: str | None = Field(
        default="minioadmin",
        description="S3/MinIO access key ID for authentication",
    )

    s3_secret_access_key: str | None = Field(
        default="minioadmin",
        description="S3/MinIO secret access key for authentication",
    )

    s3_bucket_name: str = Field(
        default="portfolio-media", description="Bucket holding uploaded images and videos"
    )

    s3_region: str = Field(
        default="us-east-1",
        description="AWS region for the bucket (also used for MinIO compatibility)",
    )

    public_base_url: str | None = Field(
        default=None,
        description=(
            "Base URL under which stored objects are publicly readable "
            "(e.g. a CDN). Derived from the endpoint and bucket when unset."
        ),
    )

    # =========================================================================
    # Transfer Settings
    # =========================================================================

    multipart_threshold_mb: int = Field(
        default=8,
        description="Payloads larger than this are sent as a multipart (chunked) upload",
        ge=5,
        le=100,
    )

    multipart_chunk_size_mb: int = Field(
        default=8,
        description="Size of each multipart chunk in megabytes (S3 minimum is 5MB)",
        ge=5,
        le=100,
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("public_base_url", "s3_endpoint_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Drop trailing slashes so URLs can be joined with a single '/'."""
        if v is None:
            return None
        stripped = v.strip().rstrip("/")
        return stripped or None

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_storage_configured(self) -> bool:
        """
        Check if object storage is usable.

        A bucket name and both halves of the credential pair are required.
        When False, upload and delete requests are refused before any work.
        """
        return all([self.s3_bucket_name, self.s3_access_key_id, self.s3_secret_access_key])

    @property
    def resolved_public_base_url(self) -> str:
        """
        Base URL of publicly readable objects, without a trailing slash.

        Uses ``public_base_url`` when set. Otherwise path-style
        ``{endpoint}/{bucket}`` for MinIO and custom endpoints, or the
        virtual-hosted AWS form ``https://{bucket}.s3.{region}.amazonaws.com``.
        """
        if self.public_base_url:
            return self.public_base_url
        if self.s3_endpoint_url:
            return f"{self.s3_endpoint_url}/{self.s3_bucket_name}"
        return f"https://{self.s3_bucket_name}.s3.{self.s3_region}.amazonaws.com"

    @property
    def multipart_threshold_bytes(self) -> int:
        """Multipart threshold converted to bytes for boto3's TransferConfig."""
        return self.multipart_threshold_mb * BYTES_PER_MB

    @property
    def multipart_chunk_size_bytes(self) -> int:
        """Multipart chunk size converted to bytes for boto3's TransferConfig."""
        return self.multipart_chunk_size_mb * BYTES_PER_MB


@lru_cache
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    The ``lru_cache`` decorator makes this a process-wide singleton: the
    environment and ``.env`` file are read once on first call and the same
    object is returned afterwards. Tests call ``get_settings.cache_clear()``
    when they need a fresh read.

    Returns:
        Settings: The global configuration instance.
    """
    return Settings()
