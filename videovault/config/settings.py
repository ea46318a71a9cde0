"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (or a .env file)
with defaults that run locally out of the box: blobs go to ./video-data
on disk and no credentials are needed.

Set STORAGE_BACKEND=memory for throwaway in-memory storage, or
STORAGE_BACKEND=s3 plus the S3_* variables for an S3-compatible bucket.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STORAGE_BACKENDS = ("local", "memory", "s3")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "videovault API"
    api_version: str = "v1"
    public_base_url: Optional[str] = Field(
        default=None,
        description="Base for data URLs, e.g. https://videos.example.com/video. Derived from the request when unset."
    )

    # Blob storage
    storage_backend: str = Field(
        default="local",
        description="Where uploaded video data is kept: local, memory or s3"
    )
    storage_path: str = Field(
        default="video-data",
        description=(
            "Directory for the local backend. Temp uploads older than a day "
            "are swept on startup; a directory shared between processes must "
            "not hold uploads running longer than that"
        )
    )
    stream_chunk_size: int = Field(
        default=64 * 1024,
        gt=0,
        description="Buffer size in bytes for streamed uploads and downloads"
    )
    max_upload_size_mb: int = Field(
        default=0,
        ge=0,
        description="Maximum upload size in MB. 0 means unlimited."
    )

    # S3/R2 Configuration
    s3_bucket_name: str = Field(
        default="",
        description="Bucket for the s3 backend"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint for S3-compatible services (R2, MinIO). Leave unset for AWS."
    )
    s3_access_key_id: str = Field(default="", description="S3 access key ID")
    s3_secret_access_key: str = Field(default="", description="S3 secret access key")
    s3_region: str = Field(default="auto", description="S3 region ('auto' for R2)")
    s3_key_prefix: str = Field(
        default="",
        description="Prefix prepended to every object key, e.g. 'staging/'"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("storage_backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in STORAGE_BACKENDS:
            raise ValueError(f"storage_backend must be one of {', '.join(STORAGE_BACKENDS)}")
        return value

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        List required settings that are missing for the selected backend.

        Only the s3 backend needs anything beyond the defaults.
        """
        missing = []

        if self.storage_backend == "s3":
            if not self.s3_bucket_name:
                missing.append("S3_BUCKET_NAME")
            if not self.s3_access_key_id:
                missing.append("S3_ACCESS_KEY_ID")
            if not self.s3_secret_access_key:
                missing.append("S3_SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are read once per process. For tests, call
    get_settings.cache_clear() or pass a Settings to create_app.
    """
    return Settings()
