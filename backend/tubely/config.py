"""
Tubely Configuration Management Module

This module provides configuration management for the Tubely media ingestion
backend using Pydantic Settings. It loads and validates all environment
variables required for:
- Application settings (name, environment, debug mode, logging)
- Bearer token verification (process-wide signing secret)
- MongoDB connection for video metadata records
- S3 object storage and CloudFront distribution domains
- Publishing mode per asset kind (video, thumbnail)
- Upload size ceilings
- ffprobe/ffmpeg executables used for inspection and fast-start rewriting

All settings support environment variable overrides and .env file loading.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PUBLISH_MODES = {"s3", "cloudfront", "local", "data_url", "memory"}


class Settings(BaseSettings):
    """
    Configuration settings for the Tubely backend.

    Configuration Categories:
    - Application: Core app settings like name, environment, debug mode
    - Auth: JWT signing secret and algorithm
    - MongoDB: Database connection URI and connection pool settings
    - S3: Object storage credentials, bucket and public domains
    - Publishing: Where each asset kind is published and how it is referenced
    - Upload: Byte ceilings per asset kind
    - Media tools: ffprobe/ffmpeg binaries and subprocess timeout

    Example usage:
        ```python
        from tubely.config import Settings

        settings = Settings()
        print(f"Videos are published via: {settings.video_publish_mode}")
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="Tubely",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=True, description="Enable debug mode with verbose logging")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    log_json: bool = Field(
        default=True, description="Emit structured JSON log lines instead of plain text"
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8091, description="Port number for the API server", ge=1, le=65535)

    cors_origins: list[str] = Field(
        default=["http://localhost:8091"],
        description="List of allowed CORS origins for frontend access",
    )

    # =========================================================================
    # Auth Configuration
    # =========================================================================

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="Process-wide secret used to sign and verify bearer tokens.",
        min_length=32,
    )

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    jwt_expiration_hours: int = Field(
        default=24, description="JWT token expiration time in hours", ge=1, le=168
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI (e.g., mongodb://localhost:27017)",
    )

    mongodb_db_name: str = Field(
        default="tubely", description="MongoDB database name for video metadata"
    )

    mongodb_min_pool_size: int = Field(
        default=5, description="Minimum number of connections in MongoDB connection pool", ge=1
    )

    mongodb_max_pool_size: int = Field(
        default=50, description="Maximum number of connections in MongoDB connection pool", ge=1
    )

    # =========================================================================
    # S3 Storage Configuration
    # =========================================================================

    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint URL (None for AWS S3)"
    )

    s3_access_key_id: str | None = Field(
        default=None, description="S3 access key ID (None uses the default credential chain)"
    )

    s3_secret_access_key: str | None = Field(
        default=None, description="S3 secret access key"
    )

    s3_bucket_name: str = Field(
        default="tubely-media", description="S3 bucket receiving published videos and thumbnails"
    )

    s3_region: str = Field(default="us-east-1", description="AWS region for the S3 bucket")

    s3_store_domain: str | None = Field(
        default=None,
        description=(
            "Virtual-hosted object store domain used to build direct URLs as "
            "https://{bucket}.{domain}/{key}. Defaults to s3.{region}.amazonaws.com."
        ),
    )

    s3_cf_distribution: str | None = Field(
        default=None,
        description="CDN distribution base, including scheme (e.g. https://d111.cloudfront.net)",
    )

    # =========================================================================
    # Publishing Configuration
    # =========================================================================

    video_publish_mode: str = Field(
        default="cloudfront",
        description="Video destination: s3, cloudfront, local, data_url or memory",
    )

    thumbnail_publish_mode: str = Field(
        default="local",
        description="Thumbnail destination: s3, cloudfront, local, data_url or memory",
    )

    assets_root: str = Field(
        default="assets", description="Directory served at /assets for locally published files"
    )

    public_base_url: str | None = Field(
        default=None,
        description=(
            "Base URL used in local and in-memory references (e.g. http://localhost:8091). "
            "Defaults to the base URL of the incoming request."
        ),
    )

    # =========================================================================
    # File Upload Settings
    # =========================================================================

    max_video_upload_bytes: int = Field(
        default=1 << 30, description="Maximum video upload size in bytes (1 GiB)", ge=1
    )

    max_thumbnail_upload_bytes: int = Field(
        default=10 << 20, description="Maximum thumbnail upload size in bytes (10 MiB)", ge=1
    )

    upload_chunk_size: int = Field(
        default=1024 * 1024, description="Chunk size used when staging uploads", ge=1024
    )

    # =========================================================================
    # Media Tools
    # =========================================================================

    ffprobe_binary: str = Field(default="ffprobe", description="ffprobe executable")

    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")

    media_tool_timeout_seconds: float = Field(
        default=300.0,
        description="Upper bound on a single ffprobe/ffmpeg invocation",
        gt=0,
    )

    enable_faststart: bool = Field(
        default=True,
        description="Rewrite uploaded videos with moov atom first before publishing",
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

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only symmetric algorithms make sense with a shared secret."""
        valid_algorithms = {"HS256", "HS384", "HS512"}
        if v.upper() not in valid_algorithms:
            raise ValueError(
                f"Invalid jwt_algorithm '{v}'. Must be one of: {', '.join(sorted(valid_algorithms))}"
            )
        return v.upper()

    @field_validator("video_publish_mode", "thumbnail_publish_mode")
    @classmethod
    def validate_publish_mode(cls, v: str) -> str:
        normalized = v.lower()
        if normalized not in PUBLISH_MODES:
            raise ValueError(
                f"Invalid publish mode '{v}'. Must be one of: {', '.join(sorted(PUBLISH_MODES))}"
            )
        return normalized

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("s3_cf_distribution", "public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        return v.rstrip("/") if v else v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def object_store_domain(self) -> str:
        """
        Domain used for direct object store URLs.

        Falls back to the regional AWS S3 domain when s3_store_domain is unset.
        """
        return self.s3_store_domain or f"s3.{self.s3_region}.amazonaws.com"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    The @lru_cache decorator ensures that the Settings object is created only
    once on first call; subsequent calls return the cached instance without
    re-reading environment variables or .env files.

    Returns:
        Settings: The global configuration instance.
    """
    return Settings()
