"""Application settings and configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET_KEY = "dev-jwt-secret-change-in-production"
DEV_INVITATION_SECRET_KEY = "dev-invitation-secret-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = None
    postgres_user: str = "leasedoc"
    postgres_password: str = "leasedoc_dev_password"
    postgres_host: str = "localhost"
    postgres_db: str = "leasedoc"
    postgres_port: int = 5432

    # Redis (single-flight render locks)
    redis_url: str = "redis://localhost:6379/0"

    # MinIO / S3
    minio_endpoint: str = "localhost:9000"
    minio_access_key: Optional[str] = None  # Required in non-dev
    minio_secret_key: Optional[str] = None  # Required in non-dev
    minio_bucket: str = "lease-documents"
    minio_use_ssl: bool = False
    storage_timeout_seconds: float = 30.0

    # Documents
    document_signed_url_ttl: int = 3600  # 1 hour
    document_cache_control: str = "private, max-age=31536000, immutable"
    render_timeout_seconds: float = 60.0
    pdf_service_url: Optional[str] = None  # External HTML -> PDF engine; reportlab when unset
    render_lock_backend: str = "redis"  # redis, local
    render_lock_ttl_seconds: int = 120
    render_lock_blocking_timeout_seconds: float = 90.0
    index_upsert_max_attempts: int = 3
    fingerprint_length: int = 16
    fingerprint_include_updated_at: bool = False

    # API
    api_port: int = 8000
    api_host: str = "0.0.0.0"
    environment: str = "development"

    # Security
    jwt_secret_key: str = DEV_JWT_SECRET_KEY
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = 24
    invitation_secret_key: str = DEV_INVITATION_SECRET_KEY
    invitation_token_ttl_days: int = 30

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() in ("development", "dev", "test")

    def validate_production_settings(self):
        """Validate settings for non-development environments."""
        if self.is_development:
            return
        if not self.minio_access_key or not self.minio_secret_key:
            raise ValueError(
                "MINIO_ACCESS_KEY and MINIO_SECRET_KEY are required in production. "
                "Do not use default credentials."
            )
        if self.jwt_secret_key == DEV_JWT_SECRET_KEY:
            raise ValueError("JWT_SECRET_KEY must be set outside development.")
        if self.invitation_secret_key == DEV_INVITATION_SECRET_KEY:
            raise ValueError("INVITATION_SECRET_KEY must be set outside development.")
        if self.render_lock_backend == "local":
            raise ValueError(
                "RENDER_LOCK_BACKEND=local only coalesces renders inside one process. "
                "Use RENDER_LOCK_BACKEND=redis."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
