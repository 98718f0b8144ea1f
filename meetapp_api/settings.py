"""Application settings and configuration."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


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
    postgres_user: str = "meetapp"
    postgres_password: str = "meetapp_dev_password"
    postgres_db: str = "meetapp"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    # Redis (broker, usage cache, notifications)
    redis_url: str = "redis://localhost:6379/0"

    # API
    app_url: str = "http://localhost:8000"
    api_key: Optional[str] = None  # Bearer key for the generate trigger
    environment: str = "development"

    # Registry service
    registry_base_url: str = "http://localhost:8080"
    registry_api_key: Optional[str] = None
    registry_enqueue_path: str = "/api/fedresurs/enqueue/message-tables"
    registry_request_timeout_seconds: float = 30.0
    registry_timeout_minutes: int = 5  # Wait window for message bodies

    # Generation
    temp_root: Path = Path("./storage/tmp/meeting_applications")
    output_timezone: str = "UTC"
    generation_max_retries: int = 3
    generation_retry_delay_seconds: int = 60
    notification_toast_life_ms: int = 6000

    # Ghostscript
    ghostscript_path: Optional[str] = None
    prefer_ghostscript: bool = True

    # Object storage (MinIO / S3)
    object_storage_endpoint: str = "localhost:9000"
    object_storage_access_key: Optional[str] = None  # Required in non-dev
    object_storage_secret_key: Optional[str] = None  # Required in non-dev
    object_storage_bucket: str = "meeting-applications"
    object_storage_region: str = "ru-central1"
    object_storage_use_ssl: bool = False
    object_storage_root: str = "/onb"
    storage_usage_cache_ttl_hours: int = 24

    # Cloud drive
    cloud_drive_api_url: str = "https://cloud-api.yandex.net/v1/disk"
    cloud_drive_root: str = "/onb"
    cloud_drive_timeout_seconds: float = 60.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

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
    def registry_timeout_seconds(self) -> int:
        return self.registry_timeout_minutes * 60

    def validate_production_settings(self):
        """Validate settings for production environment."""
        env = self.environment.lower()
        if env not in ("development", "test", "dev"):
            if not self.object_storage_access_key or not self.object_storage_secret_key:
                raise ValueError(
                    "OBJECT_STORAGE_ACCESS_KEY and OBJECT_STORAGE_SECRET_KEY are required in production."
                )
            if not self.registry_api_key:
                raise ValueError("REGISTRY_API_KEY is required in production.")
            if not self.api_key:
                raise ValueError(
                    "API_KEY is required in production. "
                    "The generate endpoint must not be left unauthenticated."
                )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
