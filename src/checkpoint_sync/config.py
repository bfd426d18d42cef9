"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    uploads_dir: str = "uploads"
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_image_types: str = "image/jpeg,image/png,image/jpg,image/webp,image/gif"
    cors_allow_origins: str = "*"
    capture_timeout_seconds: float = 60.0
    capture_max_retries: int = 1
    server_push: bool = False
    completed_session_retention: int = 500
    host: str = "0.0.0.0"
    port: int = 3001
    environment: str = _ENVIRONMENT
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_csv(raw: str | None) -> list[str]:
    """Parse a comma separated setting into a list of trimmed values."""
    if raw is None:
        return []
    return [value.strip() for value in raw.split(",") if value.strip()]
