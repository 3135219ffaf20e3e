"""Application configuration."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_key: str
    app_id: str = "default-app-id"
    photos_table: str = "photos"
    max_edge: int = Field(default=800, gt=0)
    jpeg_quality: float = Field(default=0.6, ge=0.0, le=1.0)
    max_payload_bytes: int = Field(default=1_000_000, gt=0)
    delete_concurrency: int = Field(default=8, gt=0)
    initial_auth_token: str | None = None
    uploader_token: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_token(raw: str | None) -> str | None:
    """Normalize an optional token; blank values disable the check."""
    if raw is None:
        return None
    cleaned = raw.strip()
    return cleaned or None
