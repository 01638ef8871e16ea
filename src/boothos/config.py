"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    staff_token: str
    public_base_url: str = "http://localhost:8000"

    bgremover_api_base: str | None = None
    bgremover_service_token: str | None = None
    bgremover_timeout_seconds: float = 45.0
    staging_secret: str | None = None
    staging_dir: str = "storage/tmp/bgremover"

    storage_backend: str = "local"
    storage_root: str = "storage/assets"
    supabase_storage_bucket: str = "boothos"

    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    email_from: str = "photos@boothos.app"
    outbox_dir: str = "storage/outbox"

    openai_api_key: str | None = None
    openai_image_model: str = "gpt-image-1"

    selection_ttl_hours: int = 72
    link_ttl_hours: int = 168
    attachments_ttl_hours: int = 72
    delivery_channel: str = "attachments"
    canvas_width: int = 1920
    canvas_height: int = 1080
    plan_overrides: dict[str, dict[str, object]] = {}
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def resolved_staging_secret(self) -> str | None:
        """HMAC secret for staged uploads, defaulting to the service token."""
        return self.staging_secret or self.bgremover_service_token

    def ttl_hours_for(self, channel: str) -> int:
        """Download-token lifetime for a delivery channel."""
        if channel == "link":
            return self.link_ttl_hours
        return self.attachments_ttl_hours
