"""
Runtime configuration helpers for the data platform service.

Loads DATABASE_URL and the other variables from the .env file located in the
project root, without overriding values already provided by the environment.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import EmailStr, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    # Required field, must come from .env
    database_url: str = Field(..., alias="DATABASE_URL")

    app_name: str = Field(default="Edubridgepeople", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")

    # Identity
    email_confirmation_required: bool = Field(default=True, alias="EMAIL_CONFIRMATION_REQUIRED")
    email_confirmation_ttl_hours: int = Field(default=48, alias="EMAIL_CONFIRMATION_TTL_HOURS")
    email_redirect_url: str | None = Field(default=None, alias="EMAIL_REDIRECT_URL")

    email_host: str | None = Field(default=None, alias="EMAIL_HOST")
    email_port: int = Field(default=587, alias="EMAIL_PORT")
    email_username: str | None = Field(default=None, alias="EMAIL_USERNAME")
    email_password: str | None = Field(default=None, alias="EMAIL_PASSWORD")
    email_from_address: EmailStr | None = Field(default=None, alias="EMAIL_FROM_ADDRESS")
    email_use_tls: bool = Field(default=True, alias="EMAIL_USE_TLS")
    mailgun_api_key: str | None = Field(default=None, alias="MAILGUN_API_KEY")
    mailgun_domain: str | None = Field(default=None, alias="MAILGUN_DOMAIN")

    # Object storage
    storage_root: str = Field(default="storage", alias="STORAGE_ROOT")
    storage_max_upload_bytes: int = Field(default=10 * 1024 * 1024, alias="STORAGE_MAX_UPLOAD_BYTES")
    s3_endpoint_url: str | None = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_bucket: str | None = Field(default=None, alias="S3_BUCKET")
    s3_region: str | None = Field(default=None, alias="S3_REGION")
    s3_public_base_url: str | None = Field(default=None, alias="S3_PUBLIC_BASE_URL")

    # Feed behaviour
    link_previews_enabled: bool = Field(default=True, alias="LINK_PREVIEWS_ENABLED")
    link_preview_timeout: float = Field(default=4.0, alias="LINK_PREVIEW_TIMEOUT")
    redact_resource_contacts: bool = Field(default=False, alias="REDACT_RESOURCE_CONTACTS")
    realtime_queue_size: int = Field(default=100, alias="REALTIME_QUEUE_SIZE")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
