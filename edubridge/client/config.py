"""Settings for the client core, read from the environment and ``.env``."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..config import ENV_PATH


class ClientSettings(BaseSettings):
    api_url: str | None = Field(default=None, alias="EDUBRIDGE_API_URL")
    request_timeout: float = Field(default=15.0, alias="EDUBRIDGE_REQUEST_TIMEOUT")
    profile_load_attempts: int = Field(default=4, ge=1, alias="EDUBRIDGE_PROFILE_LOAD_ATTEMPTS")
    profile_load_delay: float = Field(default=1.0, ge=0, alias="EDUBRIDGE_PROFILE_LOAD_DELAY")
    realtime_reconnect_delay: float = Field(default=2.0, ge=0, alias="EDUBRIDGE_REALTIME_RECONNECT_DELAY")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_client_settings() -> ClientSettings:
    return ClientSettings()


__all__ = ["ClientSettings", "get_client_settings"]
