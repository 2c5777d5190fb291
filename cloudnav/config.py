"""
Environment-backed settings for the CloudNav backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Shared secret for the auth gate. Unset means "no password configured".
    password: Optional[str] = None

    kv_backend: str = Field(default="file", validation_alias="CLOUDNAV_KV_BACKEND")  # file | memory | edgeone
    data_file: str = Field(
        default="cloudnav_data.json", validation_alias="CLOUDNAV_DATA_FILE"
    )

    # EdgeOne KV REST API
    edgeone_kv_namespace: Optional[str] = None
    edgeone_api_key: Optional[str] = None
    edgeone_api_secret: Optional[str] = None

    http_timeout: float = Field(default=15.0, validation_alias="CLOUDNAV_HTTP_TIMEOUT")

    host: str = Field(default="127.0.0.1", validation_alias="CLOUDNAV_HOST")
    port: int = Field(default=8765, validation_alias="CLOUDNAV_PORT")
    log_level: str = Field(default="info", validation_alias="CLOUDNAV_LOG_LEVEL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
