"""Configuration management for the OneDrive index gateway."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from odindex.core.obfuscation import DEFAULT_PASSPHRASE, reveal_obfuscated_token

load_dotenv()

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "https://mozilla.github.io"]


class Settings(BaseModel):
    """Gateway configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    app_env: str = "dev"
    version: str = "0.1.0"
    database_url: str = "sqlite:///./od_tokens.db"
    obfuscation_passphrase: str = DEFAULT_PASSPHRASE

    base_directory: str = "/"
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://localhost"
    scope: str = "user.read files.read.all offline_access"
    auth_api: str = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
    authorize_api: str = "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
    drive_api: str = "https://graph.microsoft.com/v1.0/me/drive"
    upstream_timeout: float = 10.0

    cache_control_header: str = "max-age=0, s-maxage=60, stale-while-revalidate"
    max_items: int = Field(default=100, ge=1)
    protected_routes: tuple[str, ...] = ()
    cors_origins: tuple[str, ...] = tuple(DEFAULT_CORS_ORIGINS)
    redirect_cors_origin: str = "https://mozilla.github.io"
    proxy_size_limit: int = 4 * 1024 * 1024

    @field_validator("protected_routes", "cors_origins", mode="before")
    @classmethod
    def assemble_list(cls, value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            if not value:
                return ()
            return tuple(item.strip() for item in value.split(",") if item.strip())
        if isinstance(value, (list, tuple)):
            return tuple(value)
        return ()

    @field_validator("drive_api")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("sqlite+aiosqlite://"):
            return self.database_url
        if self.database_url.startswith("sqlite:///"):
            return self.database_url.replace("sqlite:///", "sqlite+aiosqlite:///")
        if self.database_url.startswith("sqlite://"):
            return self.database_url.replace("sqlite://", "sqlite+aiosqlite://")
        return self.database_url


def _build_settings() -> Settings:
    obfuscated_secret = os.getenv("OBFUSCATED_CLIENT_SECRET")
    passphrase = os.getenv("OBFUSCATION_PASSPHRASE") or DEFAULT_PASSPHRASE
    raw_values: dict[str, Any] = {
        "app_env": os.getenv("APP_ENV"),
        "version": os.getenv("APP_VERSION"),
        "database_url": os.getenv("DATABASE_URL"),
        "base_directory": os.getenv("BASE_DIRECTORY"),
        "client_id": os.getenv("CLIENT_ID"),
        "obfuscation_passphrase": passphrase,
        "client_secret": reveal_obfuscated_token(obfuscated_secret, passphrase) if obfuscated_secret else None,
        "redirect_uri": os.getenv("REDIRECT_URI"),
        "scope": os.getenv("SCOPE"),
        "auth_api": os.getenv("AUTH_API"),
        "authorize_api": os.getenv("AUTHORIZE_API"),
        "drive_api": os.getenv("DRIVE_API"),
        "upstream_timeout": os.getenv("UPSTREAM_TIMEOUT"),
        "cache_control_header": os.getenv("CACHE_CONTROL_HEADER"),
        "max_items": os.getenv("MAX_ITEMS"),
        "protected_routes": os.getenv("PROTECTED_ROUTES"),
        "cors_origins": os.getenv("CORS_ORIGINS"),
        "redirect_cors_origin": os.getenv("REDIRECT_CORS_ORIGIN"),
        "proxy_size_limit": os.getenv("PROXY_SIZE_LIMIT"),
    }
    filtered_values = {key: value for key, value in raw_values.items() if value is not None}
    return Settings(**filtered_values)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return _build_settings()
