"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_STORAGE_NAMESPACE = "actor-matches"


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CastMatch", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_image_base_url: HttpUrl = Field(
        default="https://image.tmdb.org/t/p/w185", alias="TMDB_IMAGE_BASE_URL"
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./castmatch.db", alias="DATABASE_URL"
    )
    storage_namespace: str = Field(
        default=DEFAULT_STORAGE_NAMESPACE, alias="STORAGE_NAMESPACE"
    )
    seed_default_selections: bool = Field(
        default=True, alias="SEED_DEFAULT_SELECTIONS"
    )
    saved_search_limit: int = Field(
        default=200, alias="SAVED_SEARCH_LIMIT", ge=1, le=10_000
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("storage_namespace", mode="before")
    @classmethod
    def _parse_storage_namespace(cls, value: object) -> str:
        """Strip whitespace and trailing separators from the key namespace."""

        if value is None:
            return DEFAULT_STORAGE_NAMESPACE
        cleaned = str(value).strip().rstrip(":").strip()
        if not cleaned:
            raise ValueError("STORAGE_NAMESPACE must not be blank")
        return cleaned

    @field_validator("log_level", mode="before")
    @classmethod
    def _parse_log_level(cls, value: object) -> str:
        if value is None or value == "":
            return "INFO"
        level = str(value).strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("Unknown log level configured")
        return level

    def storage_key(self, suffix: str) -> str:
        """Return a namespaced key for the durable local store."""

        return f"{self.storage_namespace}:{suffix}"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
