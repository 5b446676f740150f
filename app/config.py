# app/config.py — Pydantic settings (env vars)

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Supabase
    supabase_url: str
    supabase_service_key: str

    # Auth
    jwt_secret: str

    # Build service. Unset means the placeholder builder is used.
    builder_api_url: str | None = None
    builder_api_key: str | None = None
    builder_timeout_seconds: float = 300.0
    placeholder_binary_url: str = "placeholder"

    # Pipeline event delivery
    event_queue_size: int = 256
    event_drain_timeout_seconds: float = 5.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("jwt_secret")
    @classmethod
    def _validate_jwt_secret(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("JWT_SECRET must be set and non-empty")
        return cleaned

    @field_validator("event_queue_size")
    @classmethod
    def _validate_event_queue_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("EVENT_QUEUE_SIZE must be at least 1")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
