from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    model: str = "llama-3.1-8b-instant"
    temperature: float = 0.1
    max_tokens: int = 160
    openai_api_key: str | None = None
    openai_base_url: str | None = "https://api.groq.com/openai/v1"
    request_timeout_seconds: float = 30.0

    cors_origins: str = "*"

    redis_url: str | None = None
    # Unset means rooms persist indefinitely
    session_ttl_seconds: int | None = None
    message_ttl_seconds: int | None = None

    default_room_id: str = "default-room"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="allow",
    )


def get_settings() -> Settings:
    """Return the application settings singleton (loaded from env / .env)."""
    global _SETTINGS
    try:
        return _SETTINGS
    except NameError:
        _SETTINGS = Settings()
        return _SETTINGS
