"""Service configuration loaded from environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment."""

    model_config = SettingsConfigDict(env_prefix="MINDTRACK_API_")

    # API configuration
    api_host: str = "127.0.0.1"
    api_port: int = 3000

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Push events kept per user for Last-Event-ID replay
    event_history_size: int = 100

    # Upper bound for the mood history window
    max_history_days: int = 90


@lru_cache
def get_settings() -> Settings:
    return Settings()
