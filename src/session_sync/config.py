"""Client configuration loaded from environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Sync layer settings loaded from environment."""

    model_config = SettingsConfigDict(env_prefix="MINDTRACK_")

    # Remote API
    api_url: str = "http://localhost:3000/api"
    events_path: str = "/events/stream"
    request_timeout: float = 10.0
    mood_history_days: int = 30

    # Event channel
    reconnect_initial_delay: float = 1.0
    reconnect_max_delay: float = 30.0
    seen_event_buffer: int = 256

    @property
    def events_url(self) -> str:
        return f"{self.api_url.rstrip('/')}{self.events_path}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
