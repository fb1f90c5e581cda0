"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "FlowTrack Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://flowtrack@localhost:5432/flowtrack"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "flowtrack"
    llm_api_key: str | None = None
    llm_base_url: str | None = None
    llm_schedule_model: str = "gpt-4o-mini"
    llm_chat_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 30.0
    llm_max_attempts: int = 3
    llm_backoff_initial_seconds: float = 1.0


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
