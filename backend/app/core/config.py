"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Crest Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://crest@localhost:5432/crest"
    openai_api_key: str | None = None
    classifier_model: str = "gpt-4o-mini"
    intent_model: str = "gpt-4o-mini"
    generator_model: str = "gpt-4o-mini"
    reply_model: str = "gpt-4o-mini"
    insights_model: str = "gpt-4.1-nano"
    llm_timeout_seconds: float = 30.0
    ai_user_id: str = "00000000-0000-4000-8000-000000000001"
    program_debounce_seconds: int = 120
    intent_confidence_threshold: float = 0.6
    program_change_callback_url: str | None = None
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "crest"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
