"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Tandem Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://tandem@localhost:5432/tandem"
    timezone: str = "UTC"
    planning_window_hour: int = 18
    review_window_hour: int = 18
    enforce_time_windows: bool = True
    progress_backend: str = "sql"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "tandem"
    scheduler_enabled: bool = False
    jobs_run_on_startup: bool = False
    notifications_enabled: bool = False
    notifications_provider: str = "noop"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
