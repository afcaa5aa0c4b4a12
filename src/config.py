"""Process settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Process-level configuration (environment variables or .env file).

    Source/destination mappings live in the sync YAML, not here.
    """

    # --- App ---
    app_name: str = "Lifelog Sync"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | production

    # --- Sync config ---
    sync_config_path: str | None = None  # defaults to the bundled sync_config.yaml

    # --- Notion ---
    notion_token: str = ""
    notion_version: str = "2022-06-28"

    # --- Google Calendar ---
    google_calendar_access_token: str = ""  # refreshed out of process

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
