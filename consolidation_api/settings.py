"""
API settings.

Loaded from environment variables (prefix ``CONSOLIDATION_``) and an
optional ``.env`` file using pydantic-settings.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CONSOLIDATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Consolidation Engine"
    database_url: str = "sqlite:///./consolidation.db"
    # Optional YAML file overriding the default statement layouts
    statements_config: str | None = None
    log_level: str = "INFO"
    echo_sql: bool = False


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
