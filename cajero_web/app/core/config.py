from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Cajero Web"
    database_url: str = "sqlite:///cajero_web.db"
    log_level: str = "INFO"
    session_cookie_name: str = "cajero_session"
    session_cookie_secure: bool = False
    session_ttl_minutes: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CAJERO_",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
