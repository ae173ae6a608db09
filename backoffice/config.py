# backoffice/config.py

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Reads BACKOFFICE_* env vars and .env in the project root.
    model_config = SettingsConfigDict(
        env_prefix="BACKOFFICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str = "sqlite:///db.sqlite"
    TIMEZONE: str = "UTC"
    CRON_SECRET: Optional[str] = None
    LOG_LEVEL: str = "INFO"
    CREATE_SCHEMA: bool = True
    ECHO_SQL: bool = False

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)


@lru_cache
def get_settings() -> Settings:
    return Settings()
