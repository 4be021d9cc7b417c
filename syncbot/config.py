from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Record store (PostgreSQL)
    DATABASE_URL: str

    # Slack bot settings
    SLACK_BOT_TOKEN: str | None = None

    # Text generation settings
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_MAX_TOKENS: int = 1500
    OPENAI_TEMPERATURE: float = 0.3

    # =================================================================
    # WEEKLY SYNC SETTINGS
    # =================================================================
    WEEKLY_SYNC_ENABLED: bool = True
    WEEKLY_SYNC_TIMEZONE: str = "America/Los_Angeles"
    WEEKLY_SYNC_COLLECTION_HOUR: int = 12  # Friday, noon
    WEEKLY_SYNC_SUMMARY_HOUR: int = 10  # Monday, 10am
    WEEKLY_SYNC_ADMIN_TOKEN: str | None = None

    COLLECTION_SEND_DELAY_SECONDS: float = 1.0
    SUMMARY_TIMEOUT_SECONDS: float = 120.0
    THREAD_CACHE_WINDOW_DAYS: int = 14

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 8
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def database_host(self) -> str | None:
        """Host portion of DATABASE_URL, for log lines that must not leak credentials."""
        try:
            return urlparse(self.DATABASE_URL).hostname
        except Exception:
            return None

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": 1,
                    "max_size": 4,
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
