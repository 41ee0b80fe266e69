"""Process-level settings loaded from the environment / .env file."""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="DBSNAP_", extra="ignore"
    )

    # Migration defaults
    DEFAULT_BATCH_SIZE: int = 1000
    MAX_BOUNDED_TEXT_SIZE: int = 1_000_000
    DEFAULT_TARGET_FILE: str = "./snapshot.db"
    DEFAULT_REPORT_FILE: str = "./migration-report.md"

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.LOG_LEVEL.upper(), logging.INFO)


settings = Settings()
