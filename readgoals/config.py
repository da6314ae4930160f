"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Storage
    db_path: str = os.getenv("DB_PATH", "data/reading_goals.db")

    # Server
    server_host: str = os.getenv("SERVER_HOST", "0.0.0.0")
    server_port: int = int(os.getenv("SERVER_PORT", "8000"))

    # Goals
    default_annual_target: int = 52  # 1 volume per week
    fallback_pages_per_volume: int = 200
    recent_periods_count: int = 12
    max_recent_periods_count: int = 1000

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
