# app/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- App ---
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    FRONTEND_URL: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # --- GTFS ---
    GTFS_DATA_PATH: str = "data/gtfs"
    GTFS_DELIMITER: str = ","
    GTFS_ENCODING: str = "utf-8-sig"
    GTFS_WATCH_SECONDS: int = 0

    # --- Live trains ---
    TIMEZONE: str = "Europe/Zurich"
    MAX_LIVE_TRAINS: int = 30
    DEFAULT_OPERATOR: str = "SBB"
    DEFAULT_TRAIN_NAME: str = "Train"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


settings = Settings()
