"""Configuration settings using Pydantic BaseSettings."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    storage_backend: Literal["sqlite", "json", "memory"] = Field(
        default="sqlite", description="Persistence gateway used by the task store"
    )
    database_path: Path = Field(default=Path("data/matrixtask.db"), description="SQLite database file")
    legacy_data_file: Path = Field(
        default=Path("data/matrixtask-data.json"), description="Legacy JSON task file to migrate from"
    )
    migration_flag_file: Path = Field(
        default=Path("data/.migrated"), description="Marker written once the legacy data was migrated"
    )

    # Application Configuration
    app_host: str = Field(default="0.0.0.0", description="FastAPI host")
    app_port: int = Field(default=8000, description="FastAPI port")
    debug: bool = Field(default=False, description="Enable debug mode")
    environment: str = Field(default="development", description="Deployment environment")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Path = Field(default=Path("logs"), description="Directory for log files")
