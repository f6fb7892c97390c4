import os
from datetime import time
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _build_default_database_url() -> str:
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "scheduled_import")
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{db}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    PROJECT_NAME: str = "Scheduled Import API"
    API_V1_STR: str = "/api/v1"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Optional shared secret for the "run now" trigger (cron, admin panel).
    TRIGGER_TOKEN: Optional[str] = Field(default=None, validate_default=True)

    DATABASE_URL: str = Field(default_factory=_build_default_database_url)
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )

    # Worker endpoints
    IMPORT_WORKER_URL: str = "http://localhost:54321/functions/v1/import-csv-data"
    CONVERSION_WORKER_URL: str = "http://localhost:54321/functions/v1/batch-convert-images"
    WORKER_AUTH_TOKEN: Optional[str] = None
    WORKER_TIMEOUT_SECONDS: float = 60.0
    CONVERSION_TIMEOUT_SECONDS: float = 300.0

    # Chunk loop
    IMPORT_MAX_CHUNKS: int = Field(default=100, ge=1)
    IMPORT_CHUNK_DELAY_SECONDS: float = Field(default=2.0, ge=0)
    IMPORT_RESUME_ON_FAILURE: bool = True
    CONVERSION_SCOPE: str = "all"

    SCHEDULE_TIMEZONE: str = "UTC"
    # 0 disables reclaiming runs stranded by a crash.
    STALE_RUN_TIMEOUT_MINUTES: int = Field(default=120, ge=0)

    SEED_ENABLED: bool = True
    DEFAULT_TENANT: str = "default"
    SEED_SOURCE_URL: Optional[str] = None
    SEED_SCHEDULED_TIME: time = time(2, 0)

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_cors_origins(cls, value):
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

    @field_validator("SCHEDULE_TIMEZONE")
    @classmethod
    def _validate_timezone(cls, value):
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown SCHEDULE_TIMEZONE: {value}") from exc
        return value

    @field_validator("TRIGGER_TOKEN")
    @classmethod
    def _validate_trigger_token(cls, value, info):
        env = str(info.data.get("ENV", "dev")).lower()
        if env != "dev" and not value:
            raise ValueError("TRIGGER_TOKEN must be set in non-dev environments")
        return value


settings = Settings()
