"""Fleet journal service configuration."""

import os
from functools import lru_cache
from typing import Annotated, Any, Literal

from dotenv import load_dotenv
from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_env_file() -> str:
    """
    Determine the .env file to use.
    You can override this by setting the ENV_FILE environment variable.
    Otherwise, it will choose one based on the ENVIRONMENT value.
    """
    env_file = {
        "production": "../.env",
        "development": "../.env.dev",
    }
    default = env_file.get(os.getenv("ENVIRONMENT", "development"), "../.env.dev")
    chosen = os.getenv("ENV_FILE", default)
    load_dotenv(chosen, override=True)
    return chosen


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    """Server config settings."""

    model_config = SettingsConfigDict(
        env_file=get_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_ignore_empty=True,
        extra="ignore",
    )
    ENVIRONMENT: Literal["development", "production"] = "development"
    PROJECT_NAME: str = "Fleet Journal API"

    # API settings
    DOMAIN: str = "0.0.0.0"
    DEBUG_MODE: bool = False
    FASTAPI_CORS_ORIGINS: Annotated[list[AnyUrl] | str, BeforeValidator(parse_cors)] = (
        []
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.FASTAPI_CORS_ORIGINS]

    # Entity store: "memory" keeps everything in-process, "sql" uses PostgreSQL
    STORE_BACKEND: Literal["memory", "sql"] = "memory"

    # Redis settings
    REDIS_ENABLED: bool = False
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # Database settings
    POSTGRES_USER: str = "default_user"
    POSTGRES_PASSWORD: str = "default_password"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "default_db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_CONNECT_ATTEMPTS: int = 3

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # GPS provider settings
    GPS_API_URL: str = "https://api.gps51.com"
    GPS_USERNAME: str = ""
    GPS_PASSWORD: str = ""
    GPS_TIMEZONE_OFFSET: int = 1
    GPS_REQUEST_TIMEOUT_SECONDS: float = 30.0
    GPS_TOKEN_TTL_SECONDS: int = 23 * 60 * 60

    # Reverse geocoding
    GEOCODING_ENABLED: bool = False
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/reverse"
    GEOCODER_USER_AGENT: str = "FleetJournal/1.0"
    GEOCODER_DELAY_SECONDS: float = 1.1

    # AI suggestion function
    LLM_API_URL: str = "http://localhost:8080/invoke-llm"
    LLM_API_KEY: str = ""
    LLM_MODEL: str = "default"
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Sync settings
    SYNC_INTERVAL_MINUTES: int = 0
    SYNC_LOOKBACK_DAYS: int = 90
    SYNC_MAX_CONCURRENCY: int = 5
    MANUAL_MATCH_TOLERANCE_SECONDS: int = 300
    ANOMALY_MAX_DISTANCE_KM: float = 500.0
    ANOMALY_MAX_DURATION_MINUTES: int = 720

    TIMEZONE: str = "Europe/Stockholm"

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_DIR: str = "logs"


# Global settings instance with caching.
@lru_cache()
def get_settings() -> Settings:
    settings = Settings()

    return settings
