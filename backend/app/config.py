from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Places API"
    version: str = "1.0.0"
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3000

    database_url: str | None = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "places"
    db_password: str = ""
    db_name: str = "places"
    db_pool_size: int = Field(default=20, ge=1)
    db_pool_timeout: float | None = None
    stream_batch_size: int = Field(default=500, ge=1)

    api_token: str | None = None

    rate_limit_window_ms: int = Field(default=60_000, ge=1)
    rate_limit_max_requests: int = 100

    startup_connect_attempts: int = Field(default=5, ge=1)
    startup_retry_delay_seconds: float = Field(default=5.0, ge=0)

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "PLACES_LOG_LEVEL"))
    perf_log_level: str = Field(
        default="PERF",
        validation_alias=AliasChoices("PERF_LOG_LEVEL", "PLACES_PERF_LOG_LEVEL"),
    )

    @field_validator("log_level", "perf_log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "PERF", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("Unsupported log level")
        return normalized

    @field_validator("api_token")
    @classmethod
    def _blank_token_is_unset(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value

    @property
    def sqlalchemy_url(self) -> str | URL:
        if self.database_url:
            return self.database_url
        return URL.create(
            "postgresql+psycopg",
            username=self.db_user,
            password=self.db_password or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
