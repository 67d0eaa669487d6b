# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""EduRecords configuration.

Every concern has its own BaseSettings class read from environment
variables with its own prefix (DB_, REDIS_, JWT_, CORS_, API_, WORKER_,
SCHEDULER_). Settings aggregates them and get_settings() caches the
result for the process.

Example:
    >>> from edurecords.core.config.settings import get_settings
    >>> get_settings().scheduler.window_expiry_interval_minutes
    15
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-this-in-production"
DEFAULT_DB_PASSWORD = "edurecords_password"


class DatabaseSettings(BaseSettings):
    """Records database.

    All tenants share one PostgreSQL database; rows carry tenant_id.
    DB_DSN, when set, wins over the individual components.

    Attributes:
        dsn: Full SQLAlchemy URL.
        pool_size: Connections kept open by the API engine.
        max_overflow: Extra connections allowed under load.
        echo: Log every SQL statement.
    """

    model_config = SettingsConfigDict(env_prefix="DB_", extra="ignore")

    dsn: str | None = None
    user: str = "edurecords"
    password: SecretStr = SecretStr(DEFAULT_DB_PASSWORD)
    host: str = "localhost"
    port: int = 5432
    database: str = "edurecords"
    pool_size: int = 10
    max_overflow: int = 20
    echo: bool = False

    @property
    def url(self) -> str:
        """Async (asyncpg) URL used by the engine and by Alembic."""
        if self.dsn:
            return self.dsn
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis used as the Dramatiq transport."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("")
    database: int = 0

    @property
    def url(self) -> str:
        pwd = self.password.get_secret_value()
        auth = f":{pwd}@" if pwd else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.database}"


class JWTSettings(BaseSettings):
    """Access token verification.

    Tokens are issued by the identity provider and carry sub, tenant_id,
    roles and permissions.
    """

    model_config = SettingsConfigDict(env_prefix="JWT_", extra="ignore")

    secret_key: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    algorithm: str = "HS256"


class CORSSettings(BaseSettings):
    """Browser origins allowed to call the API (comma-separated)."""

    model_config = SettingsConfigDict(env_prefix="CORS_", extra="ignore")

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["GET", "POST", "PUT", "PATCH"]
    allow_headers: list[str] = ["Authorization", "Content-Type", "X-Tenant-ID", "X-Request-ID"]

    @property
    def origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """Uvicorn server options used by `edurecords-api`."""

    model_config = SettingsConfigDict(env_prefix="API_", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 34100
    workers: int = 2
    reload: bool = False


class WorkerSettings(BaseSettings):
    """Dramatiq worker options.

    Attributes:
        namespace: Redis key namespace of the records queues.
        consolidation_time_limit_ms: Hard limit of one consolidation run.
            A run cut short is retried in resume mode.
        consolidation_max_retries: Retries of a failed consolidation run.
        expiry_time_limit_ms: Hard limit of one reopening window sweep.
    """

    model_config = SettingsConfigDict(env_prefix="WORKER_", extra="ignore")

    namespace: str = "edurecords"
    consolidation_time_limit_ms: int = 3_600_000
    consolidation_max_retries: int = 3
    expiry_time_limit_ms: int = 300_000


class SchedulerSettings(BaseSettings):
    """Periodic jobs started with the API process.

    Attributes:
        enabled: Start the scheduler in the API lifespan.
        window_expiry_interval_minutes: Period of the reopening window sweep.
    """

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_", extra="ignore")

    enabled: bool = True
    window_expiry_interval_minutes: int = Field(default=15, ge=1)


class Settings(BaseSettings):
    """All EduRecords settings.

    Use get_settings() rather than instantiating directly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Refuse to start production with default secrets.

        Raises:
            ValueError: If the JWT secret or the database password is a default.
        """
        if self.environment != "production":
            return self
        if self.jwt.secret_key.get_secret_value() == DEFAULT_JWT_SECRET:
            raise ValueError(
                "JWT secret key must be changed from default in production. "
                "Set JWT_SECRET_KEY environment variable."
            )
        if not self.db.dsn and self.db.password.get_secret_value() == DEFAULT_DB_PASSWORD:
            raise ValueError(
                "Database password must be changed from default in production. "
                "Set DB_PASSWORD or DB_DSN."
            )
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings loaded once per process; see clear_settings_cache()."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next get_settings() re-reads the env."""
    get_settings.cache_clear()
