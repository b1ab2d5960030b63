"""Application configuration via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "HostelHub"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "hostelhub"
    postgres_password: str = Field(default="hostelhub_secret")
    postgres_db: str = "hostelhub"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    sqlalchemy_url: Optional[str] = None  # e.g. sqlite+aiosqlite:///./hostelhub.db for local runs

    @computed_field
    @property
    def database_url(self) -> str:
        """Async database connection URL."""
        if self.sqlalchemy_url:
            return self.sqlalchemy_url
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # JWT (tokens are issued by the auth service, we only verify them)
    jwt_secret_key: str = Field(default="your-super-secret-key-change-in-production")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15

    # Locking
    lock_backend: Literal["local", "redis"] = "local"
    lock_timeout_seconds: float = 30.0  # Redis lock auto-expiry
    lock_blocking_timeout_seconds: float = 10.0

    # Allocation
    allocation_room_type_fallback: bool = True

    # Payment status collaborator
    payment_status_backend: Literal["ledger", "http"] = "ledger"
    payment_status_url: Optional[str] = None
    payment_status_timeout_seconds: float = 5.0

    # Notifications
    notification_webhook_url: Optional[str] = None
    notification_timeout_seconds: float = 5.0

    # Rate Limiting
    rate_limit_per_minute: int = 100

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Background jobs
    occupancy_health_interval_minutes: int = 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
