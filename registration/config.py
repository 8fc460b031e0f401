"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared by the auth and attendees services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./registration.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )

    jwt_access_secret: str = Field(default="access-secret", description="Signing secret for access tokens")
    jwt_refresh_secret: str = Field(default="refresh-secret", description="Signing secret for refresh tokens")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=15, description="Access token lifetime in minutes")
    refresh_token_expire_days: int = Field(default=7, description="Refresh token lifetime in days")
    user_token_expire_hours: int = Field(default=24, description="Lifetime of verification/reset tokens")

    password_min_length: int = 8
    password_max_length: int = 25

    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="60/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    log_dir: str = Field(default="logs", description="Directory for per-service audit logs")
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus metrics on /metrics")

    email_backend: Literal["console", "http"] = Field(
        default="console",
        description="'console' logs outgoing mail, 'http' posts it to the mail provider API.",
    )
    email_api_url: str = Field(default="", description="Mail provider endpoint used by the http backend")
    email_api_key: str = Field(default="", description="Bearer key for the mail provider")
    email_sender: str = Field(default="no-reply@events.local", description="From address for outgoing mail")
    email_timeout_seconds: float = 10.0

    public_base_url: str = Field(default="http://localhost:8001", description="Base URL of the auth service")
    frontend_base_url: str = Field(default="http://localhost:3000", description="Base URL of the web client")

    auth_service_port: int = 8001
    attendees_service_port: int = 8002


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
