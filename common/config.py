"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./rooms.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="30/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")

    room_cache_ttl: int = Field(default=45, description="TTL (s) for the cached rooms-with-bookings view")
    business_hours_start: int = Field(default=8, ge=0, le=24, description="First hour rooms are displayed with their stored status")
    business_hours_end: int = Field(default=20, ge=0, le=24, description="Hour from which rooms are displayed as night_rest")
    guest_placeholder: str = Field(default="Reserved", description="Replacement for booking details shown to guests")
    allow_guest_bookings: bool = Field(default=True, description="Allow unauthenticated callers to create bookings")
    title_max_length: int = Field(default=200, description="Maximum sanitized booking title length")
    comment_max_length: int = Field(default=1000, description="Maximum sanitized booking comment length")

    users_service_port: int = 8001
    rooms_service_port: int = 8002
    bookings_service_port: int = 8003


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
