"""Configuration management for the MeetsMatch discovery service."""

from typing import Any, Dict

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./discovery.db"

    # Redis Configuration
    REDIS_URL: str | None = None

    # Sentry Configuration
    SENTRY_DSN: str | None = None

    # Application Configuration
    APP_NAME: str = "MeetsMatch Discovery"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    DEBUG: bool = Field(default=False)

    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Feed Configuration
    FEED_BATCH_SIZE: int = 50
    FEED_CACHE_TTL: int = 300
    DEFAULT_MAX_DISTANCE_KM: float = 100.0
    DEFAULT_MIN_AGE: int = 18
    DEFAULT_MAX_AGE: int = 99

    # Quota Configuration
    FREE_SWIPE_LIMIT: int = 5
    # Daily swipe ceiling per subscription plan, -1 means unlimited
    PLAN_SWIPE_LIMITS: Dict[str, int] = {
        "daily": 50,
        "weekly": 100,
        "monthly": -1,
    }
    QUOTA_TIMEZONE: str = "UTC"
    QUOTA_RETENTION_DAYS: int = 7

    # Notifications
    NOTIFICATION_WORKERS: int = 4
    # Undrained match events beyond this are dropped
    MATCH_EVENT_QUEUE_SIZE: int = 1000

    @field_validator("DEBUG", mode="before")
    @classmethod
    def set_debug(cls, v: Any, info: ValidationInfo) -> bool:
        """Enable debug mode if ENVIRONMENT is development."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str) and v.strip():
            return v.strip().lower() in {"1", "true", "yes", "on"}
        return bool(info.data.get("ENVIRONMENT", "").lower() == "development")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Only accept standard logging level names."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("FEED_BATCH_SIZE", "NOTIFICATION_WORKERS", "MATCH_EVENT_QUEUE_SIZE")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore")


# Create a global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Return the settings instance."""
    return settings
