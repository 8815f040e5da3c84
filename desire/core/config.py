"""
desire/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, thresholds, storage keys)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, validator
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB (remote document store + device flag store)
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="desire",
        description="MongoDB database name"
    )

    # Onboarding
    ONBOARDING_FLAG_KEY: str = Field(
        default="onboardingStep",
        description="Key under which onboarding progress is persisted locally"
    )

    # Engagement signals
    PANTRY_STALE_AFTER_DAYS: int = Field(
        default=7,
        description="Days after which pantry data is considered outdated"
    )
    ALTERNATE_PROMPT_THRESHOLD: int = Field(
        default=3,
        description="Consecutive inactive opens before the alternate home prompt is shown"
    )

    # Device sessions
    SESSION_IDLE_TIMEOUT_SECONDS: int = Field(
        default=3600,
        description="Seconds without a request after which a device session is closed"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api/v1",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @validator("PANTRY_STALE_AFTER_DAYS", "ALTERNATE_PROMPT_THRESHOLD", "SESSION_IDLE_TIMEOUT_SECONDS")
    def validate_positive(cls, v):
        """Thresholds must be positive."""
        if v < 1:
            raise ValueError("threshold must be at least 1")
        return v

    @validator("MONGODB_URL")
    def validate_mongodb_url(cls, v, values):
        """Refuse the localhost default in production."""
        if values.get("ENVIRONMENT") == "production" and "localhost" in v:
            raise ValueError("MONGODB_URL must point to a real cluster in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    if not settings.MONGODB_DB_NAME:
        errors.append("MONGODB_DB_NAME is required")

    if not settings.ONBOARDING_FLAG_KEY:
        errors.append("ONBOARDING_FLAG_KEY is required")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
