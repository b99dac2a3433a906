"""
Application Configuration
"""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import model_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "PolicyAdminBot"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False  # Secure default

    # Database
    DATABASE_URL: str = "sqlite:///./policy_admin.db"
    DATABASE_ECHO: bool = False
    DB_RETRY_ATTEMPTS: int = 3

    # Admin sessions
    SESSION_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_URL: str = "redis://localhost:6379/0"
    SESSION_TTL_MINUTES: int = 5  # 0 disables expiry

    # Vehicle conversion
    CONVERSION_YEAR_MIN: int = 2023
    CONVERSION_YEAR_MAX: int = 2026
    SERIAL_LENGTH: int = 17
    AUTO_POLICY_INSURER: str = "NIP_AUTOMATICO"
    AUTO_POLICY_AGENT: str = "SISTEMA_AUTOMATIZADO"

    # Free-text answers (deletion reasons, routes)
    MIN_FREE_TEXT_LENGTH: int = 3

    # Outbound chat transport
    TRANSPORT_WEBHOOK_URL: str = ""
    TRANSPORT_TIMEOUT_SECONDS: float = 10.0

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate workflow settings and critical settings for non-development environments."""
        if self.CONVERSION_YEAR_MIN > self.CONVERSION_YEAR_MAX:
            raise ValueError(
                f"CONVERSION_YEAR_MIN ({self.CONVERSION_YEAR_MIN}) must not be greater than "
                f"CONVERSION_YEAR_MAX ({self.CONVERSION_YEAR_MAX})."
            )

        if self.SERIAL_LENGTH <= 0:
            raise ValueError("SERIAL_LENGTH must be a positive integer.")

        if self.SESSION_TTL_MINUTES < 0:
            raise ValueError("SESSION_TTL_MINUTES must be zero (no expiry) or positive.")

        if self.APP_ENV != "development":
            # SQLite has no row-level locking worth trusting under concurrent conversions
            if self.DATABASE_URL.startswith("sqlite"):
                raise ValueError(
                    "DATABASE_URL must point to a server database in staging/production environments. "
                    "Set DATABASE_URL in your .env file or environment variables."
                )

            # Warn about DEBUG mode in production
            if self.DEBUG:
                import warnings
                warnings.warn(
                    "DEBUG mode is enabled in a non-development environment. "
                    "This is not recommended for production.",
                    UserWarning,
                )

        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
