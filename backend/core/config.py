"""
Application configuration.

Settings are read from the environment (and an optional .env file) so that
database credentials and runtime flags never live in code.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Database Configuration
    database_url: str = "sqlite:///./menu_sync.db"
    database_test_url: Optional[str] = None
    db_pool_size: int = 10
    db_max_overflow: int = 20
    log_sql_queries: bool = False

    # Environment Settings
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # API
    api_prefix: str = "/api/v1"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Returns:
        Settings instance with environment variables loaded
    """
    return Settings()


# Export settings instance for easy import
settings = get_settings()


def validate_production_config():
    """Validate configuration for production deployment."""
    if settings.is_production:
        issues = []

        if settings.debug:
            issues.append("DEBUG is enabled in production")

        if settings.database_url.startswith("sqlite"):
            issues.append("SQLite database configured in production")

        if issues:
            raise ValueError(f"Production configuration issues detected: {', '.join(issues)}")


# Validate on import if in production
if settings.is_production:
    validate_production_config()
