"""
Configuration module with strict validation.

Key principles:
- APP STARTUP requires only DATABASE_URL
- Search tuning knobs (page sizes, history retention) have safe defaults
- The admin role used for index rebuilds is configurable
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation.

    Loads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database (REQUIRED for API startup)
    database_url: str = Field(
        ...,
        description="SQLAlchemy connection URL (PostgreSQL in production, SQLite for tests)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # Search paging
    search_default_limit: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Page size used when a search request does not pass a limit"
    )

    search_max_limit: int = Field(
        default=200,
        ge=1,
        le=10000,
        description="Largest page size accepted by the search endpoints"
    )

    suggest_default_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of autocomplete suggestions returned by default"
    )

    # Search history
    search_history_retention: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Number of most recent history entries kept per user"
    )

    # Authorization
    admin_role: str = Field(
        default="admin",
        description="User role allowed to trigger a full index rebuild"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @property
    def is_sqlite(self) -> bool:
        """True when the configured database is SQLite (tests, local dev)."""
        return self.database_url.startswith("sqlite")


# Global settings instance
# This can be imported throughout the application
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    This pattern allows:
    - Easy testing (can reset settings between tests)
    - Lazy loading (only loads when first accessed)
    - Singleton pattern (same instance used everywhere)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """
    Reset the global settings instance.

    Useful for testing to ensure clean state between tests.
    """
    global _settings
    _settings = None
