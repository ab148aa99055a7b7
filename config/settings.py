"""
Query gateway settings loaded from environment variables.

Uses Pydantic Settings for type-safe configuration with validation.
All settings can be overridden via environment variables or .env file.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Query gateway configuration.

    All settings are loaded from environment variables or .env file.
    See .env.example for available options.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Kill switch
    analytics_disabled: bool = Field(
        default=False,
        description="If True, analytical queries are never sent to the database",
    )

    # Analytical database
    analytics_database_url: str = Field(
        default="",
        description="PostgreSQL connection string for the read-oriented analytics database",
    )
    analytics_pool_min_size: int = Field(default=1, ge=0, le=32)
    analytics_pool_max_size: int = Field(default=4, ge=1, le=64)
    sql_dialect: str = Field(
        default="postgres",
        description="sqlglot dialect used to parse candidate statements",
    )

    # Query bounds
    query_timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Hard execution timeout for a single analytical query",
    )
    max_result_rows: int = Field(
        default=1000,
        ge=1,
        description="Ceiling applied to any LIMIT clause",
    )
    default_result_rows: int = Field(
        default=500,
        ge=1,
        description="LIMIT appended to queries that carry none",
    )

    # Redis / rate limiting
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection string for rate limit counters",
    )
    rate_limiter_fallback_mode: Literal["allow", "deny"] = Field(
        default="deny",
        description="Decision returned when the counter store is unreachable",
    )
    query_rate_limit_max: int = Field(default=12, ge=1)
    query_rate_limit_window_seconds: int = Field(default=60, ge=1)
    login_rate_limit_max: int = Field(default=8, ge=1)
    login_rate_limit_window_seconds: int = Field(default=60, ge=1)

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    @model_validator(mode="after")
    def _check_row_limits(self) -> "Settings":
        if self.default_result_rows > self.max_result_rows:
            raise ValueError(
                f"default_result_rows ({self.default_result_rows}) cannot exceed "
                f"max_result_rows ({self.max_result_rows})"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.

    Returns:
        Settings instance with all configuration loaded.

    Example:
        >>> settings = get_settings()
        >>> print(settings.max_result_rows)
        1000
    """
    return Settings()
