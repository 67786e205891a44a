"""
Base configuration module for crudcore.

This module provides the base settings class that environment-specific
settings inherit from. Besides the usual application, logging, cache and
database options it carries the global defaults of the CRUD engine (page sizes,
batch thresholds, soft-delete policy).
"""

from typing import Optional

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class BaseAppSettings(BaseSettings):
    """
    Base settings class for application configuration.

    Attributes:
        APP_NAME: The name of the application
        DEBUG: Flag to enable/disable debug mode
        VERSION: Application version string
        LOG_LEVEL: Default level for loggers created by crudcore
        LOG_JSON_FORMAT: Emit JSON log lines instead of plain text
        CACHE_URL: Redis URL of the read cache; unset selects the in-process cache
        CACHE_DEFAULT_TTL: Default lifetime of cached responses, in seconds
        CACHE_KEY_PREFIX: Optional prefix for cache keys
        DATABASE_URL: Database connection URL (async driver required)
        DB_ECHO: Enable SQL query logging (echo)
        DB_POOL_SIZE: Connection pool size for the database
        CRUD_DEFAULT_TAKE: Global row limit when nothing else sets one
        CRUD_DEFAULT_PAGE_SIZE: Page size used when a request sends none
        CRUD_MAX_PAGE_SIZE: Upper bound for any requested page size
        CRUD_BATCH_THRESHOLD: Item count above which writes are chunked
        CRUD_MAX_BATCH_SIZE: Upper bound for a single chunk
        CRUD_SOFT_DELETE: Destroy soft-deletes when the store supports it
        CRUD_REJECT_DISALLOWED: Reject disallowed query fields instead of dropping them
        CRUD_FTS_CONFIG: Text search configuration for full-text filters
    """

    APP_NAME: str = Field(default="crudcore")
    DEBUG: bool = Field(default=False)
    VERSION: str = Field(default="0.1.0")

    # Logging configuration
    LOG_LEVEL: str = Field(default="INFO", description="Default log level")
    LOG_JSON_FORMAT: bool = Field(
        default=False, description="Emit structured JSON log lines"
    )

    # Cache configuration
    CACHE_URL: Optional[str] = Field(
        default=None, description="Redis URL; an in-process cache is used when unset"
    )
    CACHE_DEFAULT_TTL: int = Field(
        default=300, description="Default cache TTL in seconds"
    )
    CACHE_KEY_PREFIX: str = Field(
        default="", description="Optional prefix for cache keys"
    )

    # Database configuration
    DATABASE_URL: Optional[str] = Field(
        default=None, description="Database connection URL"
    )
    DB_ECHO: bool = Field(default=False, description="Enable SQL query logging (echo)")
    DB_POOL_SIZE: int = Field(
        default=5, description="Connection pool size for the database"
    )

    # CRUD engine defaults
    CRUD_DEFAULT_TAKE: int = Field(
        default=100, description="Row limit applied when nothing else sets one"
    )
    CRUD_DEFAULT_PAGE_SIZE: int = Field(
        default=20, description="Page size used when the request sends none"
    )
    CRUD_MAX_PAGE_SIZE: int = Field(
        default=100, description="Largest page size a request may ask for"
    )
    CRUD_BATCH_THRESHOLD: int = Field(
        default=50, description="Item count above which writes are chunked"
    )
    CRUD_MAX_BATCH_SIZE: int = Field(
        default=200, description="Largest chunk handed to the store at once"
    )
    CRUD_SOFT_DELETE: bool = Field(
        default=True, description="Destroy soft-deletes when the store supports it"
    )
    CRUD_REJECT_DISALLOWED: bool = Field(
        default=False,
        description="Reject disallowed filter/sort/include fields with a 400",
    )
    CRUD_FTS_CONFIG: str = Field(
        default="simple", description="Text search configuration for fts filters"
    )

    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, value):
        """Upper-case the configured level name."""
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator(
        "CRUD_DEFAULT_TAKE",
        "CRUD_DEFAULT_PAGE_SIZE",
        "CRUD_MAX_PAGE_SIZE",
        "CRUD_BATCH_THRESHOLD",
        "CRUD_MAX_BATCH_SIZE",
        "CACHE_DEFAULT_TTL",
    )
    def validate_positive(cls, value, info):
        """Sizes and thresholds must be positive integers."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be greater than zero")
        return value

    @field_validator("CACHE_URL", mode="before")
    def validate_cache_url(cls, value):
        """Ensure CACHE_URL uses the redis:// or rediss:// scheme."""
        if value and not value.startswith(("redis://", "rediss://")):
            raise ValueError(
                f"CACHE_URL must start with 'redis://' or 'rediss://'. You provided: {value}"
            )
        return value

    @field_validator("DATABASE_URL", mode="before")
    def validate_database_url(cls, value):
        """
        Ensure DATABASE_URL uses an async driver.

        crudcore talks to the database through SQLAlchemy's asyncio extension,
        so synchronous driver URLs are rejected early.
        """
        if (
            value
            and value.startswith("postgresql://")
            and not value.startswith("postgresql+asyncpg://")
        ):
            raise ValueError(
                "DATABASE_URL must start with 'postgresql+asyncpg://' for asyncpg driver. "
                "You provided a URL starting with 'postgresql://'."
            )
        if value and value.startswith("sqlite://"):
            raise ValueError(
                "DATABASE_URL must start with 'sqlite+aiosqlite://' for SQLite. "
                "You provided a URL starting with 'sqlite://'."
            )
        return value

    model_config = ConfigDict(env_file=".env", case_sensitive=True, extra="ignore")
