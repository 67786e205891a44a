"""
Development environment specific settings.
"""

from typing import Optional

from .base import BaseAppSettings


class DevelopmentSettings(BaseAppSettings):
    """
    Settings class for development environment.

    Enables debug mode and uses a local SQLite database by default.

    Attributes:
        DEBUG: Always True in development
        LOG_LEVEL: Verbose logging while developing
        DATABASE_URL: Path to development database
    """

    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"
    DATABASE_URL: Optional[str] = "sqlite+aiosqlite:///./dev.db"
