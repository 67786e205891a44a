"""
Testing environment specific settings.
"""

from typing import Optional

from pydantic import ConfigDict

from .base import BaseAppSettings


class TestingSettings(BaseAppSettings):
    """
    Settings class for the test suite.

    Runs against in-memory SQLite and never reads a ``.env`` file, so a
    developer's local configuration cannot leak into test runs.

    Attributes:
        DEBUG: Debug logging and detailed error responses
        DATABASE_URL: In-memory SQLite connection string
    """

    # Not a test class, despite the name
    __test__ = False

    DEBUG: bool = True
    DATABASE_URL: Optional[str] = "sqlite+aiosqlite:///:memory:"

    model_config = ConfigDict(env_file=None, case_sensitive=True, extra="ignore")
