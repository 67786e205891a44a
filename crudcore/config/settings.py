"""
Application settings management module.

This module handles the loading of environment-specific settings
based on the APP_ENV environment variable, and the layered lookup that
lets an explicit value override a setting.
"""

import os
from typing import Any, Optional

from .base import BaseAppSettings
from .development import DevelopmentSettings
from .production import ProductionSettings
from .testing import TestingSettings


def get_settings() -> BaseAppSettings:
    """
    Get the appropriate settings instance for the current environment.

    The environment is determined by the APP_ENV environment variable.
    If not set, defaults to 'development'.

    Returns:
        BaseAppSettings: An instance of environment-specific settings
    """
    env = os.getenv("APP_ENV", "development")
    if env == "production":
        return ProductionSettings()
    elif env == "testing":
        return TestingSettings()
    return DevelopmentSettings()


def merge_defaults(
    route_value: Optional[Any], global_value: Optional[Any], hard_default: Any
) -> Any:
    """Return the first of ``route_value``, ``global_value`` that is set, else ``hard_default``."""
    if route_value is not None:
        return route_value
    if global_value is not None:
        return global_value
    return hard_default
