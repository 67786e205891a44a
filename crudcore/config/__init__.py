"""
Configuration module for crudcore.

This module provides:
- BaseAppSettings: The base class for application settings, supporting environment variable loading.
- Environment-specific settings (development, testing, production).
- get_settings: Factory for loading the correct settings class based on APP_ENV.

Example environment variables:

# Application
APP_NAME="crudcore"
APP_ENV="development"  # Options: development, testing, production
DEBUG=true

# Logging
LOG_LEVEL="INFO"
LOG_JSON_FORMAT=false

# Cache
CACHE_URL="redis://localhost:6379/0"  # unset: in-process cache
CACHE_DEFAULT_TTL=300
CACHE_KEY_PREFIX=""

# Database configuration
DATABASE_URL="postgresql+asyncpg://<username>:<password>@<host>:<port>/<database_name>"
DB_ECHO=false
DB_POOL_SIZE=5

# CRUD engine
CRUD_DEFAULT_TAKE=100
CRUD_DEFAULT_PAGE_SIZE=20
CRUD_MAX_PAGE_SIZE=100
CRUD_BATCH_THRESHOLD=50
CRUD_MAX_BATCH_SIZE=200
CRUD_SOFT_DELETE=true
CRUD_REJECT_DISALLOWED=false
CRUD_FTS_CONFIG="simple"
"""

from .base import BaseAppSettings
from .development import DevelopmentSettings
from .production import ProductionSettings
from .settings import get_settings, merge_defaults
from .testing import TestingSettings

__all__ = [
    "BaseAppSettings",
    "DevelopmentSettings",
    "ProductionSettings",
    "TestingSettings",
    "get_settings",
    "merge_defaults",
]
