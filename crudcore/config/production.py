"""
Production environment specific settings.
"""

from pydantic import ConfigDict

from .base import BaseAppSettings


class ProductionSettings(BaseAppSettings):
    """
    Settings class for production environment.

    DATABASE_URL has to come from the environment. Logs are emitted as JSON
    and requests naming filter, sort or include fields outside the
    allow-lists are rejected instead of silently narrowed.

    Attributes:
        DEBUG: Always False in production
        LOG_JSON_FORMAT: Structured logs for aggregation services
        CRUD_REJECT_DISALLOWED: Strict query validation
        DB_POOL_SIZE: Larger connection pool
    """

    DEBUG: bool = False
    LOG_JSON_FORMAT: bool = True
    CRUD_REJECT_DISALLOWED: bool = True
    DB_POOL_SIZE: int = 10

    model_config = ConfigDict(env_file=".env.production", case_sensitive=True, extra="ignore")
