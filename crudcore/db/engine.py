"""
Database engine and session management.

``init_db`` builds the async engine and session factory from settings,
``get_db`` hands out request-scoped sessions (commit on success, rollback
on error) and ``shutdown_db`` disposes the engine.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from crudcore.config.base import BaseAppSettings
from crudcore.errors.exceptions import ConfigurationError
from crudcore.logging import Logger, ensure_logger

# Module-level engine and session factory
engine: Optional[AsyncEngine] = None
SessionLocal: Optional[async_sessionmaker] = None


async def init_db(settings: BaseAppSettings, logger: Optional[Logger] = None) -> None:
    """
    Initialize the database engine and session factory.

    Args:
        settings: Application settings
        logger: Optional logger for database operations

    Raises:
        ConfigurationError: If DATABASE_URL is not set
    """
    global engine, SessionLocal

    log = ensure_logger(logger, __name__, settings)

    if not settings.DATABASE_URL:
        raise ConfigurationError(message="DATABASE_URL is not configured")

    url = make_url(settings.DATABASE_URL)
    log.debug(f"Creating database engine for {url.render_as_string(hide_password=True)}")
    engine_kwargs = {
        "echo": settings.DB_ECHO,
    }
    # SQLite connections are not pooled by size
    if url.get_backend_name() != "sqlite":
        engine_kwargs["pool_size"] = settings.DB_POOL_SIZE
    engine = create_async_engine(settings.DATABASE_URL, **engine_kwargs)
    SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)
    log.debug("Database engine and session factory initialized")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a session for one request.

    The session is committed when the request handler returns and rolled
    back when it raises.

    Raises:
        ConfigurationError: If ``init_db`` has not been called
    """
    if SessionLocal is None:
        raise ConfigurationError(message="Database is not initialized; call init_db first")

    async with SessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def shutdown_db(logger: Optional[Logger] = None) -> None:
    """
    Dispose of the database engine.

    Args:
        logger: Optional logger for database operations
    """
    global engine, SessionLocal

    log = ensure_logger(logger, __name__)

    if engine:
        log.debug("Disposing database engine")
        await engine.dispose()
        engine = None
        SessionLocal = None
        log.debug("Database engine disposed")
