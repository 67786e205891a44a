"""
Error handling setup for FastAPI applications that expose crudcore services.
"""

from typing import Optional

from fastapi import FastAPI

from crudcore.config.base import BaseAppSettings
from crudcore.errors.handlers import register_exception_handlers
from crudcore.logging import Logger, ensure_logger


def setup_errors(
    app: FastAPI,
    settings: Optional[BaseAppSettings] = None,
    logger: Optional[Logger] = None,
) -> None:
    """
    Register the crudcore exception handlers on ``app``.

    With ``settings.DEBUG`` enabled, unhandled exceptions expose their type
    and traceback in the error response.

    Args:
        app: FastAPI application instance
        settings: Optional application settings
        logger: Optional logger for logging exceptions
    """
    log = ensure_logger(logger, __name__, settings)
    debug = bool(settings is not None and settings.DEBUG)
    register_exception_handlers(app, logger=log, debug=debug)
    log.debug(f"Registered crudcore exception handlers (debug={debug})")
