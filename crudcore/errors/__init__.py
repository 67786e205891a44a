"""
Error handling module for crudcore.

This module provides the exception hierarchy raised by the CRUD engine and
the FastAPI handlers that turn those exceptions into error envelopes.

Limitations:
- Error response structure is fixed; customization requires code changes.
- Only HTTP-style errors are supported (exceptions must inherit from AppError or be handled by FastAPI).
"""

from crudcore.errors.exceptions import (
    AppError,
    BadRequestError,
    ConfigurationError,
    ConflictError,
    DBError,
    NotFoundError,
    PartialBatchError,
    UnsupportedOperationError,
    ValidationError,
)
from crudcore.errors.handlers import register_exception_handlers
from crudcore.errors.manager import setup_errors

__all__ = [
    "setup_errors",
    "register_exception_handlers",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "BadRequestError",
    "UnsupportedOperationError",
    "ConfigurationError",
    "DBError",
    "PartialBatchError",
]
