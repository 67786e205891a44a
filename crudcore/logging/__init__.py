"""
Logging module for crudcore.

This module provides a simple logging interface that integrates with
application settings.

Limitations:
- Only console (stdout) logging is supported out of the box.
- No file logging, log rotation, or external service integration.
"""

from crudcore.logging.formatters import JsonFormatter
from crudcore.logging.manager import (
    Logger,
    ensure_logger,
    get_logger,
    log_operation,
    setup_logger,
)

__all__ = [
    "Logger",
    "get_logger",
    "ensure_logger",
    "setup_logger",
    "log_operation",
    "JsonFormatter",
]
