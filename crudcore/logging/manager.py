"""
Logger construction for crudcore.

Every component (parser, converter, pagination engine, stores, service)
takes an optional logger and falls back to a module logger built here, so
an application can hand one configured logger to everything or let each
layer log under its own name.

Write operations log through ``log_operation``, which attaches the
resource, operation and record count as ``extra`` fields. The plain text
formatter folds them into the message; JsonFormatter emits them as
top-level keys.
"""

import logging
import sys
from typing import IO, Any, Optional, Tuple

from crudcore.logging.formatters import JsonFormatter

Logger = logging.Logger

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve(
    settings: Optional[Any], level: str, json_format: bool
) -> Tuple[str, bool, bool]:
    """Level name, debug flag and JSON flag, with settings taking precedence."""
    if settings is None:
        return level, False, json_format
    level = str(getattr(settings, "LOG_LEVEL", None) or level)
    debug = bool(getattr(settings, "DEBUG", False))
    json_format = json_format or bool(getattr(settings, "LOG_JSON_FORMAT", False))
    return level, debug, json_format


def setup_logger(
    name: str,
    level: str = "INFO",
    format: str = DEFAULT_FORMAT,
    debug: bool = False,
    json_format: bool = False,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Create and configure a logger instance.

    Calling it again for the same name replaces the previous handler.

    Args:
        name: Logger name (usually __name__)
        level: Logging level name; unknown names fall back to INFO
        format: Log message format (ignored if json_format=True)
        debug: If True, sets level to DEBUG regardless of level parameter
        json_format: If True, outputs logs in JSON format
        stream: Output stream, stdout by default

    Returns:
        Configured logger instance
    """
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JsonFormatter() if json_format else logging.Formatter(format))
    logger.addHandler(handler)
    return logger


def get_logger(
    name: str, settings: Optional[Any] = None, json_format: bool = False
) -> logging.Logger:
    """
    Get a logger configured from application settings.

    LOG_LEVEL, LOG_JSON_FORMAT and DEBUG are read from ``settings`` when
    they are present on it.
    """
    level, debug, json_format = _resolve(settings, "INFO", json_format)
    return setup_logger(name, level=level, debug=debug, json_format=json_format)


def ensure_logger(
    logger: Optional[logging.Logger] = None,
    name: Optional[str] = None,
    settings: Optional[Any] = None,
    json_format: bool = False,
) -> logging.Logger:
    """
    Return ``logger`` when given, otherwise a new logger called ``name``.

    Raises:
        ValueError: If neither a logger nor a name is given
    """
    if logger:
        return logger

    if not name:
        raise ValueError("Module name must be provided when logger is not specified")

    return get_logger(name, settings, json_format)


def log_operation(
    logger: logging.Logger,
    operation: str,
    resource: str,
    count: int = 1,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """
    Log a completed CRUD operation with structured fields.

    Args:
        logger: Target logger
        operation: Operation name (create, destroy, ...)
        resource: Resource name of the store
        count: Number of records written
        level: Log level
        **fields: Additional structured fields (keys, flags)
    """
    if not logger.isEnabledFor(level):
        return
    extra = {"operation": operation, "resource": resource, "count": count, **fields}
    details = " ".join(f"{key}={value}" for key, value in fields.items())
    message = f"{operation} {resource}: {count} record(s)"
    logger.log(level, f"{message} {details}" if details else message, extra=extra)
