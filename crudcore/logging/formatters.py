"""
Custom log formatters for crudcore.

Currently supports JSON formatting for structured logging. Extra fields
passed to the logger (via extra=...) are copied into the JSON payload.
"""

import json
import logging
from datetime import datetime

# Attributes present on every LogRecord; anything else came in through extra=
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    The payload always holds timestamp, level, logger and message. Values
    passed through ``extra`` are added as top-level keys; values that are
    not JSON serializable are rendered with ``str``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the specified record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string containing the formatted log record
        """
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)
