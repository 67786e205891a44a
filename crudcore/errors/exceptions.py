"""
Exception hierarchy for crudcore.

Every error raised by the query, pagination and orchestration layers is an
AppError subclass, so transport layers can map them onto HTTP responses
without knowing the engine's internals.
"""

from http import HTTPStatus
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union


class AppError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error message
        code: Error code identifier (default: ERROR)
        status_code: HTTP status code (default: 500)
        details: Additional error details
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        code: str = "ERROR",
        status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """
    Exception raised when validation fails.

    Attributes:
        fields: List of field-specific validation errors
    """

    def __init__(
        self,
        message: str = "Validation error",
        fields: Optional[List[Dict[str, Any]]] = None,
        code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.fields = fields or []
        if fields:
            details = details or {}
            details["fields"] = fields

        super().__init__(
            message=message,
            code=code,
            status_code=HTTPStatus.BAD_REQUEST,
            details=details,
        )


class NotFoundError(AppError):
    """
    Exception raised when one or more requested records do not exist.

    A single lookup passes ``resource_id``; bulk operations pass every key
    that could not be matched through ``missing_keys`` so the caller sees
    the complete list at once.
    """

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: Optional[str] = None,
        resource_id: Optional[Union[str, int, Dict[str, Any]]] = None,
        missing_keys: Optional[Sequence[Any]] = None,
        code: str = "NOT_FOUND",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.missing_keys = list(missing_keys or [])
        if resource_type and resource_id is not None:
            message = f"{resource_type} with id '{_format_key(resource_id)}' not found"
            details = details or {}
            details.update({"resource_type": resource_type, "resource_id": resource_id})
        elif self.missing_keys:
            label = resource_type or "Resource"
            keys = ", ".join(_format_key(key) for key in self.missing_keys)
            message = f"{label} not found for keys: {keys}"
            details = details or {}
            details.update({"resource_type": label, "missing_keys": self.missing_keys})

        super().__init__(
            message=message,
            code=code,
            status_code=HTTPStatus.NOT_FOUND,
            details=details,
        )


class ConflictError(AppError):
    """Exception raised for resource conflicts (e.g., duplicate entries)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        code: str = "CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, code=code, status_code=HTTPStatus.CONFLICT, details=details
        )


class BadRequestError(AppError):
    """Exception raised for general client-side errors."""

    def __init__(
        self,
        message: str = "Bad request",
        code: str = "BAD_REQUEST",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=HTTPStatus.BAD_REQUEST,
            details=details,
        )


class UnsupportedOperationError(AppError):
    """Exception raised when a query asks for something the store cannot do."""

    def __init__(
        self,
        message: str = "Operation not supported",
        operator: Optional[str] = None,
        field: Optional[str] = None,
        code: str = "UNSUPPORTED_OPERATION",
        details: Optional[Dict[str, Any]] = None,
    ):
        if operator or field:
            details = details or {}
            details.update({"operator": operator, "field": field})
        super().__init__(
            message=message,
            code=code,
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            details=details,
        )


class ConfigurationError(AppError):
    """Exception raised when a CRUD service is wired up inconsistently."""

    def __init__(
        self,
        message: str = "Invalid CRUD configuration",
        code: str = "CONFIGURATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            details=details,
        )


class DBError(AppError):
    """
    Exception raised for database-related errors.
    """

    def __init__(
        self,
        message: str = "Database error",
        code: str = "DB_ERROR",
        details: Optional[dict] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            details=details,
        )


class PartialBatchError(AppError):
    """
    Exception raised when a chunked write fails after earlier chunks persisted.

    Attributes:
        completed: Results of the chunks that were persisted, in input order
        succeeded_range: Half-open ``(start, end)`` item range that persisted
        failed_range: Half-open ``(start, end)`` item range of the failing chunk
        cause: The exception raised by the failing chunk
    """

    def __init__(
        self,
        completed: List[Any],
        succeeded_range: Tuple[int, int],
        failed_range: Tuple[int, int],
        cause: Exception,
        code: str = "PARTIAL_BATCH_FAILURE",
    ):
        self.completed = completed
        self.succeeded_range = succeeded_range
        self.failed_range = failed_range
        self.cause = cause
        status_code = (
            cause.status_code
            if isinstance(cause, AppError)
            else HTTPStatus.INTERNAL_SERVER_ERROR
        )
        message = (
            f"Batch failed for items {failed_range[0]}-{failed_range[1] - 1}; "
            f"items {succeeded_range[0]}-{succeeded_range[1] - 1} were persisted"
        )
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            details={
                "succeeded": list(succeeded_range),
                "failed": list(failed_range),
                "cause": str(cause),
            },
        )


def _format_key(key: Any) -> str:
    if isinstance(key, dict):
        return ", ".join(f"{k}={v}" for k, v in key.items())
    return str(key)
