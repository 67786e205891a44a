"""
Exception handlers for FastAPI applications serving crudcore resources.

Every handler renders the same ErrorResponse envelope. How an AppError is
broken down into ErrorInfo entries depends on its type:

- ValidationError: one entry per rejected field
- NotFoundError from a bulk operation: one entry per missing key
- anything else: a single entry carrying the error's ``details``
"""

import traceback
from functools import partial
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from crudcore.errors.exceptions import AppError, NotFoundError, ValidationError
from crudcore.logging import Logger, ensure_logger
from crudcore.schemas import ErrorInfo, ErrorResponse, ResponseMetadata


def create_error_response(
    message: str,
    code: str = "ERROR",
    errors: Optional[List[ErrorInfo]] = None,
    metadata: Optional[ResponseMetadata] = None,
) -> ErrorResponse:
    """
    Create a standardized error response.

    Args:
        message: Error message
        code: Error code identifier
        errors: Detailed error information list; defaults to one entry
            built from ``code`` and ``message``
        metadata: Additional metadata for the response

    Returns:
        Standardized error response
    """
    return ErrorResponse(
        success=False,
        message=message,
        errors=errors or [ErrorInfo(code=code, message=message)],
        metadata=metadata or ResponseMetadata(),
    )


def _json(status_code: int, response: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=int(status_code), content=jsonable_encoder(response))


def error_infos(exc: AppError) -> List[ErrorInfo]:
    """Break an AppError down into ErrorInfo entries."""
    if isinstance(exc, ValidationError) and exc.fields:
        return [
            ErrorInfo(
                code=field_error.get("code", exc.code),
                message=field_error.get("message", exc.message),
                field=field_error.get("field", ""),
            )
            for field_error in exc.fields
        ]

    if isinstance(exc, NotFoundError) and exc.missing_keys:
        resource = exc.details.get("resource_type", "Resource")
        return [
            ErrorInfo(
                code=exc.code,
                message=f"{resource} not found",
                details={"key": key},
            )
            for key in exc.missing_keys
        ]

    return [ErrorInfo(code=exc.code, message=exc.message, details=exc.details or None)]


def _request_errors(errors_data: List[Dict[str, Any]], exclude_body: bool) -> List[ErrorInfo]:
    """ErrorInfo entries for pydantic/FastAPI validation errors, one per location."""
    errors = []
    for error in errors_data:
        loc = [str(item) for item in error.get("loc", [])]
        if exclude_body:
            loc = [item for item in loc if item != "body"]
        errors.append(
            ErrorInfo(
                code="VALIDATION_ERROR",
                message=error.get("msg", "Validation error"),
                field=".".join(loc),
            )
        )
    return errors


async def app_error_handler(
    request: Request, exc: AppError, logger: Optional[Logger] = None
) -> JSONResponse:
    """
    Handler for AppError and its subclasses.

    Client errors are logged at warning level, server errors at error level.
    """
    log = ensure_logger(logger, __name__)
    extra = {"code": exc.code, "status": int(exc.status_code), "path": request.url.path}
    if int(exc.status_code) >= 500:
        log.error(f"{exc.code} on {request.url.path}: {exc.message}", extra=extra)
    else:
        log.warning(f"{exc.code} on {request.url.path}: {exc.message}", extra=extra)

    response = create_error_response(exc.message, exc.code, errors=error_infos(exc))
    return _json(exc.status_code, response)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handler for FastAPI's RequestValidationError (request body, query, path)."""
    response = create_error_response(
        message="Request validation error",
        code="VALIDATION_ERROR",
        errors=_request_errors(exc.errors(), exclude_body=True),
    )
    return _json(status.HTTP_422_UNPROCESSABLE_ENTITY, response)


async def pydantic_validation_handler(
    request: Request, exc: PydanticValidationError
) -> JSONResponse:
    """Handler for Pydantic's ValidationError raised inside a route."""
    response = create_error_response(
        message="Data validation error",
        code="VALIDATION_ERROR",
        errors=_request_errors(exc.errors(), exclude_body=False),
    )
    return _json(status.HTTP_422_UNPROCESSABLE_ENTITY, response)


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
    logger: Optional[Logger] = None,
    debug: bool = False,
) -> JSONResponse:
    """
    Generic exception handler for unhandled exceptions.

    Args:
        request: FastAPI request
        exc: Unhandled exception
        logger: Optional logger to use instead of default logging
        debug: Include the exception type and traceback in the response

    Returns:
        JSON response with generic error message
    """
    log = ensure_logger(logger, __name__)
    trace = traceback.format_exc()
    log.error(f"Unhandled exception on {request.url.path}: {str(exc)}")
    log.error(trace)

    details = None
    if debug:
        details = {"type": type(exc).__name__, "error": str(exc), "traceback": trace}

    response = create_error_response(
        message="Internal server error",
        errors=[ErrorInfo(code="INTERNAL_ERROR", message="Internal server error", details=details)],
    )
    return _json(status.HTTP_500_INTERNAL_SERVER_ERROR, response)


def register_exception_handlers(
    app: FastAPI, logger: Optional[Logger] = None, debug: bool = False
) -> None:
    """
    Register all exception handlers with a FastAPI application.

    Args:
        app: FastAPI application instance
        logger: Optional logger for logging exceptions
        debug: Expose exception details of unhandled errors
    """
    # Covers every AppError subclass
    app.exception_handler(AppError)(partial(app_error_handler, logger=logger))

    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(PydanticValidationError)(pydantic_validation_handler)

    app.exception_handler(Exception)(
        partial(unhandled_exception_handler, logger=logger, debug=debug)
    )
