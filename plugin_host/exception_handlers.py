"""
Global Exception Handlers for the Plugin Host

Maps runtime errors onto one JSON error shape:

{
    "error": {
        "status_code": 409,
        "error_code": "UNSATISFIED_DEPENDENCY",
        "message": "module_quiz depends on core >= 500 (...)",
        "type": "Conflict",
        "details": {"component": "module_quiz", "dependency": "core", ...},
        "path": "/api/v1/plugins/module/quiz/install"
    }
}

error_code is derived from the exception class name, so a new
PluginHostError subclass gets a stable code without registration.
"""

import logging
import re
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from plugin_host.exceptions import PluginHostError

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def error_code_for(exc: Exception) -> str:
    """UnsatisfiedDependencyError -> UNSATISFIED_DEPENDENCY"""
    name = type(exc).__name__
    if name.endswith("Error"):
        name = name[: -len("Error")]
    return _CAMEL_BOUNDARY.sub("_", name).upper()


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
) -> JSONResponse:
    """
    Create a standardized error response.

    Args:
        status_code: HTTP status code
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional error details
        path: Request path that caused the error
    """
    error_response: dict[str, Any] = {
        "error": {
            "status_code": status_code,
            "message": message,
            "type": get_error_type(status_code),
        }
    }

    if error_code:
        error_response["error"]["error_code"] = error_code

    if details:
        error_response["error"]["details"] = details

    if path:
        error_response["error"]["path"] = path

    return JSONResponse(status_code=status_code, content=error_response)


def get_error_type(status_code: int) -> str:
    """Get a human-readable error type based on status code."""
    error_types = {
        400: "Bad Request",
        404: "Not Found",
        409: "Conflict",
        422: "Validation Error",
        500: "Internal Server Error",
        503: "Service Unavailable",
    }
    return error_types.get(status_code, "Error")


async def plugin_host_exception_handler(request: Request, exc: PluginHostError) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{type(exc).__name__}: {exc.message}",
        extra={"status_code": exc.status_code, "path": request.url.path},
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=error_code_for(exc),
        details=exc.details or None,
        path=request.url.path,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        errors.append({"field": field, "message": error["msg"], "type": error["type"]})

    logger.warning(f"Validation error on {request.url.path}", extra={"path": request.url.path})

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_FAILED",
        details={"validation_errors": errors},
        path=request.url.path,
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Storage failures reach here after the service rolled back; details stay in the log."""
    logger.error(f"Database error: {exc}", exc_info=True, extra={"path": request.url.path})

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="A storage error occurred.",
        error_code="STORAGE_FAILURE",
        path=request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {str(exc)}",
        exc_info=True,
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_ERROR",
        path=request.url.path,
    )


def register_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(PluginHostError, plugin_host_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered successfully")
