"""
Error handling with sanitized messages.

Domain errors from ``core.exceptions`` map to fixed HTTP statuses; store
errors become generic 5xx responses so nothing internal leaks out. The
exception handlers and the outer middleware build their responses with the
same helpers, so every error body has the same envelope.
"""

import json
import logging
import re
import traceback
from typing import Any, Callable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import (
    AlreadyOwned,
    DomainError,
    Forbidden,
    InvalidTransition,
    NoAccess,
    NotFound,
    SplitOverflow,
)

logger = logging.getLogger(__name__)

# The named 422 constant differs between Starlette releases
HTTP_422 = 422

# Values that must never appear in an error message
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    # user:password inside database and broker URLs
    re.compile(r'(?<=://)[^:/@\s]+:[^@\s]+(?=@)'),
    # Candidate contact details echoed back by the store
    re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'),
]

DOMAIN_ERROR_STATUS: dict[type[DomainError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Forbidden: status.HTTP_403_FORBIDDEN,
    NoAccess: status.HTTP_403_FORBIDDEN,
    AlreadyOwned: status.HTTP_409_CONFLICT,
    SplitOverflow: HTTP_422,
    InvalidTransition: status.HTTP_409_CONFLICT,
}


def sanitize_error_message(message: str) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_details: bool = False) -> dict[str, Any]:
    """
    Extract safe error details without exposing sensitive information.

    Args:
        exc: The exception to extract details from
        include_details: Whether to include the traceback (only in dev)

    Returns:
        Dictionary with safe error details
    """
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_details:
        details["traceback"] = traceback.format_exc()
    return details


def domain_error_status(exc: DomainError) -> int:
    """Look up the HTTP status for a domain error, walking its MRO."""
    for klass in type(exc).__mro__:
        if klass in DOMAIN_ERROR_STATUS:
            return DOMAIN_ERROR_STATUS[klass]
    return status.HTTP_400_BAD_REQUEST


def error_body(code: str, message: str, path: str, method: str, **extra: Any) -> dict[str, Any]:
    """Build the error envelope shared by every handler."""
    error = {"code": code, "message": message, "path": path, "method": method}
    error.update({key: value for key, value in extra.items() if value is not None})
    return {"error": error}


def _json_safe(context: dict[str, Any]) -> dict[str, Any]:
    safe = {}
    for key, value in context.items():
        if value is None or isinstance(value, (str, int, float, bool)):
            safe[key] = value
        else:
            safe[key] = str(value)
    return safe


# ==================== Response builders ===================== #
def domain_error_response(exc: DomainError, path: str, method: str) -> JSONResponse:
    """Render a domain error as a JSON response."""
    status_code = domain_error_status(exc)
    logger.warning(
        f"Domain error: {method} {path} - {exc.code}: {sanitize_error_message(exc.message)}"
    )
    return JSONResponse(
        status_code=status_code,
        content=error_body(
            exc.code,
            sanitize_error_message(exc.message),
            path,
            method,
            details=_json_safe(exc.context) or None,
        ),
    )


def http_error_response(exc: StarletteHTTPException, path: str, method: str) -> JSONResponse:
    message = sanitize_error_message(exc.detail)
    if exc.status_code >= 500:
        logger.error(f"HTTP exception: {method} {path} - {exc.status_code} {message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body("HTTP_EXCEPTION", message, path, method),
    )


def validation_error_response(exc: RequestValidationError, path: str, method: str) -> JSONResponse:
    details = format_validation_errors(exc)
    logger.warning(f"Validation error: {method} {path} - {len(details)} field(s)")
    return JSONResponse(
        status_code=HTTP_422,
        content=error_body(
            "VALIDATION_ERROR", "Request validation failed", path, method, details=details
        ),
    )


def value_error_response(exc: ValueError, path: str, method: str) -> JSONResponse:
    """Invalid input raised below the schema layer, e.g. an unknown filter."""
    message = sanitize_error_message(str(exc)) or "Invalid input provided"
    logger.warning(f"Value error: {method} {path} - {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("INVALID_INPUT", message, path, method),
    )


def store_error_response(
    exc: SQLAlchemyError, path: str, method: str, debug: bool = False
) -> JSONResponse:
    """
    Render a store error without leaking statements or parameters.

    Connection-level failures are 503. Every other store error, including
    constraint violations that escaped the services, is a 500.
    """
    unavailable = isinstance(exc, OperationalError)
    logger.error(f"Database error: {method} {path} - {type(exc).__name__}", exc_info=True)
    return JSONResponse(
        status_code=(
            status.HTTP_503_SERVICE_UNAVAILABLE
            if unavailable
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        ),
        content=error_body(
            "DATABASE_ERROR",
            "Database service temporarily unavailable"
            if unavailable
            else "A database error occurred",
            path,
            method,
            details=get_safe_error_details(exc, include_details=True) if debug else None,
        ),
    )


def unhandled_error_response(
    exc: Exception, path: str, method: str, debug: bool = False
) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {method} {path} - "
        f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred",
            path,
            method,
            details=get_safe_error_details(exc, include_details=True) if debug else None,
        ),
    )


def error_response_for(
    exc: Exception, path: str, method: str, debug: bool = False
) -> JSONResponse:
    """Pick the response builder for any exception."""
    if isinstance(exc, DomainError):
        return domain_error_response(exc, path, method)
    if isinstance(exc, StarletteHTTPException):
        return http_error_response(exc, path, method)
    if isinstance(exc, RequestValidationError):
        return validation_error_response(exc, path, method)
    if isinstance(exc, SQLAlchemyError):
        return store_error_response(exc, path, method, debug)
    if isinstance(exc, ValueError):
        return value_error_response(exc, path, method)
    return unhandled_error_response(exc, path, method, debug)


class ErrorHandlingMiddleware:
    """
    Last-resort error handling for anything the exception handlers miss.

    Adds the caller's ``x-request-id`` to the error body when present.
    """

    def __init__(self, app: Callable, debug: bool = False):
        """
        Initialize error handling middleware.

        Args:
            app: The ASGI application
            debug: Whether to include tracebacks in store and unhandled errors
        """
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = self._handle_exception(exc, scope)
            await response(scope, receive, send)

    def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        response = error_response_for(
            exc, scope.get("path", "unknown"), scope.get("method", "unknown"), self.debug
        )
        request_id = _request_id(scope)
        if request_id is None:
            return response

        body = json.loads(response.body)
        body["error"]["request_id"] = request_id
        return JSONResponse(status_code=response.status_code, content=body)


def _request_id(scope: dict) -> Optional[str]:
    for name, value in scope.get("headers", []):
        if name == b"x-request-id":
            return value.decode()
    return None


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """
    Format validation errors into a user-friendly structure.

    Args:
        exc: The validation exception

    Returns:
        List of formatted validation errors
    """
    errors = []
    for error in exc.errors():
        error_dict = {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        }
        if "input" in error and isinstance(error["input"], (str, int, float, bool)):
            input_str = str(error["input"])
            if not any(pattern.search(input_str) for pattern in SENSITIVE_PATTERNS):
                error_dict["input"] = error["input"]
        errors.append(error_dict)
    return errors


def setup_error_handlers(app):
    """
    Register the exception handlers on a FastAPI application.

    Args:
        app: FastAPI application instance
    """

    def _path(request: Request) -> str:
        return str(request.url.path)

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        return domain_error_response(exc, _path(request), request.method)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return http_error_response(exc, _path(request), request.method)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return validation_error_response(exc, _path(request), request.method)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return value_error_response(exc, _path(request), request.method)

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        return store_error_response(exc, _path(request), request.method)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        return unhandled_error_response(exc, _path(request), request.method)
