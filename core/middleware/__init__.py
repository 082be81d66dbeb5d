"""
HTTP middleware for the marketplace API.

Domain errors are mapped to status codes in ``error_handling``; request logs
with candidate PII masked come from ``logging``.
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    domain_error_response,
    setup_error_handlers,
    sanitize_error_message,
)
from core.middleware.logging import StructuredLoggingMiddleware, setup_logging

__all__ = [
    "ErrorHandlingMiddleware",
    "domain_error_response",
    "setup_error_handlers",
    "sanitize_error_message",
    "StructuredLoggingMiddleware",
    "setup_logging",
]
