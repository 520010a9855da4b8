"""Middleware for the mock orchestrator API.

- Structured logging with request correlation IDs
- Exception handling (RFC 7807)
"""
from .logging import (
    StructuredLoggingMiddleware,
    JSONFormatter,
    setup_logging,
    get_correlation_id,
    request_id_var,
    LoggingConfig,
    SENSITIVE_HEADERS,
)
from .exceptions import (
    ExceptionHandlerMiddleware,
    register_exception_handlers,
    create_error_response,
    RFC7807Error,
    ERROR_TYPE_BASE,
)

__all__ = [
    # Logging
    "StructuredLoggingMiddleware",
    "JSONFormatter",
    "setup_logging",
    "get_correlation_id",
    "request_id_var",
    "LoggingConfig",
    "SENSITIVE_HEADERS",
    # Exceptions
    "ExceptionHandlerMiddleware",
    "register_exception_handlers",
    "create_error_response",
    "RFC7807Error",
    "ERROR_TYPE_BASE",
]
