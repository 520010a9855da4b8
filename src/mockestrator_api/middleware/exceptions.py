"""Global exception handlers for the mock orchestrator API.

Error responses follow RFC 7807 Problem Details, plus an ``error`` field with
the message text that existing orchestrator clients read:

{
    "type": "https://mockestrator.local/errors/<error-type>",
    "title": "Human-readable error title",
    "status": 404,
    "detail": "Intent not found: 42",
    "instance": "/intent-operation/42",
    "request_id": "req_abc123",
    "timestamp": "2024-01-01T00:00:00Z",
    "error": "Intent not found: 42",
    ... additional fields
}
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from mockestrator_core.config import load_settings
from mockestrator_core.exceptions import MockestratorException

logger = logging.getLogger(__name__)

ERROR_TYPE_BASE = "https://mockestrator.local/errors"


@dataclass
class RFC7807Error:
    """RFC 7807 Problem Details representation."""
    type: str
    title: str
    status: int
    detail: str
    instance: str
    request_id: str
    extensions: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "type": self.type,
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
            "instance": self.instance,
            "request_id": self.request_id,
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "error": self.detail,
        }
        if self.extensions:
            result.update(self.extensions)
        return result


ERROR_TYPES = {
    "VALIDATION_ERROR": ("validation-error", "Validation Error"),
    "NOT_FOUND": ("not-found", "Resource Not Found"),
    "INTENT_NOT_FOUND": ("intent-not-found", "Intent Not Found"),
    "INTENT_DECODE_ERROR": ("intent-decode-error", "Intent Decode Error"),
    "INTENT_COMPILATION_ERROR": ("intent-compilation-error", "Intent Compilation Error"),
    "DESTINATION_SIGNATURE_REQUIRED": ("destination-signature-required", "Destination Signature Required"),
    "UNSUPPORTED_CHAIN": ("unsupported-chain", "Unsupported Chain"),
    "TRANSACTION_REVERTED": ("transaction-reverted", "Transaction Reverted"),
    "TRANSACTION_TIMEOUT": ("transaction-timeout", "Transaction Timeout"),
    "RPC_ERROR": ("rpc-error", "RPC Error"),
    "METHOD_NOT_ALLOWED": ("method-not-allowed", "Method Not Allowed"),
    "BAD_REQUEST": ("bad-request", "Bad Request"),
    "INTERNAL_ERROR": ("internal-error", "Internal Server Error"),
}


def get_request_id(request: Request) -> str:
    """Extract request ID from request state or headers."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return request.headers.get("X-Request-ID", "unknown")


def is_production(request: Request) -> bool:
    """True when the app serving ``request`` runs with production settings."""
    settings = getattr(request.app.state, "settings", None) or load_settings()
    return settings.environment not in ("dev", "test")


def create_error_response(
    error_code: str,
    message: str,
    status_code: int,
    request_id: str,
    details: dict | None = None,
    instance: str = "",
) -> JSONResponse:
    """
    Create an RFC 7807 compliant error response.

    Args:
        error_code: Internal error code (e.g., "INTENT_NOT_FOUND")
        message: Human-readable error message
        status_code: HTTP status code
        request_id: Request correlation ID
        details: Additional error details (extensions)
        instance: Request path/instance identifier
    """
    type_info = ERROR_TYPES.get(
        error_code,
        (error_code.lower().replace("_", "-"), error_code.replace("_", " ").title()),
    )

    error = RFC7807Error(
        type=f"{ERROR_TYPE_BASE}/{type_info[0]}",
        title=type_info[1],
        status=status_code,
        detail=message,
        instance=instance,
        request_id=request_id,
        extensions=details,
    )

    return JSONResponse(
        status_code=status_code,
        content=error.to_dict(),
        headers={
            "X-Request-ID": request_id,
            "Content-Type": "application/problem+json",
        },
    )


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""

    app.add_middleware(ExceptionHandlerMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed request bodies are client errors (400), not 422."""
        request_id = get_request_id(request)
        errors = format_validation_errors(exc)
        message = "; ".join(f"{e['field']}: {e['message']}" for e in errors) or "Invalid request"

        logger.warning(
            f"Validation error: {message}",
            extra={"request_id": request_id, "path": request.url.path},
        )

        return create_error_response(
            error_code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            request_id=request_id,
            details={"errors": errors},
            instance=request.url.path,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        request_id = get_request_id(request)

        status_to_code = {
            400: "BAD_REQUEST",
            404: "NOT_FOUND",
            405: "METHOD_NOT_ALLOWED",
            500: "INTERNAL_ERROR",
        }
        error_code = status_to_code.get(exc.status_code, "INTERNAL_ERROR")

        logger.warning(
            f"HTTP error {exc.status_code}: {exc.detail}",
            extra={"request_id": request_id, "path": request.url.path},
        )

        return create_error_response(
            error_code=error_code,
            message=str(exc.detail) if exc.detail else "An error occurred",
            status_code=exc.status_code,
            request_id=request_id,
            instance=request.url.path,
        )

    @app.exception_handler(MockestratorException)
    async def mockestrator_exception_handler(
        request: Request, exc: MockestratorException
    ) -> JSONResponse:
        """Handle all orchestrator exceptions with their mapped status."""
        request_id = get_request_id(request)

        if exc.http_status >= 500:
            logger.error(
                f"Server error: {exc.error_code} - {exc.message}",
                extra={
                    "request_id": request_id,
                    "error_code": exc.error_code,
                    "details": exc.details,
                },
                exc_info=exc,
            )
        else:
            logger.warning(
                f"Client error: {exc.error_code} - {exc.message}",
                extra={"request_id": request_id, "error_code": exc.error_code},
            )

        details = exc.details if not is_production(request) or exc.http_status < 500 else None
        extensions = {"code": exc.error_code}
        if details:
            extensions["details"] = details

        return create_error_response(
            error_code=exc.error_code,
            message=exc.message,
            status_code=exc.http_status,
            request_id=request_id,
            details=extensions,
            instance=request.url.path,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all handler for unhandled exceptions."""
        request_id = get_request_id(request)

        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc}",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
                "path": request.url.path,
                "method": request.method,
            },
            exc_info=exc,
        )

        message = "An internal error occurred" if is_production(request) else f"{type(exc).__name__}: {exc}"

        return create_error_response(
            error_code="INTERNAL_ERROR",
            message=message,
            status_code=500,
            request_id=request_id,
            instance=request.url.path,
        )


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Converts exceptions raised outside route handlers into 500 responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> JSONResponse:
        try:
            return await call_next(request)
        except MockestratorException:
            raise
        except Exception as exc:
            request_id = get_request_id(request)

            logger.error(
                f"Middleware exception: {type(exc).__name__}: {exc}",
                extra={"request_id": request_id, "path": request.url.path},
                exc_info=True,
            )

            message = (
                "An internal error occurred"
                if is_production(request)
                else f"{type(exc).__name__}: {exc}"
            )

            return create_error_response(
                error_code="INTERNAL_ERROR",
                message=message,
                status_code=500,
                request_id=request_id,
                instance=request.url.path,
            )
