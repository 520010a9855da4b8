"""Structured logging middleware with correlation IDs for request tracing.

Provides:
- Request/response correlation IDs (``X-Request-ID``)
- Request timing and slow-request warnings
- JSON logging outside dev, human-readable logging in dev
- Sensitive header masking
- Request body dumps for submitted intents
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable for request correlation ID
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

logger = logging.getLogger("mockestrator.api")

# Headers that should never be logged
SENSITIVE_HEADERS = frozenset({
    "authorization",
    "x-api-key",
    "cookie",
    "set-cookie",
})


@dataclass
class LoggingConfig:
    """Configuration for structured logging middleware."""

    # Paths to exclude from logging entirely
    exclude_paths: List[str] = field(default_factory=lambda: ["/health"])

    # Log (filtered) request headers at DEBUG level
    log_headers: bool = True

    # Log JSON request bodies (signed intents, route requests) at DEBUG level
    log_body: bool = True
    max_body_log_chars: int = 8192

    # Slow request threshold (ms) - logs warning if exceeded
    slow_request_threshold_ms: float = 5000.0


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = request_id_var.get() or "-"
        return True


def mask_sensitive_value(value: str) -> str:
    """Mask a sensitive value, showing only first/last characters."""
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-4:]}"


def filter_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """Filter out sensitive headers from logging."""
    return {
        k: (mask_sensitive_value(v) if k.lower() in SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


def format_body(raw: bytes, limit: int) -> str:
    """Pretty-print a request body for logs, truncated to ``limit`` characters."""
    try:
        text = json.dumps(json.loads(raw), indent=2)
    except ValueError:
        text = raw.decode("utf-8", errors="replace")
    if len(text) > limit:
        return f"{text[:limit]}... ({len(text) - limit} more chars)"
    return text


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for structured logging with correlation IDs.

    Generates (or accepts) a correlation ID per request, logs request start
    and completion with timing, and echoes the ID in the response headers.
    """

    def __init__(
        self,
        app,
        exclude_paths: list[str] | None = None,
        config: LoggingConfig | None = None,
    ):
        super().__init__(app)
        self.config = config or LoggingConfig()
        if exclude_paths:
            self.config.exclude_paths = exclude_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.config.exclude_paths:
            return await call_next(request)

        correlation_id = request.headers.get("X-Request-ID") or f"req_{uuid.uuid4().hex[:16]}"
        request_id_var.set(correlation_id)
        request.state.request_id = correlation_id

        method = request.method
        path = request.url.path

        logger.info(
            f"{method} -> {path}",
            extra={
                "event": "request_start",
                "method": method,
                "path": path,
                "query": request.url.query or None,
            },
        )
        if self.config.log_headers:
            logger.debug(f"headers: {json.dumps(filter_headers(dict(request.headers)), indent=2)}")
        if self.config.log_body and request.method in ("POST", "PUT", "PATCH"):
            raw = await request.body()
            if raw:
                logger.debug(f"body: {format_body(raw, self.config.max_body_log_chars)}")

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Request failed",
                extra={
                    "event": "request_error",
                    "method": method,
                    "path": path,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "duration_ms": round(duration_ms, 2),
                },
                exc_info=True,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        context = {
            "event": "request_complete",
            "method": method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }
        if response.status_code >= 500:
            logger.error("Request completed with server error", extra=context)
        elif response.status_code >= 400:
            logger.warning("Request completed with client error", extra=context)
        elif duration_ms > self.config.slow_request_threshold_ms:
            logger.warning("Slow request completed", extra=context)
        else:
            logger.info("Request completed", extra=context)

        response.headers["X-Request-ID"] = correlation_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    EXTRA_FIELDS = ("event", "method", "path", "status_code", "duration_ms", "error", "error_type")

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }
        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(json_format: bool = True, level: str = "INFO"):
    """
    Configure logging for the application.

    Args:
        json_format: Use JSON format (non-dev) or human-readable (dev)
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.addFilter(CorrelationIdFilter())

    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] [%(correlation_id)s] %(name)s: %(message)s"
            )
        )

    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_correlation_id() -> Optional[str]:
    """Get the current request's correlation ID."""
    return request_id_var.get()
