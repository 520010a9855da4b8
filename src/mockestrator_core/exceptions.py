"""Unified exception hierarchy for the mock orchestrator.

All service-specific exceptions inherit from MockestratorException, enabling:
- Consistent error handling across the core, chain and api packages
- HTTP status code mapping in the API layer
- Structured error responses with error codes

All exceptions have:
- error_code: Machine-readable error code (e.g., "INTENT_NOT_FOUND")
- http_status: HTTP status code for API responses
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to API response format
"""
from __future__ import annotations

from typing import Any, Optional


class MockestratorException(Exception):
    """Base exception for all mock orchestrator errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "MOCKESTRATOR_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        result = {
            "error": self.message,
            "code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Validation & lookup errors (4xx)
# =============================================================================

class MockestratorValidationError(MockestratorException):
    """Invalid input data or parameters."""

    error_code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)


class IntentNotFoundError(MockestratorException):
    """No intent record exists for the given id."""

    error_code = "INTENT_NOT_FOUND"
    http_status = 404

    def __init__(self, intent_id: int) -> None:
        self.intent_id = intent_id
        super().__init__(
            f"Intent not found: {intent_id}",
            details={"intent_id": str(intent_id)},
        )


# =============================================================================
# Intent pipeline errors (5xx)
# =============================================================================

class IntentDecodeError(MockestratorException):
    """The wire-format mandate could not be decoded."""

    error_code = "INTENT_DECODE_ERROR"

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, details=details)


class IntentCompilationError(MockestratorException):
    """The decoded intent cannot be turned into a single transaction."""

    error_code = "INTENT_COMPILATION_ERROR"


class DestinationSignatureRequiredError(IntentCompilationError):
    """Destination operations were supplied without a usable signature."""

    error_code = "DESTINATION_SIGNATURE_REQUIRED"

    def __init__(self) -> None:
        super().__init__("destination signature required")


class UnsupportedChainError(MockestratorException):
    """No execution service is configured for the chain id."""

    error_code = "UNSUPPORTED_CHAIN"

    def __init__(self, chain_id: int) -> None:
        self.chain_id = chain_id
        super().__init__(
            f"Unsupported chain: {chain_id}",
            details={"chain_id": chain_id},
        )


class InvalidStatusTransitionError(MockestratorException):
    """An intent record was asked to move to a status it cannot reach."""

    error_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, intent_id: int, current: str, requested: str) -> None:
        super().__init__(
            f"Intent {intent_id} cannot move from {current} to {requested}",
            details={"intent_id": str(intent_id), "current": current, "requested": requested},
        )


# =============================================================================
# Chain & infrastructure errors (5xx)
# =============================================================================

class ChainExecutionError(MockestratorException):
    """Base class for blockchain-related errors."""

    error_code = "CHAIN_ERROR"

    def __init__(
        self,
        message: str,
        chain_id: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if chain_id is not None:
            details["chain_id"] = chain_id
        super().__init__(message, details=details)


class RPCError(ChainExecutionError):
    """JSON-RPC call to the blockchain node failed."""

    error_code = "RPC_ERROR"

    def __init__(
        self,
        message: str,
        chain_id: Optional[int] = None,
        method: Optional[str] = None,
        code: Optional[int] = None,
        data: Any = None,
    ) -> None:
        self.code = code
        self.data = data
        details: dict[str, Any] = {}
        if method:
            details["method"] = method
        if code is not None:
            details["rpc_code"] = code
        super().__init__(message, chain_id=chain_id, details=details)


class TransactionRevertedError(ChainExecutionError):
    """A mined transaction reported reversion."""

    error_code = "TRANSACTION_REVERTED"

    def __init__(self, tx_hash: str, chain_id: Optional[int] = None) -> None:
        self.tx_hash = tx_hash
        super().__init__(
            f"Transaction {tx_hash} reverted",
            chain_id=chain_id,
            details={"tx_hash": tx_hash},
        )


class TransactionTimeoutError(ChainExecutionError):
    """No receipt arrived before the confirmation deadline."""

    error_code = "TRANSACTION_TIMEOUT"

    def __init__(self, tx_hash: str, timeout_seconds: float, chain_id: Optional[int] = None) -> None:
        self.tx_hash = tx_hash
        super().__init__(
            f"Transaction {tx_hash} not confirmed after {timeout_seconds}s",
            chain_id=chain_id,
            details={"tx_hash": tx_hash},
        )


class ConfigurationError(MockestratorException):
    """Startup configuration is missing or invalid."""

    error_code = "CONFIGURATION_ERROR"
