"""
Shared error handling for the Wallet Access Layer.

Exceptions are control flow for transport, configuration and token problems.
Business failures reported by the gateway (resultStatus F/U) are values on
GatewayResult and never raised from here.
"""

from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for Wallet Access Layer components."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigError(AccessLayerException):
    """Missing configuration or unusable key material. Fatal at startup."""

    status_code = 500

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIG_ERROR", message, details)


class AuthenticationError(AccessLayerException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class TokenErrorKind(str, Enum):
    """Why a claims token was rejected."""
    DECODE = "decode"        # outer envelope is not base64 / not a JWE
    DECRYPT = "decrypt"      # authentication tag or key mismatch
    PAYLOAD = "payload"      # decrypted, but claims are not a string map


class TokenError(AuthenticationError):
    """Claims token could not be opened.

    The caller only ever sees "Invalid token"; ``kind`` is kept for logs
    and for choosing a status code at the boundary.
    """

    def __init__(self, kind: TokenErrorKind, reason: str = ""):
        self.kind = kind
        self.reason = reason
        super().__init__("Invalid token")


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class TransportError(AccessLayerException):
    """The gateway could not be reached or answered with something that is not JSON.

    Never retried by the client that raises it.
    """

    status_code = 502

    def __init__(self, path: str, message: str = "Gateway unavailable", cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        details = {"path": path}
        if cause is not None:
            details["cause"] = type(cause).__name__
        super().__init__("GATEWAY_TRANSPORT_ERROR", f"{path}: {message}", details)


class ReconciliationTimeout(AccessLayerException):
    """Polling ran out of attempts while the outcome was still processing.

    Not a failure: the operation needs manual follow-up.
    """

    status_code = 202

    def __init__(self, operation_id: str, attempts: int):
        self.operation_id = operation_id
        self.attempts = attempts
        super().__init__(
            "RECONCILIATION_TIMEOUT",
            "Outcome still unknown, manual review required",
            {"operationId": operation_id, "attempts": attempts},
        )
