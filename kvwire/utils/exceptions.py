"""
Exception hierarchy for kvwire.

Provides:
- Custom exception classes with error codes
- Error categorization (validation, fatal, timeout, retryable)
- Classification of foreign exceptions raised by the transport
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    TIMEOUT = "timeout"


class KvWireError(Exception):
    """Base exception for all kvwire errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class MalformedFrameError(KvWireError):
    """Inbound frame cannot populate the fields its tag requires."""

    def __init__(self, message: str, tag: int | None = None):
        details = {"tag": tag} if tag is not None else {}
        super().__init__(message, code="MALFORMED_FRAME", category=ErrorCategory.VALIDATION, details=details)
        self.tag = tag


class EncodingError(KvWireError):
    """Envelope violates the one-variant or required-field rule; never transmitted."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="ENCODING_ERROR", category=ErrorCategory.VALIDATION, details=details)


class ConnectionClosedError(KvWireError):
    """Call issued on, or outstanding at, a closed connection."""

    def __init__(self, reason: str = "connection closed"):
        super().__init__(reason, code="CONNECTION_CLOSED", category=ErrorCategory.FATAL, details={"reason": reason})


class CallTimeoutError(KvWireError):
    """A single call exceeded its deadline."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            f"Call '{operation}' timed out after {timeout_seconds}s",
            code="TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )


def classify_exception(exc: BaseException) -> tuple[str, ErrorCategory, bool]:
    """
    Classify an exception and return (error_code, category, should_retry).

    Returns:
        Tuple of (error_code, category, should_retry)
    """
    if isinstance(exc, KvWireError):
        return exc.code, exc.category, exc.category == ErrorCategory.RETRYABLE

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if isinstance(exc, ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    if isinstance(exc, OSError):
        return "TRANSPORT_ERROR", ErrorCategory.RETRYABLE, True

    exc_str = str(exc).lower()
    if "timeout" in exc_str or "timed out" in exc_str:
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if "connection" in exc_str or "network" in exc_str:
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False
