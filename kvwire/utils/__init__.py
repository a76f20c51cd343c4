"""Utility helpers for kvwire."""

from kvwire.utils.exceptions import (
    CallTimeoutError,
    ConnectionClosedError,
    EncodingError,
    ErrorCategory,
    KvWireError,
    MalformedFrameError,
    classify_exception,
)

__all__ = [
    "CallTimeoutError",
    "ConnectionClosedError",
    "EncodingError",
    "ErrorCategory",
    "KvWireError",
    "MalformedFrameError",
    "classify_exception",
]
