"""
Error taxonomy for the K-line viewer.

- TransportError: network or HTTP failure talking to the market-data backend
- DataUnavailable: the backend has no records for the requested range
- MalformedResponse: the backend answered with something we cannot read
- MalformedInput: a request was rejected before any fetch was issued
"""

from typing import Any, Dict, Optional


class KlineViewerError(Exception):
    """Base class for all viewer errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message)
        self.message = message
        self.details = {**(details or {}), **kwargs}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class TransportError(KlineViewerError):
    """Raised on connection failures, timeouts and non-2xx responses."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        details = kwargs
        if status_code:
            details["status_code"] = status_code
        super().__init__(message, details)
        self.status_code = status_code


class DataUnavailable(KlineViewerError):
    """Raised when the backend has no data for an instrument and range."""


class MalformedResponse(KlineViewerError):
    """Raised when a backend payload is not the JSON shape we expect."""


class MalformedInput(KlineViewerError):
    """Raised when a request fails validation before any fetch."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.field = field
