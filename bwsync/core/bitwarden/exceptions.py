"""Bitwarden-specific exceptions for error handling."""
from __future__ import annotations
from typing import Optional


class BitwardenError(Exception):
    """Base exception for all Bitwarden operations."""
    pass


class AuthError(BitwardenError):
    """Credential acquisition failed.

    Attributes:
        cause: Underlying exception or message describing the failure
    """

    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"Failed to obtain access token: {cause}")


class TransportError(BitwardenError):
    """Network-level failure (connection refused, timeout, TLS).

    Attributes:
        cause: Underlying requests exception
        endpoint: URL that was being contacted
    """

    def __init__(self, cause, endpoint: str = ""):
        self.cause = cause
        self.endpoint = endpoint
        super().__init__(f"{endpoint}: {cause}" if endpoint else str(cause))


class APIError(BitwardenError):
    """HTTP error from the Bitwarden Public API.

    Attributes:
        status_code: HTTP status code
        body: Raw response body, kept verbatim for diagnostics
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, body: str, endpoint: str = ""):
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {body}")


class NotFoundError(APIError):
    """Target resource does not exist remotely (HTTP 404)."""

    def __init__(self, body: str = "", endpoint: str = ""):
        super().__init__(404, body, endpoint)


class SerializationError(BitwardenError):
    """Response payload did not have the expected shape."""
    pass


class OperationCancelledError(BitwardenError):
    """Operation was cancelled or ran past its deadline."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Operation cancelled")


class StateTransitionError(BitwardenError):
    """Operation is not permitted from the resource's current state."""
    pass
