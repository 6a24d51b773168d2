"""Sovereign exception hierarchy.

Base exceptions for the dashboard client with correlation ID support.

Usage:
    from sovereign.exceptions import CollaboratorError, TransportError

    try:
        await client.install_app("jellyfin")
    except CollaboratorError as e:
        console.print(f"[red]{e}[/red]")
"""

import uuid
from typing import Any


class SovereignError(Exception):
    """Base exception for all dashboard client errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class StreamCancelledError(SovereignError):
    """A stream was aborted by its caller.

    Never surfaced as a failure: content delivered before the abort is final.
    """

    def __init__(self, message: str = "Stream cancelled", *, target: str | None = None, **kwargs):
        self.target = target
        super().__init__(message, **kwargs)


class TransportError(SovereignError):
    """Network, HTTP status, or decoding failure on a dashboard API call.

    Raised when a connection fails, the server answers with a non-OK
    status, or a response body cannot be decoded.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        status_code: int | None = None,
        correlation_id: str | None = None,
    ):
        self.path = path
        self.status_code = status_code
        super().__init__(message, correlation_id=correlation_id)


class CollaboratorError(SovereignError):
    """A non-streaming call returned an explicit error payload.

    The dashboard answers app/model management calls with HTTP 200 and
    ``{"error": "..."}`` when the action itself failed.
    """

    def __init__(
        self,
        message: str,
        *,
        action: str | None = None,
        details: dict[str, Any] | None = None,
        **kwargs,
    ):
        self.action = action
        self.details = details or {}
        super().__init__(message, **kwargs)


class SessionError(SovereignError):
    """Misuse of a stream session or of the reply slot it owns."""

    pass


class ConfigurationError(SovereignError):
    """Errors from application configuration."""

    pass
