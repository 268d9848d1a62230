"""Error taxonomy for chat-push-gateway.

Each error carries the HTTP status the API layer answers with. Short-circuit
outcomes (nothing to send) are not errors and never appear here.
"""

from __future__ import annotations


class PushGatewayError(Exception):
    """Base class for all errors surfaced to the trigger as an HTTP response."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PushGatewayError):
    """Malformed request body or missing required identifiers."""

    status_code = 400


class ConfigurationError(PushGatewayError):
    """A required secret or credential is absent or unusable.

    ``missing`` names the environment variables that were unset. It is logged
    but never returned to the caller.
    """

    status_code = 500

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class DependencyError(PushGatewayError):
    """An external call returned an unexpected failure."""

    status_code = 500


class RecordStoreError(DependencyError):
    """The record store answered with a non-2xx status."""

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class TokenExchangeError(DependencyError):
    """The OAuth2 token endpoint refused the assertion or returned no token."""

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body
