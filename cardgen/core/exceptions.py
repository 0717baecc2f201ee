"""Gateway exception hierarchy.

Everything raised inside the gateway derives from GatewayError so the
dispatcher can collapse it into a single ``{"error": message}`` envelope.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cardgen.gateway.types import ErrorClass


class GatewayError(Exception):
    """Base class for all gateway failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(GatewayError):
    """Raised when the gateway cannot run with the current configuration."""


class RequestValidationError(GatewayError):
    """Raised for malformed inbound requests. Never retried."""


class ProviderError(GatewayError):
    """Raised by a vendor adapter when a single completion call fails."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class FatalProviderOutput(GatewayError):
    """Raised when the provider answered but the payload is unusable."""


class ExhaustedError(GatewayError):
    """Raised when every credential in the pool has failed."""

    def __init__(self, message: str, cause: ErrorClass | None = None, attempts: int = 0):
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts
