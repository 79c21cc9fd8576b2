"""
Error taxonomy for the policy gateway.

Every client-facing failure is a GatewayError carrying the HTTP status it
maps to and the message returned in the `{"error": ...}` body. The FastAPI
exception handlers in apps/api/main.py render them; nothing else needs to
know about status codes.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for errors that end a request with a structured response."""

    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidArgument(GatewayError):
    """Payload failed schema or shape validation."""

    status_code = 400
    default_message = "Invalid request."


class Unauthenticated(GatewayError):
    """Service token missing, malformed, expired or badly signed."""

    status_code = 401
    default_message = "Missing or invalid service token."


class Unauthorized(GatewayError):
    """Caller identity is valid but not allowed."""

    status_code = 403
    default_message = "Caller is not authorized."


class NotFound(GatewayError):
    status_code = 404
    default_message = "Not found."


class DependencyFailure(GatewayError):
    """The decision engine call failed. Details stay in the logs."""

    status_code = 500
    default_message = "Decision engine request failed."

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        super().__init__(message or f"Failed to {operation}.")


class ConfigurationError(GatewayError):
    """Required process configuration is missing."""

    status_code = 500
    default_message = "Gateway is misconfigured."


class ServiceUnavailable(GatewayError):
    status_code = 503
    default_message = "Decision engine not ready."


class FatalError(GatewayError):
    """Startup failure. Propagates out of the lifespan so the process exits."""

    default_message = "Gateway failed to start."
