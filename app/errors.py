"""
Error taxonomy for the subscription and delivery services.

Each error carries the HTTP status the API answers with; the handlers in
app.main turn them into JSON responses.
"""

from typing import Any


class AppError(Exception):
    """Base exception for the application."""

    status_code = 500
    public_message: str | None = None

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def response_message(self) -> str:
        """Message safe to return to the client."""
        return self.public_message or self.message


class ValidationError(AppError):
    """Malformed or out-of-range input."""

    status_code = 400


class AuthError(AppError):
    """Session token does not match the claimed subscription."""

    status_code = 401
    public_message = "Invalid session token"

    def __init__(self, message: str = "Invalid session token", details: Any = None):
        super().__init__(message, details)


class NotFoundError(AppError):
    status_code = 404


class ConfigurationError(AppError):
    """Push signing keys are missing or unusable."""

    public_message = "Push notifications not configured"


class StoreError(AppError):
    """Persistence layer unavailable or a constraint failed."""

    public_message = "Internal server error"


class CredentialError(AppError):
    """A stored token hash could not be parsed."""

    public_message = "Internal server error"


class DeliveryError(AppError):
    """A single push delivery failed.

    Contained inside the delivery engine: it is logged and counted, never
    returned to an API caller.
    """

    status_code = 502

    def __init__(self, message: str, status_code: int | None = None, permanent: bool = False):
        super().__init__(message, {"status_code": status_code})
        self.push_status = status_code
        self.permanent = permanent
