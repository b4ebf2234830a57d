"""Domain errors and their HTTP mapping."""

from fastapi import status


class AppError(Exception):
    """Base class for errors rendered as ``{"message": ...}`` responses."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Missing or invalid input (non-positive amounts, bad fields)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class ConflictError(AppError):
    """Duplicate username, email or tracked symbol."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource already exists"


class AuthenticationError(AppError):
    """Bad credentials or a missing, invalid or expired token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class NotFoundError(AppError):
    """Unknown symbol, or a holding the caller does not own."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class UpstreamUnavailable(AppError):
    """Every market data source failed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Market data provider unavailable"


class PersistenceError(AppError):
    """Database unreachable or a write could not be completed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Database error"
