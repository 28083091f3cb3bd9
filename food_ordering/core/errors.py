"""
Service Error Taxonomy

Every failure a service can report is one of these exceptions. Each carries
the HTTP status it maps to; ``food_ordering.main`` renders them through a
single exception handler so route functions stay free of status bookkeeping.
"""

from typing import Optional


class FoodOrderingError(Exception):
    """Base class for all service errors."""

    status_code: int = 500
    default_detail: str = "An unexpected error occurred"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def code(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        """Convert to the standard error body."""
        return {
            "success": False,
            "error": self.code,
            "detail": self.detail,
        }


class ValidationError(FoodOrderingError):
    """Missing or malformed input."""
    status_code = 400
    default_detail = "Invalid request"


class DuplicateIdentity(FoodOrderingError):
    """Mobile number or email already registered."""
    status_code = 400
    default_detail = "Email or mobile number already in use"


class InvalidCredentials(FoodOrderingError):
    """Sign-in identifier unknown or secret mismatch."""
    status_code = 401
    default_detail = "Invalid credentials"


class Unauthenticated(FoodOrderingError):
    """No bearer credential on a protected route."""
    status_code = 401
    default_detail = "Access denied"


class Forbidden(FoodOrderingError):
    """Credential present but not acceptable."""
    status_code = 403
    default_detail = "Invalid token"


class InvalidToken(FoodOrderingError):
    """Token malformed, tampered with, foreign-signed or expired."""
    status_code = 403
    default_detail = "Invalid token"


class NotFound(FoodOrderingError):
    """Referenced record does not exist."""
    status_code = 404
    default_detail = "Not found"


class InvalidStatus(FoodOrderingError):
    """Requested order status is not one of the known values."""
    status_code = 400
    default_detail = "Invalid status"


class InvalidTransition(FoodOrderingError):
    """Requested status change leaves a terminal state."""
    status_code = 409
    default_detail = "Status transition not allowed"


class StoreFailure(FoodOrderingError):
    """Persistence layer unavailable or rejected the operation."""
    status_code = 500
    default_detail = "Storage operation failed"


__all__ = [
    "FoodOrderingError",
    "ValidationError",
    "DuplicateIdentity",
    "InvalidCredentials",
    "Unauthenticated",
    "Forbidden",
    "InvalidToken",
    "NotFound",
    "InvalidStatus",
    "InvalidTransition",
    "StoreFailure",
]
