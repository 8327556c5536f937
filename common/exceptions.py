"""
Saakie - Custom Exceptions
===========================
Business-level exceptions. Each carries the HTTP status it maps to;
main.py renders them as {"error": ..., "details"?: ...}.
"""

from typing import Any, Optional


class StoreError(Exception):
    """Base exception for all business logic errors."""
    status_code = 500

    def __init__(self, message: str = "Internal server error", details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthenticationError(StoreError):
    """Raised when no valid session is present."""
    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[Any] = None):
        super().__init__(message, details)


class AuthorizationError(StoreError):
    """Raised when user lacks the required role."""
    status_code = 403

    def __init__(self, message: str = "Forbidden", details: Optional[Any] = None):
        super().__init__(message, details)


class NotFoundError(StoreError):
    """Raised when a requested resource doesn't exist (or isn't the caller's)."""
    status_code = 404


class ValidationError(StoreError):
    """Raised for bad input: missing fields, invalid quantities."""
    status_code = 400


class InsufficientInventoryError(ValidationError):
    """Raised when product stock is not enough."""

    def __init__(self, available: int):
        self.available = available
        super().__init__(f"Only {available} items available in stock")


class InvalidTransitionError(ValidationError):
    """Raised when an order lifecycle transition is not allowed."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current} to {target}")


class PaymentError(ValidationError):
    """Raised when a payment cannot be verified or is not payable."""
    pass


class WebhookSignatureError(ValidationError):
    """Raised when a webhook signature is missing or does not match."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class DuplicateError(StoreError):
    """Raised for unique constraint violations at the business level."""
    status_code = 409


class ConflictError(StoreError):
    """Raised when the current state prevents the operation (e.g. stock taken meanwhile)."""
    status_code = 409


class GatewayError(StoreError):
    """Raised when an external gateway call fails."""
    status_code = 500


class ServiceUnavailableError(StoreError):
    """Raised when a required external service is not configured."""
    status_code = 503
