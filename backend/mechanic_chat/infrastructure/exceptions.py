"""
Custom Exceptions for Mechanic Chat

Hierarchical exception classes for proper error handling across layers.
Each class maps to one HTTP status in main.py.
"""

from typing import Optional, Dict, Any


class MechanicChatError(Exception):
    """Base exception for all Mechanic Chat errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


# =============================================================================
# Authorization
# =============================================================================

class UnauthenticatedError(MechanicChatError):
    """Raised when no valid auth session accompanies the request."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(MechanicChatError):
    """Raised when the caller is authenticated but not entitled."""

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class SubscriptionRequiredError(MechanicChatError):
    """
    Raised when the caller has no active subscription.

    Carries ``action = "subscribe"`` so clients can route to the payment flow
    instead of a generic error page.
    """

    status_code = 402

    def __init__(self, message: str = "An active subscription is required"):
        super().__init__(message, details={"action": "subscribe"})


# =============================================================================
# Input
# =============================================================================

class ValidationError(MechanicChatError):
    """Raised when input validation fails."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        constraint: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if field:
            details["field"] = field
        if constraint:
            details["constraint"] = constraint
        super().__init__(message, details, original_error)


class InvalidAttachmentError(ValidationError):
    """Raised when an upload has a disallowed type or exceeds its size limit."""
    pass


class PaymentVerificationError(MechanicChatError):
    """Raised when a payment id cannot be verified with the processor."""

    status_code = 402

    def __init__(
        self,
        message: str = "Payment could not be verified",
        payment_id: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {"action": "subscribe"}
        if payment_id:
            details["payment_id"] = payment_id
        super().__init__(message, details, original_error)


# =============================================================================
# Persistence
# =============================================================================

class DatabaseError(MechanicChatError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found (or is not visible)."""

    status_code = 404


class ConflictError(DatabaseError):
    """Raised when attempting to create a duplicate resource."""

    status_code = 409


class StorageError(MechanicChatError):
    """Raised when the attachment blob store fails."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if path:
            details["path"] = path
        super().__init__(message, details, original_error)

