"""
Domain error taxonomy.

Services raise these; the API layer renders them as
``{"error": <code>, "message": <text>}`` with the mapped HTTP status.
Check-in outcomes (invalid token, not registered, payment warning,
already checked in) are results rather than exceptions, see
``app.schemas.checkin.CheckinResult``.
"""

from enum import Enum


class ErrorCode(str, Enum):
    CAPACITY_EXCEEDED = "capacity_exceeded"
    INVALID_PAYMENT_METHOD = "invalid_payment_method"
    INVALID_TIER = "invalid_tier"
    ALREADY_BOOKED = "already_booked"
    ILLEGAL_TRANSITION = "illegal_transition"
    NOT_PENDING = "not_pending"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INVALID_REQUEST = "invalid_request"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode = ErrorCode.INVALID_REQUEST
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class CapacityExceeded(DomainError):
    code = ErrorCode.CAPACITY_EXCEEDED
    status_code = 409

    def __init__(self, requested: int, available: int, message: str | None = None) -> None:
        super().__init__(
            message or f"Not enough spots available. Requested: {requested}, Available: {available}"
        )
        self.requested = requested
        self.available = available


class InvalidPaymentMethod(DomainError):
    code = ErrorCode.INVALID_PAYMENT_METHOD


class InvalidTier(DomainError):
    code = ErrorCode.INVALID_TIER


class InvalidRequest(DomainError):
    code = ErrorCode.INVALID_REQUEST


class AlreadyBooked(DomainError):
    code = ErrorCode.ALREADY_BOOKED
    status_code = 409


class IllegalTransition(DomainError):
    code = ErrorCode.ILLEGAL_TRANSITION
    status_code = 409


class NotPending(IllegalTransition):
    """Payment decision attempted on a booking whose payment is not pending."""

    code = ErrorCode.NOT_PENDING


class Unauthorized(DomainError):
    code = ErrorCode.UNAUTHORIZED
    status_code = 403


class NotFound(DomainError):
    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, entity: str, entity_id) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id
