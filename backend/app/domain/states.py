"""
Booking and companion lifecycle.

A booking's lifecycle is one explicit state. The externally visible
``status`` / ``payment_status`` / ``participant_cancelled`` triple is derived
from it, so combinations like "confirmed but payment rejected" cannot be
stored in the first place.

    awaiting_payment --approve--> confirmed <--restore/withdraw--> withdrawn
          |   ^                       |                               |
       reject resubmit              refund                          refund
          v   |                       v                               v
    payment_rejected --void--> voided          refunded <-------------+
"""

from dataclasses import dataclass
from enum import Enum

from app.core.errors import IllegalTransition


class PaymentMethod(str, Enum):
    GCASH = "gcash"
    MAYA = "maya"
    CASH = "cash"
    FREE = "free"

    @property
    def is_wallet(self) -> bool:
        return self in (PaymentMethod.GCASH, PaymentMethod.MAYA)

    @property
    def mints_token_at_creation(self) -> bool:
        # cash and free hold a slot already, so the code is usable before money moves
        return self in (PaymentMethod.CASH, PaymentMethod.FREE)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REJECTED = "rejected"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class BookingView:
    status: BookingStatus
    payment_status: PaymentStatus
    participant_cancelled: bool


class BookingState(str, Enum):
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_REJECTED = "payment_rejected"
    CONFIRMED = "confirmed"
    WITHDRAWN = "withdrawn"
    REFUNDED = "refunded"
    VOIDED = "voided"

    @property
    def view(self) -> BookingView:
        return _BOOKING_VIEWS[self]

    @property
    def is_paid(self) -> bool:
        return self.view.payment_status is PaymentStatus.PAID

    @property
    def is_active(self) -> bool:
        """Whether the owner still holds a capacity slot."""
        return self not in (BookingState.REFUNDED, BookingState.VOIDED)

    @property
    def payment_pending(self) -> bool:
        return self is BookingState.AWAITING_PAYMENT


_BOOKING_VIEWS = {
    BookingState.AWAITING_PAYMENT: BookingView(BookingStatus.PENDING, PaymentStatus.PENDING, False),
    BookingState.PAYMENT_REJECTED: BookingView(BookingStatus.PENDING, PaymentStatus.REJECTED, False),
    BookingState.CONFIRMED: BookingView(BookingStatus.CONFIRMED, PaymentStatus.PAID, False),
    # withdrawn keeps its slot: attendance intent only, headcount already committed
    BookingState.WITHDRAWN: BookingView(BookingStatus.CONFIRMED, PaymentStatus.PAID, True),
    BookingState.REFUNDED: BookingView(BookingStatus.CANCELLED, PaymentStatus.REFUNDED, False),
    BookingState.VOIDED: BookingView(BookingStatus.CANCELLED, PaymentStatus.REJECTED, False),
}

BOOKING_TRANSITIONS: dict[BookingState, frozenset[BookingState]] = {
    BookingState.AWAITING_PAYMENT: frozenset(
        {BookingState.CONFIRMED, BookingState.PAYMENT_REJECTED, BookingState.VOIDED}
    ),
    BookingState.PAYMENT_REJECTED: frozenset({BookingState.AWAITING_PAYMENT, BookingState.VOIDED}),
    BookingState.CONFIRMED: frozenset({BookingState.WITHDRAWN, BookingState.REFUNDED}),
    BookingState.WITHDRAWN: frozenset({BookingState.CONFIRMED, BookingState.REFUNDED}),
    BookingState.REFUNDED: frozenset(),
    BookingState.VOIDED: frozenset(),
}


class CompanionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


COMPANION_TRANSITIONS: dict[CompanionStatus, frozenset[CompanionStatus]] = {
    CompanionStatus.PENDING: frozenset({CompanionStatus.CONFIRMED, CompanionStatus.CANCELLED}),
    CompanionStatus.CONFIRMED: frozenset({CompanionStatus.CANCELLED}),
    CompanionStatus.CANCELLED: frozenset({CompanionStatus.CONFIRMED}),
}


def assert_booking_transition(current: BookingState, target: BookingState) -> None:
    if target not in BOOKING_TRANSITIONS[current]:
        raise IllegalTransition(
            f"Invalid booking transition: {current.value} -> {target.value}"
        )


def assert_companion_transition(
    current: CompanionStatus,
    target: CompanionStatus,
    parent: BookingState,
) -> None:
    """Companions only move once the parent booking has been paid."""
    if not parent.is_paid:
        raise IllegalTransition(
            "Companions can only be confirmed or cancelled after the booking is paid"
        )
    if target not in COMPANION_TRANSITIONS[current]:
        raise IllegalTransition(
            f"Invalid companion transition: {current.value} -> {target.value}"
        )


def initial_booking_state(method: PaymentMethod) -> BookingState:
    if method is PaymentMethod.FREE:
        return BookingState.CONFIRMED
    return BookingState.AWAITING_PAYMENT


def initial_companion_status(method: PaymentMethod) -> CompanionStatus:
    if method is PaymentMethod.FREE:
        return CompanionStatus.CONFIRMED
    # cash companions are confirmable on the day; wallet ones wait for approval
    return CompanionStatus.PENDING
