"""
Booking and companion models.

Key design decisions:
- A booking's lifecycle is a single ``state`` column (see app.domain.states);
  ``status``, ``payment_status`` and ``participant_cancelled`` are derived.
- One active booking per user per event, enforced by a partial unique index
  that ignores refunded/voided bookings so the user can book again.
- Companions carry no payment record; their eligibility follows the parent.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, CheckConstraint, Uuid, text
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from app.domain.states import (
    BookingState, BookingStatus, CompanionStatus, PaymentMethod, PaymentStatus,
)

_TERMINAL_STATES = "state NOT IN ('refunded', 'voided')"


class Booking(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "bookings"

    event_id = Column(Uuid, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    tier_id = Column(Uuid, ForeignKey("event_distances.id"), nullable=True)
    state = Column(String(20), nullable=False, default=BookingState.AWAITING_PAYMENT.value)
    payment_method = Column(String(10), nullable=False)
    payment_proof_ref = Column(String(500), nullable=True)
    qr_token = Column(String(200), nullable=True)
    payment_verified_at = Column(DateTime(timezone=True), nullable=True)
    payment_verified_by = Column(Uuid, ForeignKey("users.id"), nullable=True)

    companions = relationship(
        "Companion", back_populates="booking", lazy="selectin", order_by="Companion.created_at"
    )
    event = relationship("Event", lazy="selectin")
    tier = relationship("DistanceTier", lazy="selectin")
    user = relationship("User", foreign_keys=[user_id], lazy="selectin")

    __table_args__ = (
        Index(
            "uq_active_booking_user_event",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=text(_TERMINAL_STATES),
            sqlite_where=text(_TERMINAL_STATES),
        ),
        CheckConstraint(
            "payment_method IN ('gcash', 'maya', 'cash', 'free')", name="check_booking_payment_method"
        ),
    )

    @property
    def booking_state(self) -> BookingState:
        return BookingState(self.state)

    @property
    def method(self) -> PaymentMethod:
        return PaymentMethod(self.payment_method)

    @property
    def status(self) -> BookingStatus:
        return self.booking_state.view.status

    @property
    def payment_status(self) -> PaymentStatus:
        return self.booking_state.view.payment_status

    @property
    def participant_cancelled(self) -> bool:
        return self.booking_state.view.participant_cancelled

    @property
    def active_companions(self) -> list["Companion"]:
        return [c for c in self.companions if c.companion_status is not CompanionStatus.CANCELLED]

    @property
    def confirmed_companions(self) -> list["Companion"]:
        return [c for c in self.companions if c.companion_status is CompanionStatus.CONFIRMED]

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, state={self.state})>"


class Companion(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "booking_companions"

    booking_id = Column(Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=CompanionStatus.PENDING.value)
    qr_token = Column(String(200), nullable=True)
    tier_id = Column(Uuid, ForeignKey("event_distances.id"), nullable=True)

    booking = relationship("Booking", back_populates="companions", lazy="selectin")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')", name="check_companion_status"
        ),
    )

    @property
    def companion_status(self) -> CompanionStatus:
        return CompanionStatus(self.status)

    def __repr__(self) -> str:
        return f"<Companion(id={self.id}, booking={self.booking_id}, status={self.status})>"
