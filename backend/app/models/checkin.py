"""
Check-in model.

At most one row per (event, user) and per (event, companion). Concurrent scans
of the same code race on these constraints; the loser is reported as
"already checked in".
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Index, Uuid

from app.db.base import Base, UUIDPrimaryKeyMixin, utcnow


class Checkin(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "event_checkins"

    event_id = Column(Uuid, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    companion_id = Column(Uuid, ForeignKey("booking_companions.id"), nullable=True)
    method = Column(String(10), nullable=False, default="scan")
    checked_in_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    checked_in_by = Column(Uuid, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_checkin_event_user"),
        UniqueConstraint("event_id", "companion_id", name="uq_checkin_event_companion"),
        CheckConstraint(
            "(user_id IS NULL) <> (companion_id IS NULL)", name="check_checkin_single_principal"
        ),
        CheckConstraint("method IN ('scan', 'manual')", name="check_checkin_method"),
        Index("ix_event_checkins_user_time", "user_id", "checked_in_at"),
    )
