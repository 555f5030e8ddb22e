"""
Event model with capacity pools.

Key design decisions:
- ``reserved_slots`` is a denormalized count of active principals so a
  reservation is a single conditional UPDATE instead of a COUNT over bookings
  and companions.
- ``version`` enables optimistic locking; every reservation bumps it.
- When an event defines distance tiers, each tier is its own pool and the
  event-level counter is left untouched.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Float, ForeignKey, Index, CheckConstraint, Table, Uuid,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


event_mountains = Table(
    "event_mountains",
    Base.metadata,
    Column("event_id", Uuid, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("mountain_id", Uuid, ForeignKey("mountains.id", ondelete="CASCADE"), primary_key=True),
)


class Event(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "events"

    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    category = Column(String(20), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)
    price = Column(Integer, nullable=False, default=0)
    capacity = Column(Integer, nullable=False)
    reserved_slots = Column(Integer, nullable=False, default=0)
    organizer_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    tiers = relationship(
        "DistanceTier", back_populates="event", lazy="selectin", order_by="DistanceTier.distance_km"
    )
    mountains = relationship("Mountain", secondary=event_mountains, lazy="selectin")

    __table_args__ = (
        CheckConstraint("reserved_slots >= 0", name="check_event_reserved_non_negative"),
        CheckConstraint("capacity > 0", name="check_event_capacity_positive"),
        CheckConstraint("reserved_slots <= capacity", name="check_event_reserved_lte_capacity"),
        CheckConstraint("price >= 0", name="check_event_price_non_negative"),
        Index("ix_events_date", "date"),
    )

    @property
    def has_tiers(self) -> bool:
        return bool(self.tiers)

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, reserved={self.reserved_slots}/{self.capacity})>"


class DistanceTier(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "event_distances"

    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(100), nullable=True)
    distance_km = Column(Float, nullable=False)
    price = Column(Integer, nullable=False, default=0)
    capacity = Column(Integer, nullable=False)
    reserved_slots = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    event = relationship("Event", back_populates="tiers")

    __table_args__ = (
        CheckConstraint("reserved_slots >= 0", name="check_tier_reserved_non_negative"),
        CheckConstraint("capacity > 0", name="check_tier_capacity_positive"),
        CheckConstraint("reserved_slots <= capacity", name="check_tier_reserved_lte_capacity"),
        CheckConstraint("price >= 0", name="check_tier_price_non_negative"),
    )


class Mountain(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "mountains"

    name = Column(String(255), nullable=False)
    province = Column(String(100), nullable=False, index=True)
