"""
Badges, borders and their awards.

Awards are unique per (user, artifact); the achievement engine relies on that
constraint to make repeated evaluation a no-op.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, JSON, Uuid

from app.db.base import Base, UUIDPrimaryKeyMixin, TimestampMixin, utcnow


class Badge(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "badges"

    event_id = Column(Uuid, ForeignKey("events.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    image_url = Column(String(500), nullable=True)
    category = Column(String(20), nullable=False, default="special")
    rarity = Column(String(20), nullable=False, default="common")
    type = Column(String(10), nullable=False, default="event")  # event, system
    criteria_key = Column(String(50), nullable=True, unique=True)


class UserBadge(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "user_badges"

    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    badge_id = Column(Uuid, ForeignKey("badges.id"), nullable=False)
    awarded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),)


class Border(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "avatar_borders"

    slug = Column(String(100), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    tier = Column(String(20), nullable=False, default="common")
    criteria_type = Column(String(30), nullable=False)
    criteria_value = Column(JSON, nullable=False, default=dict)
    sort_order = Column(Integer, nullable=False, default=0)


class UserBorder(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "user_avatar_borders"

    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    border_id = Column(Uuid, ForeignKey("avatar_borders.id"), nullable=False)
    awarded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("user_id", "border_id", name="uq_user_border"),)
