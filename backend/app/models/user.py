"""
User model. ``created_at`` doubles as the signup date for signup borders.
"""

from sqlalchemy import Column, String, Boolean, ForeignKey, Uuid

from app.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False, default="")
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Displayed border; must be one the user has been awarded (checked in the service)
    active_border_id = Column(Uuid, ForeignKey("avatar_borders.id", ondelete="SET NULL"), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
