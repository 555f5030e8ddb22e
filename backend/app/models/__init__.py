from app.models.user import User
from app.models.event import Event, DistanceTier, Mountain, event_mountains
from app.models.booking import Booking, Companion
from app.models.checkin import Checkin
from app.models.achievement import Badge, UserBadge, Border, UserBorder

__all__ = [
    "User",
    "Event", "DistanceTier", "Mountain", "event_mountains",
    "Booking", "Companion",
    "Checkin",
    "Badge", "UserBadge", "Border", "UserBorder",
]
