"""
Achievement criteria as pure functions of a user's participation history.

The engine snapshots history into ``HistoryStats`` and asks these predicates
whether each border / system badge is earned. No counters are kept anywhere
else, so evaluating twice for the same history gives the same answer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable


class EventCategory(str, Enum):
    HIKING = "hiking"
    RUNNING = "running"
    ROAD_BIKE = "road_bike"
    MTB = "mtb"
    TRAIL_RUN = "trail_run"


ALL_CATEGORIES = tuple(c.value for c in EventCategory)


class Rarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class BadgeCategory(str, Enum):
    DISTANCE = "distance"
    ADVENTURE = "adventure"
    LOCATION = "location"
    SPECIAL = "special"


class BorderCriteria(str, Enum):
    EVENT_COUNT = "event_count"
    EVENT_TYPE_COUNT = "event_type_count"
    ALL_ACTIVITIES = "all_activities"
    MOUNTAIN_REGION = "mountain_region"
    SIGNUP_DATE = "signup_date"
    ORGANIZER_EVENT_COUNT = "organizer_event_count"


@dataclass(frozen=True)
class HistoryStats:
    as_of: datetime
    signup_at: datetime | None = None
    total_checkins: int = 0
    checkins_by_category: dict[str, int] = field(default_factory=dict)
    mountains_by_province: dict[str, int] = field(default_factory=dict)
    checkins_by_organizer: dict[str, int] = field(default_factory=dict)
    organized_event_count: int = 0
    pioneer_rank: int | None = None

    def category_count(self, category: str) -> int:
        return self.checkins_by_category.get(category, 0)

    @property
    def distinct_categories(self) -> int:
        return sum(1 for count in self.checkins_by_category.values() if count > 0)


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _signup_date(payload: dict[str, Any], stats: HistoryStats) -> bool:
    if stats.signup_at is None:
        return False
    if "before" in payload:
        return stats.signup_at < _parse_datetime(str(payload["before"]))
    if "min_days" in payload:
        return stats.as_of - stats.signup_at >= timedelta(days=int(payload["min_days"]))
    return False


def _event_count(payload: dict[str, Any], stats: HistoryStats) -> bool:
    return stats.total_checkins >= int(payload.get("min_events", 1))


def _event_type_count(payload: dict[str, Any], stats: HistoryStats) -> bool:
    if "event_type" in payload:
        return stats.category_count(payload["event_type"]) >= int(payload.get("min_events", 1))
    return stats.distinct_categories >= int(payload.get("min_types", 1))


def _all_activities(payload: dict[str, Any], stats: HistoryStats) -> bool:
    required = payload.get("required_types") or ALL_CATEGORIES
    return all(stats.category_count(category) >= 1 for category in required)


def _mountain_region(payload: dict[str, Any], stats: HistoryStats) -> bool:
    province = payload.get("province")
    if not province:
        return False
    return stats.mountains_by_province.get(province, 0) >= int(payload.get("mountain_count", 1))


def _organizer_event_count(payload: dict[str, Any], stats: HistoryStats) -> bool:
    min_events = int(payload.get("min_events", 1))
    organizer_id = payload.get("organizer_id")
    if organizer_id:
        return stats.checkins_by_organizer.get(str(organizer_id), 0) >= min_events
    # no organizer named: the user's own organizing record
    return stats.organized_event_count >= min_events


BORDER_EVALUATORS: dict[str, Callable[[dict[str, Any], HistoryStats], bool]] = {
    BorderCriteria.SIGNUP_DATE.value: _signup_date,
    BorderCriteria.EVENT_COUNT.value: _event_count,
    BorderCriteria.EVENT_TYPE_COUNT.value: _event_type_count,
    BorderCriteria.ALL_ACTIVITIES.value: _all_activities,
    BorderCriteria.MOUNTAIN_REGION.value: _mountain_region,
    BorderCriteria.ORGANIZER_EVENT_COUNT.value: _organizer_event_count,
}


def border_earned(criteria_type: str, payload: dict[str, Any] | None, stats: HistoryStats) -> bool:
    evaluate = BORDER_EVALUATORS.get(criteria_type)
    if evaluate is None:
        return False
    return evaluate(payload or {}, stats)


@dataclass(frozen=True)
class SystemBadge:
    criteria_key: str
    title: str
    description: str
    category: BadgeCategory
    rarity: Rarity
    image_url: str


SYSTEM_BADGES: tuple[SystemBadge, ...] = (
    SystemBadge("first_hike", "First Hike", "Checked in to your first hiking event",
                BadgeCategory.ADVENTURE, Rarity.COMMON, "🥾"),
    SystemBadge("first_run", "First Run", "Checked in to your first running event",
                BadgeCategory.DISTANCE, Rarity.COMMON, "🏃"),
    SystemBadge("first_road_ride", "First Road Ride", "Checked in to your first road biking event",
                BadgeCategory.DISTANCE, Rarity.COMMON, "🚴"),
    SystemBadge("first_mtb", "First MTB Ride", "Checked in to your first mountain biking event",
                BadgeCategory.DISTANCE, Rarity.COMMON, "🚵"),
    SystemBadge("first_trail_run", "First Trail Run", "Checked in to your first trail running event",
                BadgeCategory.ADVENTURE, Rarity.COMMON, "🌲"),
    SystemBadge("all_rounder", "All-Rounder", "Checked in to at least one event of every activity type",
                BadgeCategory.SPECIAL, Rarity.EPIC, "🌟"),
    SystemBadge("events_5", "5 Events", "Checked in to 5 events",
                BadgeCategory.SPECIAL, Rarity.COMMON, "🏅"),
    SystemBadge("events_10", "10 Events", "Checked in to 10 events",
                BadgeCategory.SPECIAL, Rarity.RARE, "🎖️"),
    SystemBadge("events_25", "25 Events", "Checked in to 25 events",
                BadgeCategory.SPECIAL, Rarity.EPIC, "🏆"),
    SystemBadge("events_50", "50 Events", "Checked in to 50 events",
                BadgeCategory.SPECIAL, Rarity.LEGENDARY, "👑"),
    SystemBadge("pioneer", "EventTara Pioneer", "Among the first 100 users to check in on EventTara",
                BadgeCategory.SPECIAL, Rarity.LEGENDARY, "🚀"),
)


def _milestone(n: int) -> Callable[[HistoryStats, int], bool]:
    return lambda stats, _limit: stats.total_checkins >= n


def _first_of(category: EventCategory) -> Callable[[HistoryStats, int], bool]:
    return lambda stats, _limit: stats.category_count(category.value) >= 1


BADGE_EVALUATORS: dict[str, Callable[[HistoryStats, int], bool]] = {
    "first_hike": _first_of(EventCategory.HIKING),
    "first_run": _first_of(EventCategory.RUNNING),
    "first_road_ride": _first_of(EventCategory.ROAD_BIKE),
    "first_mtb": _first_of(EventCategory.MTB),
    "first_trail_run": _first_of(EventCategory.TRAIL_RUN),
    "all_rounder": lambda stats, _limit: all(stats.category_count(c) >= 1 for c in ALL_CATEGORIES),
    "events_5": _milestone(5),
    "events_10": _milestone(10),
    "events_25": _milestone(25),
    "events_50": _milestone(50),
    "pioneer": lambda stats, limit: stats.pioneer_rank is not None and stats.pioneer_rank <= limit,
}


def badge_earned(criteria_key: str, stats: HistoryStats, pioneer_limit: int = 100) -> bool:
    evaluate = BADGE_EVALUATORS.get(criteria_key)
    if evaluate is None:
        return False
    return evaluate(stats, pioneer_limit)
