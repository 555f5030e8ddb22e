"""
Achievement engine: snapshots a user's history and awards what it earns.

Awards are insert-if-absent per (user, artifact). Each insert is committed on
its own so a uniqueness conflict (a concurrent evaluation got there first)
rolls back only that one row and is skipped silently. Only rows actually
inserted are reported back, which is what keeps notifications exactly-once.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import distinct, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import InvalidRequest, NotFound, Unauthorized
from app.core.logging import get_logger
from app.core.metrics import record_award
from app.db.base import as_utc, utcnow
from app.domain.achievements import SYSTEM_BADGES, HistoryStats, badge_earned, border_earned
from app.models.achievement import Badge, Border, UserBadge, UserBorder
from app.models.checkin import Checkin
from app.models.event import Event, Mountain, event_mountains
from app.models.user import User

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class AwardOutcome:
    """What one evaluation newly granted, as (id, display name) pairs."""

    badges: list[tuple[uuid.UUID, str]] = field(default_factory=list)
    borders: list[tuple[uuid.UUID, str]] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.badges or self.borders)


async def _pioneer_rank(db: AsyncSession, user_id: uuid.UUID) -> int | None:
    """1-based position of the user among everyone who ever checked in."""
    own_first = await db.scalar(
        select(func.min(Checkin.checked_in_at)).where(Checkin.user_id == user_id)
    )
    if own_first is None:
        return None

    firsts = (
        select(Checkin.user_id, func.min(Checkin.checked_in_at).label("first_at"))
        .where(Checkin.user_id.is_not(None))
        .group_by(Checkin.user_id)
        .subquery()
    )
    earlier = await db.scalar(
        select(func.count()).select_from(firsts).where(firsts.c.first_at < own_first)
    )
    return (earlier or 0) + 1


async def build_history(
    db: AsyncSession, user_id: uuid.UUID, as_of: datetime | None = None
) -> HistoryStats:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User", user_id)

    rows = (
        await db.execute(
            select(Event.category, Event.organizer_id)
            .join(Checkin, Checkin.event_id == Event.id)
            .where(Checkin.user_id == user_id)
        )
    ).all()

    by_category: dict[str, int] = {}
    by_organizer: dict[str, int] = {}
    for category, organizer_id in rows:
        by_category[category] = by_category.get(category, 0) + 1
        by_organizer[str(organizer_id)] = by_organizer.get(str(organizer_id), 0) + 1

    mountain_rows = (
        await db.execute(
            select(Mountain.province, func.count(distinct(Mountain.id)))
            .join(event_mountains, event_mountains.c.mountain_id == Mountain.id)
            .join(Checkin, Checkin.event_id == event_mountains.c.event_id)
            .where(Checkin.user_id == user_id)
            .group_by(Mountain.province)
        )
    ).all()

    organized = await db.scalar(
        select(func.count(Event.id)).where(Event.organizer_id == user_id)
    )

    return HistoryStats(
        as_of=as_of or utcnow(),
        signup_at=as_utc(user.created_at),
        total_checkins=len(rows),
        checkins_by_category=by_category,
        mountains_by_province={province: count for province, count in mountain_rows},
        checkins_by_organizer=by_organizer,
        organized_event_count=organized or 0,
        pioneer_rank=await _pioneer_rank(db, user_id),
    )


async def _insert_once(db: AsyncSession, row) -> bool:
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return False
    return True


async def evaluate_and_award(db: AsyncSession, user_id: uuid.UUID) -> AwardOutcome:
    """
    Evaluate every border and system badge for the user and insert the earned
    ones that are not yet held. Safe to run any number of times.
    """
    stats = await build_history(db, user_id)

    held_badges = set(
        (await db.execute(select(UserBadge.badge_id).where(UserBadge.user_id == user_id))).scalars()
    )
    held_borders = set(
        (await db.execute(select(UserBorder.border_id).where(UserBorder.user_id == user_id))).scalars()
    )

    # plain rows, not ORM instances: a rolled-back award must not expire them
    system_badges = (
        await db.execute(
            select(Badge.id, Badge.criteria_key, Badge.title).where(Badge.criteria_key.is_not(None))
        )
    ).all()
    borders = (
        await db.execute(
            select(Border.id, Border.name, Border.criteria_type, Border.criteria_value)
            .order_by(Border.sort_order)
        )
    ).all()

    outcome = AwardOutcome()
    for badge_id, key, title in system_badges:
        if badge_id in held_badges or not badge_earned(key, stats, settings.PIONEER_LIMIT):
            continue
        if await _insert_once(db, UserBadge(user_id=user_id, badge_id=badge_id)):
            outcome.badges.append((badge_id, title))

    for border_id, name, criteria_type, criteria_value in borders:
        if border_id in held_borders or not border_earned(criteria_type, criteria_value, stats):
            continue
        if await _insert_once(db, UserBorder(user_id=user_id, border_id=border_id)):
            outcome.borders.append((border_id, name))

    record_award("badge", len(outcome.badges))
    record_award("border", len(outcome.borders))
    logger.info(
        "achievements_evaluated",
        user_id=str(user_id),
        total_checkins=stats.total_checkins,
        new_badges=len(outcome.badges),
        new_borders=len(outcome.borders),
    )
    return outcome


async def seed_system_badges(db: AsyncSession) -> int:
    """Create any missing system badge rows. Returns how many were inserted."""
    existing = set(
        (await db.execute(select(Badge.criteria_key).where(Badge.criteria_key.is_not(None)))).scalars()
    )
    inserted = 0
    for system in SYSTEM_BADGES:
        if system.criteria_key in existing:
            continue
        badge = Badge(
            title=system.title,
            description=system.description,
            image_url=system.image_url,
            category=system.category.value,
            rarity=system.rarity.value,
            type="system",
            criteria_key=system.criteria_key,
        )
        if await _insert_once(db, badge):
            inserted += 1
    if inserted:
        logger.info("system_badges_seeded", inserted=inserted)
    return inserted


async def award_event_badge(
    db: AsyncSession,
    badge_id: uuid.UUID,
    actor_id: uuid.UUID,
    user_ids: list[uuid.UUID],
) -> list[uuid.UUID]:
    """Organizer hands out an event badge. Returns the users who did not have it yet."""
    badge = await db.get(Badge, badge_id)
    if badge is None:
        raise NotFound("Badge", badge_id)
    if badge.event_id is None:
        raise InvalidRequest("System badges are awarded automatically")

    event = await db.get(Event, badge.event_id)
    if event is None or event.organizer_id != actor_id:
        raise Unauthorized("Only the event organizer can award this badge")

    held = set(
        (
            await db.execute(
                select(UserBadge.user_id).where(
                    UserBadge.badge_id == badge_id, UserBadge.user_id.in_(user_ids)
                )
            )
        ).scalars()
    )

    awarded = []
    for user_id in dict.fromkeys(user_ids):
        if user_id in held:
            continue
        if await _insert_once(db, UserBadge(user_id=user_id, badge_id=badge_id)):
            awarded.append(user_id)

    record_award("badge", len(awarded))
    logger.info(
        "event_badge_awarded",
        badge_id=str(badge_id),
        requested=len(user_ids),
        newly_awarded=len(awarded),
    )
    return awarded


async def list_achievements(db: AsyncSession, user_id: uuid.UUID):
    badges = (
        await db.execute(
            select(UserBadge, Badge)
            .join(Badge, Badge.id == UserBadge.badge_id)
            .where(UserBadge.user_id == user_id)
            .order_by(UserBadge.awarded_at)
        )
    ).all()
    borders = (
        await db.execute(
            select(UserBorder, Border)
            .join(Border, Border.id == UserBorder.border_id)
            .where(UserBorder.user_id == user_id)
            .order_by(Border.sort_order)
        )
    ).all()
    user = await db.get(User, user_id)
    return badges, borders, user.active_border_id if user else None


async def set_active_border(
    db: AsyncSession, user_id: uuid.UUID, border_id: uuid.UUID | None
) -> uuid.UUID | None:
    """Pick the displayed border; None clears it. Only awarded borders qualify."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User", user_id)

    if border_id is not None:
        owned = await db.scalar(
            select(UserBorder.id).where(
                UserBorder.user_id == user_id, UserBorder.border_id == border_id
            )
        )
        if owned is None:
            raise InvalidRequest("You have not earned this border")

    user.active_border_id = border_id
    await db.commit()
    logger.info("active_border_set", user_id=str(user_id), border_id=str(border_id) if border_id else None)
    return border_id
