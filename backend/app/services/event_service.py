"""
Event service: creation with capacity pools, lookup, organizer checks.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidRequest, NotFound, Unauthorized
from app.db.base import as_utc
from app.db.session import transaction
from app.models.event import DistanceTier, Event, Mountain
from app.schemas.event import EventCreate, MountainIn
from app.core.logging import get_logger

logger = get_logger(__name__)


async def _get_or_create_mountain(db: AsyncSession, data: MountainIn) -> Mountain:
    result = await db.execute(
        select(Mountain).where(Mountain.name == data.name, Mountain.province == data.province)
    )
    mountain = result.scalar_one_or_none()
    if mountain is None:
        mountain = Mountain(id=uuid.uuid4(), name=data.name, province=data.province)
        db.add(mountain)
    return mountain


async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: uuid.UUID) -> Event:
    """
    Create an event with all slots free.
    With distance tiers, every tier is its own pool and the event capacity is
    their sum; without, the event itself is the single pool.
    """
    if as_utc(event_data.date) <= datetime.now(timezone.utc):
        raise InvalidRequest("Event date must be in the future")

    async with transaction(db):
        event = Event(
            id=uuid.uuid4(),
            title=event_data.title,
            description=event_data.description,
            category=event_data.category.value,
            date=event_data.date,
            location=event_data.location,
            price=event_data.price,
            capacity=event_data.capacity,
            reserved_slots=0,
            organizer_id=organizer_id,
        )
        if event_data.tiers:
            event.capacity = sum(t.capacity for t in event_data.tiers)
            event.tiers = [
                DistanceTier(
                    id=uuid.uuid4(),
                    label=t.label,
                    distance_km=t.distance_km,
                    price=t.price,
                    capacity=t.capacity,
                    reserved_slots=0,
                )
                for t in event_data.tiers
            ]
        else:
            event.tiers = []

        mountains = []
        for item in event_data.mountains:
            mountain = await _get_or_create_mountain(db, item)
            if mountain not in mountains:
                mountains.append(mountain)
        event.mountains = mountains

        db.add(event)
        await db.flush()

    logger.info(
        "event_created",
        event_id=str(event.id),
        title=event.title,
        capacity=event.capacity,
        tiers=len(event.tiers),
    )
    return event


async def get_event(db: AsyncSession, event_id: uuid.UUID) -> Event:
    """Get a single event by ID with fresh pool counters."""
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise NotFound("Event", event_id)
    return event


def ensure_organizer(event: Event, user_id: uuid.UUID, action: str = "do this") -> None:
    if event.organizer_id != user_id:
        raise Unauthorized(f"Only the event organizer can {action}")
