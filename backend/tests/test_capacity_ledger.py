"""
Capacity ledger under contention: the last slot, version conflicts, releases.
"""

import asyncio
import uuid
from collections import Counter

import pytest
from sqlalchemy import update

from app.core.errors import CapacityExceeded, NotFound
from app.db.session import transaction
from app.models import Event
from app.schemas.booking import BookingCreate
from app.services import booking_service, capacity_ledger
from app.services.capacity_ledger import PoolRef


async def reserved(session_factory, event_id) -> int:
    async with session_factory() as db:
        return (await db.get(Event, event_id)).reserved_slots


@pytest.mark.asyncio
async def test_two_requests_for_last_slot(session_factory, make_event, test_user, other_user):
    """Concurrent bookings for the last slot: exactly one wins."""
    event = await make_event(price=0, capacity=1)

    async def book(user_id):
        async with session_factory() as db:
            try:
                await booking_service.create_booking(
                    db, user_id, BookingCreate(event_id=event.id, payment_method="free")
                )
                return "booked"
            except CapacityExceeded:
                return "refused"

    results = await asyncio.gather(book(test_user.id), book(other_user.id))

    assert sorted(results) == ["booked", "refused"]
    assert await reserved(session_factory, event.id) == 1


@pytest.mark.asyncio
async def test_many_requests_never_overbook(session_factory, make_event, make_user):
    event = await make_event(price=0, capacity=3)
    users = [await make_user(f"runner{i}") for i in range(6)]

    async def book(user_id):
        async with session_factory() as db:
            try:
                await booking_service.create_booking(
                    db, user_id, BookingCreate(event_id=event.id, payment_method="free")
                )
                return True
            except CapacityExceeded:
                return False

    results = await asyncio.gather(*(book(u.id) for u in users))

    assert sum(results) == 3
    assert await reserved(session_factory, event.id) == 3
    async with session_factory() as db:
        assert await capacity_ledger.active_principal_count(db, PoolRef(event.id)) == 3


@pytest.mark.asyncio
async def test_version_conflict_is_retried(session_factory, make_event, monkeypatch):
    """Someone else moves the pool between our read and our update: we re-read and still fit."""
    event = await make_event(price=0, capacity=5)
    original_load = capacity_ledger._load_pool
    loads = []

    async def load_then_interfere(db, pool):
        row = await original_load(db, pool)
        loads.append(row.version)
        if len(loads) == 1:
            async with session_factory() as other:
                await other.execute(
                    update(Event)
                    .where(Event.id == event.id)
                    .values(reserved_slots=Event.reserved_slots + 1, version=Event.version + 1)
                )
                await other.commit()
        return row

    monkeypatch.setattr(capacity_ledger, "_load_pool", load_then_interfere)

    async with session_factory() as db:
        async with transaction(db):
            grant = await capacity_ledger.reserve(db, PoolRef(event.id), 2)

    assert len(loads) == 2
    assert loads[1] == loads[0] + 1
    assert grant.reserved_after == 3
    assert await reserved(session_factory, event.id) == 3


@pytest.mark.asyncio
async def test_refusal_reports_availability(session_factory, make_event):
    event = await make_event(price=0, capacity=4, reserved_slots=3)
    async with session_factory() as db:
        with pytest.raises(CapacityExceeded) as exc_info:
            async with transaction(db):
                await capacity_ledger.reserve(db, PoolRef(event.id), 2)

    assert exc_info.value.requested == 2
    assert exc_info.value.available == 1
    assert await reserved(session_factory, event.id) == 3


@pytest.mark.asyncio
async def test_multi_pool_request_is_all_or_nothing(session_factory, make_event, db_session):
    """The first tier fits, the second does not: the first grant is rolled back too."""
    event = await make_event(
        price=0,
        tiers=[
            {"label": "5K", "distance_km": 5, "price": 0, "capacity": 5},
            {"label": "21K", "distance_km": 21, "price": 0, "capacity": 1},
        ],
    )
    counts = Counter({PoolRef(event.id, t.id): 2 for t in event.tiers})

    async with session_factory() as db:
        with pytest.raises(CapacityExceeded):
            async with transaction(db):
                await capacity_ledger.reserve_many(db, counts)

    for tier in event.tiers:
        await db_session.refresh(tier)
        assert tier.reserved_slots == 0


@pytest.mark.asyncio
async def test_release_never_goes_negative(session_factory, make_event):
    event = await make_event(price=0, capacity=5, reserved_slots=1)
    async with session_factory() as db:
        async with transaction(db):
            await capacity_ledger.release(db, PoolRef(event.id), 3)
    assert await reserved(session_factory, event.id) == 0

    async with session_factory() as db:
        async with transaction(db):
            await capacity_ledger.release(db, PoolRef(event.id), 1)
    assert await reserved(session_factory, event.id) == 0


@pytest.mark.asyncio
async def test_recount_repairs_drifted_counter(session_factory, make_event, test_user):
    event = await make_event(price=0, capacity=10)
    async with session_factory() as db:
        await booking_service.create_booking(
            db,
            test_user.id,
            BookingCreate(
                event_id=event.id,
                payment_method="free",
                companions=[{"full_name": "Ana"}, {"full_name": "Ben"}],
            ),
        )

    async with session_factory() as db:
        await db.execute(update(Event).where(Event.id == event.id).values(reserved_slots=7))
        await db.commit()

    async with session_factory() as db:
        async with transaction(db):
            assert await capacity_ledger.recount(db, PoolRef(event.id)) == 3
    assert await reserved(session_factory, event.id) == 3


@pytest.mark.asyncio
async def test_unknown_pool(session_factory):
    async with session_factory() as db:
        with pytest.raises(NotFound):
            await capacity_ledger.reserve(db, PoolRef(uuid.uuid4()), 1)
