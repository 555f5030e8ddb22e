"""
Capacity ledger: grants and releases slots in an event's capacity pools.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two people try to take the last slot simultaneously.
  Both read reserved_slots=capacity-1, both increment, both succeed.
  Result: Overbooking.

Solution:
  Every pool row (events, or event_distances when the event has tiers) carries
  a `version` column and a denormalized `reserved_slots` counter.

  1. Read the pool's current version and occupancy
  2. UPDATE <pool> SET reserved_slots = reserved_slots + N, version = version + 1
     WHERE id = :id AND version = :v AND reserved_slots + N <= capacity
  3. If rows_affected == 0, someone else moved the pool -> re-read and retry

  The re-read uses populate_existing so the stale identity-map copy is
  replaced instead of trusted. The CHECK constraint reserved_slots <= capacity
  is the final safety net.

Multi-person requests:
  A request adding several principals reserves every pool it touches inside
  the caller's transaction, in a stable pool order. If any pool refuses, the
  caller's transaction is rolled back, so grants never survive partially.
"""

import uuid
from collections import Counter
from dataclasses import dataclass

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import CapacityExceeded, NotFound
from app.core.logging import get_logger
from app.core.metrics import capacity_retries
from app.domain.states import BookingState, CompanionStatus
from app.models.booking import Booking, Companion
from app.models.event import DistanceTier, Event

logger = get_logger(__name__)
settings = get_settings()

_INACTIVE_BOOKING_STATES = (BookingState.REFUNDED.value, BookingState.VOIDED.value)


@dataclass(frozen=True)
class PoolRef:
    """A capacity pool: the whole event, or one of its distance tiers."""

    event_id: uuid.UUID
    tier_id: uuid.UUID | None = None

    def sort_key(self) -> tuple[str, str]:
        return (str(self.event_id), str(self.tier_id or ""))


@dataclass(frozen=True)
class Grant:
    pool: PoolRef
    count: int
    reserved_after: int
    capacity: int


def _pool_model(pool: PoolRef):
    return DistanceTier if pool.tier_id is not None else Event


def _pool_id(pool: PoolRef) -> uuid.UUID:
    return pool.tier_id if pool.tier_id is not None else pool.event_id


async def _load_pool(db: AsyncSession, pool: PoolRef):
    model = _pool_model(pool)
    result = await db.execute(
        select(model)
        .where(model.id == _pool_id(pool))
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFound("Distance tier" if pool.tier_id else "Event", _pool_id(pool))
    return row


async def reserve(db: AsyncSession, pool: PoolRef, count: int) -> Grant:
    """
    Reserve `count` slots in one pool.
    Raises CapacityExceeded without touching the pool when it cannot fit.
    """
    if count <= 0:
        row = await _load_pool(db, pool)
        return Grant(pool, 0, row.reserved_slots, row.capacity)

    model = _pool_model(pool)
    for attempt in range(1, settings.CAPACITY_MAX_RETRIES + 1):
        row = await _load_pool(db, pool)
        available = row.capacity - row.reserved_slots

        if available < count:
            logger.warning(
                "reservation_refused",
                event_id=str(pool.event_id),
                tier_id=str(pool.tier_id) if pool.tier_id else None,
                requested=count,
                available=available,
            )
            raise CapacityExceeded(requested=count, available=available)

        current_version = row.version
        result = await db.execute(
            update(model)
            .where(
                model.id == row.id,
                model.version == current_version,
                model.reserved_slots + count <= model.capacity,
            )
            .values(
                reserved_slots=model.reserved_slots + count,
                version=model.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 1:
            logger.info(
                "slots_reserved",
                event_id=str(pool.event_id),
                tier_id=str(pool.tier_id) if pool.tier_id else None,
                count=count,
                attempt=attempt,
            )
            return Grant(pool, count, row.reserved_slots + count, row.capacity)

        # Version conflict - another transaction moved this pool
        capacity_retries.inc()
        logger.info(
            "reservation_retry",
            event_id=str(pool.event_id),
            attempt=attempt,
            reason="version_conflict",
        )

    raise CapacityExceeded(
        requested=count,
        available=0,
        message="Booking failed due to high demand. Please try again.",
    )


async def reserve_many(db: AsyncSession, counts: Counter) -> list[Grant]:
    """Reserve several pools for one request; the caller's transaction owns atomicity."""
    grants = []
    for pool in sorted(counts, key=PoolRef.sort_key):
        grants.append(await reserve(db, pool, counts[pool]))
    return grants


async def release(db: AsyncSession, pool: PoolRef, count: int) -> None:
    """Give `count` slots back. Never drives the counter below zero."""
    if count <= 0:
        return
    model = _pool_model(pool)
    await db.execute(
        update(model)
        .where(model.id == _pool_id(pool))
        .values(
            reserved_slots=case(
                (model.reserved_slots >= count, model.reserved_slots - count),
                else_=0,
            ),
            version=model.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    logger.info(
        "slots_released",
        event_id=str(pool.event_id),
        tier_id=str(pool.tier_id) if pool.tier_id else None,
        count=count,
    )


async def release_many(db: AsyncSession, counts: Counter) -> None:
    for pool in sorted(counts, key=PoolRef.sort_key):
        await release(db, pool, counts[pool])


async def active_principal_count(db: AsyncSession, pool: PoolRef) -> int:
    """
    Count active principals in a pool straight from bookings and companions.
    Used for reconciliation; the reservation path never relies on it.
    """
    owners = select(func.count(Booking.id)).where(
        Booking.event_id == pool.event_id,
        Booking.state.not_in(_INACTIVE_BOOKING_STATES),
    )
    if pool.tier_id is None:
        owners = owners.where(Booking.tier_id.is_(None))
    else:
        owners = owners.where(Booking.tier_id == pool.tier_id)

    companion_tier = func.coalesce(Companion.tier_id, Booking.tier_id)
    companions = (
        select(func.count(Companion.id))
        .join(Booking, Companion.booking_id == Booking.id)
        .where(
            Booking.event_id == pool.event_id,
            Booking.state.not_in(_INACTIVE_BOOKING_STATES),
            Companion.status != CompanionStatus.CANCELLED.value,
        )
    )
    if pool.tier_id is None:
        companions = companions.where(companion_tier.is_(None))
    else:
        companions = companions.where(companion_tier == pool.tier_id)

    owner_count = (await db.execute(owners)).scalar_one()
    companion_count = (await db.execute(companions)).scalar_one()
    return owner_count + companion_count


async def recount(db: AsyncSession, pool: PoolRef) -> int:
    """Re-derive reserved_slots from the bookings table (repair after manual edits)."""
    count = await active_principal_count(db, pool)
    model = _pool_model(pool)
    await db.execute(
        update(model)
        .where(model.id == _pool_id(pool))
        .values(reserved_slots=count, version=model.version + 1)
        .execution_options(synchronize_session=False)
    )
    logger.info("pool_recounted", event_id=str(pool.event_id), reserved=count)
    return count
