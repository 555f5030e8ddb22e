"""
Booking service: reservation requests and cancel/restore toggles.

Every mutating call runs in one transaction. Capacity is reserved first, for
every principal the request adds, and the booking rows are written after; a
refusal anywhere rolls the whole request back, so a multi-person booking is
either fully granted or not at all.
"""

import uuid
from collections import Counter

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    AlreadyBooked, CapacityExceeded, DomainError, IllegalTransition, InvalidPaymentMethod,
    InvalidTier, NotFound, Unauthorized,
)
from app.core.logging import get_logger
from app.core.metrics import record_booking_attempt
from app.db.session import transaction
from app.domain.states import (
    BookingState, CompanionStatus, PaymentMethod,
    assert_booking_transition, assert_companion_transition,
    initial_booking_state, initial_companion_status,
)
from app.models.booking import Booking, Companion
from app.models.event import Event
from app.schemas.booking import BookingCreate, CompanionIn
from app.services import capacity_ledger, token_issuer
from app.services.capacity_ledger import PoolRef

logger = get_logger(__name__)

_INACTIVE = (BookingState.REFUNDED.value, BookingState.VOIDED.value)


def resolve_payment_method(raw: str | None, price: int) -> PaymentMethod:
    """
    Map the requested method onto what the booking will actually use.
    Anything on a zero-price pool is free; `free` on a priced pool is refused.
    """
    try:
        method = PaymentMethod(raw) if raw else None
    except ValueError:
        raise InvalidPaymentMethod(f"Unsupported payment method: {raw}") from None

    if price == 0:
        return PaymentMethod.FREE
    if method is None or method is PaymentMethod.FREE:
        raise InvalidPaymentMethod("This event requires payment")
    return method


def pool_for(event: Event, tier_id: uuid.UUID | None) -> PoolRef:
    """Resolve the pool a principal draws from; tiered events need a tier."""
    if not event.has_tiers:
        if tier_id is not None:
            raise InvalidTier("This event has no distance categories")
        return PoolRef(event.id)
    if tier_id is None:
        raise InvalidTier("Please select a distance category")
    if tier_id not in {t.id for t in event.tiers}:
        raise InvalidTier("Distance category does not belong to this event")
    return PoolRef(event.id, tier_id)


def price_for(event: Event, tier_id: uuid.UUID | None) -> int:
    for tier in event.tiers:
        if tier.id == tier_id:
            return tier.price
    return event.price


def companion_pool(booking: Booking, companion: Companion) -> PoolRef:
    return PoolRef(booking.event_id, companion.tier_id or booking.tier_id)


def active_pools(booking: Booking) -> Counter:
    """Slots the booking currently holds, per pool."""
    counts: Counter = Counter()
    if not booking.booking_state.is_active:
        return counts
    counts[PoolRef(booking.event_id, booking.tier_id)] += 1
    for companion in booking.active_companions:
        counts[companion_pool(booking, companion)] += 1
    return counts


async def load_event(db: AsyncSession, event_id: uuid.UUID) -> Event:
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    if not event:
        raise NotFound("Event", event_id)
    return event


async def load_booking(db: AsyncSession, booking_id: uuid.UUID) -> Booking:
    result = await db.execute(
        select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFound("Booking", booking_id)
    return booking


async def find_active_booking(
    db: AsyncSession, event_id: uuid.UUID, user_id: uuid.UUID
) -> Booking | None:
    result = await db.execute(
        select(Booking).where(
            Booking.event_id == event_id,
            Booking.user_id == user_id,
            Booking.state.not_in(_INACTIVE),
        )
    )
    return result.scalar_one_or_none()


def _build_companions(
    booking: Booking,
    event: Event,
    method: PaymentMethod,
    companions: list[CompanionIn],
) -> tuple[list[Companion], Counter]:
    rows, counts = [], Counter()
    for item in companions:
        tier_id = item.tier_id or booking.tier_id
        pool = pool_for(event, tier_id)
        companion = Companion(
            id=uuid.uuid4(),
            booking_id=booking.id,
            full_name=item.full_name,
            phone=item.phone or None,
            status=initial_companion_status(method).value,
            tier_id=item.tier_id,
        )
        if method.mints_token_at_creation:
            token_issuer.issue_companion(booking, companion)
        rows.append(companion)
        counts[pool] += 1
    return rows, counts


async def create_booking(
    db: AsyncSession,
    user_id: uuid.UUID,
    data: BookingCreate,
    tasks=None,
) -> Booking:
    """
    Book the caller (plus companions) onto an event.

    Wallet bookings wait for organizer approval and get no token yet; cash
    bookings get their token now but stay payment-pending; free bookings are
    confirmed on the spot.
    """
    try:
        async with transaction(db):
            event = await load_event(db, data.event_id)
            owner_pool = pool_for(event, data.tier_id)
            method = resolve_payment_method(data.payment_method, price_for(event, data.tier_id))

            if await find_active_booking(db, event.id, user_id):
                raise AlreadyBooked("You have already booked this event")

            booking = Booking(
                id=uuid.uuid4(),
                event_id=event.id,
                user_id=user_id,
                tier_id=data.tier_id,
                state=initial_booking_state(method).value,
                payment_method=method.value,
                payment_proof_ref=data.payment_proof_ref if method.is_wallet else None,
            )
            if method.mints_token_at_creation:
                token_issuer.issue_owner_token(booking)

            companions, counts = _build_companions(booking, event, method, data.companions)
            counts[owner_pool] += 1

            await capacity_ledger.reserve_many(db, counts)

            booking.companions = companions
            db.add(booking)
            try:
                await db.flush()
            except IntegrityError:
                # lost the race against a concurrent booking by the same user
                raise AlreadyBooked("You have already booked this event") from None
    except CapacityExceeded:
        record_booking_attempt("capacity_exceeded")
        raise
    except DomainError:
        record_booking_attempt("rejected")
        raise

    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=str(booking.id),
        user_id=str(user_id),
        event_id=str(event.id),
        state=booking.state,
        payment_method=booking.payment_method,
        companions=len(companions),
    )

    if tasks is not None and booking.booking_state is BookingState.CONFIRMED:
        tasks.enqueue(
            "booking_confirmed",
            {
                "booking_id": str(booking.id),
                "user_id": str(user_id),
                "event_id": str(event.id),
                "event_title": event.title,
            },
        )
    return booking


async def add_companions(
    db: AsyncSession,
    booking_id: uuid.UUID,
    user_id: uuid.UUID,
    companions: list[CompanionIn],
) -> Booking:
    """
    Attach companions to the caller's existing booking ("N companions alone").

    Priced bookings only take companions while their payment is still open, so
    the organizer's approval covers every companion it confirms.
    """
    async with transaction(db):
        booking = await load_booking(db, booking_id)
        if booking.user_id != user_id:
            raise Unauthorized("You need to book for yourself first")
        if not booking.booking_state.is_active:
            raise IllegalTransition("Booking is no longer active")
        if booking.booking_state.is_paid and booking.method is not PaymentMethod.FREE:
            raise IllegalTransition("Companions can only be added before the payment is verified")

        event = await load_event(db, booking.event_id)
        rows, counts = _build_companions(booking, event, booking.method, companions)
        await capacity_ledger.reserve_many(db, counts)

        for companion in rows:
            db.add(companion)
            booking.companions.append(companion)
        await db.flush()

    record_booking_attempt("success")
    logger.info(
        "companions_added",
        booking_id=str(booking.id),
        event_id=str(booking.event_id),
        count=len(rows),
    )
    return booking


async def get_booking(db: AsyncSession, booking_id: uuid.UUID, user_id: uuid.UUID) -> Booking:
    booking = await load_booking(db, booking_id)
    if booking.user_id != user_id and booking.event.organizer_id != user_id:
        raise Unauthorized("Not allowed to view this booking")
    return booking


async def get_user_bookings(db: AsyncSession, user_id: uuid.UUID) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc())
    )
    return list(result.scalars().all())


def _ensure_owner_or_organizer(booking: Booking, actor_id: uuid.UUID) -> None:
    if actor_id not in (booking.user_id, booking.event.organizer_id):
        raise Unauthorized("Only the booking owner or the event organizer can do this")


async def set_participant_cancelled(
    db: AsyncSession,
    booking_id: uuid.UUID,
    actor_id: uuid.UUID,
    cancelled: bool,
) -> Booking:
    """
    Owner withdrawal / restore. Only legal once paid, and the owner's slot is
    kept either way: withdrawing records attendance intent, not a release.
    """
    async with transaction(db):
        booking = await load_booking(db, booking_id)
        _ensure_owner_or_organizer(booking, actor_id)

        current = booking.booking_state
        if not current.is_paid:
            raise IllegalTransition("Participant can only be cancelled after payment is confirmed")

        target = BookingState.WITHDRAWN if cancelled else BookingState.CONFIRMED
        if current is not target:
            assert_booking_transition(current, target)
            booking.state = target.value

    logger.info(
        "participant_toggled",
        booking_id=str(booking.id),
        cancelled=cancelled,
        actor_id=str(actor_id),
    )
    return booking


async def set_companion_cancelled(
    db: AsyncSession,
    companion_id: uuid.UUID,
    actor_id: uuid.UUID,
    cancelled: bool,
) -> Companion:
    """
    Cancel or restore a companion.

    Cancelling gives the companion's slot back. Restoring takes it again in
    this same transaction, so a pool filled in the meantime refuses the
    restore. Confirming a still-pending companion keeps the slot it already
    holds and needs the event organizer.
    """
    async with transaction(db):
        result = await db.execute(
            select(Companion)
            .where(Companion.id == companion_id)
            .execution_options(populate_existing=True)
        )
        companion = result.scalar_one_or_none()
        if not companion:
            raise NotFound("Companion", companion_id)

        booking = await load_booking(db, companion.booking_id)
        _ensure_owner_or_organizer(booking, actor_id)

        current = companion.companion_status
        target = CompanionStatus.CANCELLED if cancelled else CompanionStatus.CONFIRMED
        if (
            current is CompanionStatus.PENDING
            and target is CompanionStatus.CONFIRMED
            and actor_id != booking.event.organizer_id
        ):
            raise Unauthorized("Only the event organizer can confirm a pending companion")
        if current is not target or not booking.booking_state.is_paid:
            assert_companion_transition(current, target, booking.booking_state)

        if current is not target:
            pool = companion_pool(booking, companion)
            if target is CompanionStatus.CANCELLED:
                await capacity_ledger.release(db, pool, 1)
                companion.qr_token = None
            else:
                if current is CompanionStatus.CANCELLED:
                    await capacity_ledger.reserve(db, pool, 1)
                token_issuer.issue_companion(booking, companion)
            companion.status = target.value

    logger.info(
        "companion_toggled",
        companion_id=str(companion.id),
        booking_id=str(booking.id),
        status=companion.status,
        actor_id=str(actor_id),
    )
    return companion
