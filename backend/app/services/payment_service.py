"""
Payment verification workflow.

The organizer is the verifier: wallet transfers and cash are confirmed by a
human, not a gateway callback. Approve and reject are only legal while the
payment is pending; a rejected booking keeps its capacity hold so the owner can
re-submit proof against the same booking.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import IllegalTransition, NotPending, Unauthorized
from app.core.logging import get_logger
from app.core.metrics import payment_decisions
from app.db.base import utcnow
from app.db.session import transaction
from app.domain.states import BookingState, CompanionStatus, PaymentStatus, assert_booking_transition
from app.models.booking import Booking
from app.models.event import Event
from app.schemas.event import PaymentRow, PaymentStats, PaymentSummary
from app.services import capacity_ledger, token_issuer
from app.services.booking_service import active_pools, load_booking, load_event, price_for
from app.services.event_service import ensure_organizer

logger = get_logger(__name__)

APPROVE, REJECT, REFUND, VOID = "approve", "reject", "refund", "void"


async def submit_proof(
    db: AsyncSession,
    booking_id: uuid.UUID,
    user_id: uuid.UUID,
    proof_ref: str,
) -> Booking:
    """Attach (or replace) proof of payment; a rejected payment goes back to pending."""
    async with transaction(db):
        booking = await load_booking(db, booking_id)
        if booking.user_id != user_id:
            raise Unauthorized("Not your booking")

        current = booking.booking_state
        if current not in (BookingState.AWAITING_PAYMENT, BookingState.PAYMENT_REJECTED):
            raise IllegalTransition("Cannot re-upload proof for this booking")
        if current is BookingState.PAYMENT_REJECTED:
            assert_booking_transition(current, BookingState.AWAITING_PAYMENT)
            booking.state = BookingState.AWAITING_PAYMENT.value
        booking.payment_proof_ref = proof_ref

    logger.info("payment_proof_submitted", booking_id=str(booking.id), resubmitted=current.value)
    return booking


def _approve(booking: Booking, actor_id: uuid.UUID) -> list[str]:
    assert_booking_transition(booking.booking_state, BookingState.CONFIRMED)
    booking.state = BookingState.CONFIRMED.value
    booking.payment_verified_at = utcnow()
    booking.payment_verified_by = actor_id

    tokens = [token_issuer.issue_owner_token(booking)]
    for companion in booking.active_companions:
        companion.status = CompanionStatus.CONFIRMED.value
        tokens.append(token_issuer.issue_companion(booking, companion))
    return tokens


async def _close(db: AsyncSession, booking: Booking, target: BookingState) -> None:
    """Refund or void: terminal, hands back every slot the booking still holds."""
    assert_booking_transition(booking.booking_state, target)
    held = active_pools(booking)
    booking.state = target.value
    token_issuer.revoke_all(booking)
    await capacity_ledger.release_many(db, held)


async def verify_payment(
    db: AsyncSession,
    booking_id: uuid.UUID,
    actor_id: uuid.UUID,
    action: str,
    tasks=None,
) -> tuple[Booking, list[str]]:
    """
    Apply an organizer decision. Returns the booking and any tokens issued.

    approve/reject need a pending payment (NotPending otherwise).
    refund (paid bookings) and void (unpaid bookings) close the booking and
    release its capacity.
    """
    issued: list[str] = []
    async with transaction(db):
        booking = await load_booking(db, booking_id)
        ensure_organizer(booking.event, actor_id, "verify payments")

        if action in (APPROVE, REJECT) and not booking.booking_state.payment_pending:
            raise NotPending(
                f"Payment is {booking.payment_status.value}, only pending payments can be verified"
            )

        if action == APPROVE:
            issued = _approve(booking, actor_id)
        elif action == REJECT:
            assert_booking_transition(booking.booking_state, BookingState.PAYMENT_REJECTED)
            booking.state = BookingState.PAYMENT_REJECTED.value
        elif action == REFUND:
            await _close(db, booking, BookingState.REFUNDED)
        elif action == VOID:
            await _close(db, booking, BookingState.VOIDED)
        else:
            raise IllegalTransition(f"Unknown payment action: {action}")

    payment_decisions.labels(decision=action).inc()
    logger.info(
        "payment_verified",
        booking_id=str(booking.id),
        action=action,
        state=booking.state,
        tokens_issued=len(issued),
        actor_id=str(actor_id),
    )

    if tasks is not None and action in (APPROVE, REJECT):
        tasks.enqueue(
            "booking_confirmed" if action == APPROVE else "payment_rejected",
            {
                "booking_id": str(booking.id),
                "user_id": str(booking.user_id),
                "event_id": str(booking.event_id),
                "event_title": booking.event.title,
                "qr_token": booking.qr_token,
            },
        )
    return booking, issued


def booking_revenue(booking: Booking, event: Event) -> int:
    """(owner + confirmed companions) x the price of the pool each one sits in."""
    if booking.payment_status is not PaymentStatus.PAID:
        return 0
    total = price_for(event, booking.tier_id)
    for companion in booking.confirmed_companions:
        total += price_for(event, companion.tier_id or booking.tier_id)
    return total


async def authorize_summary(db: AsyncSession, event_id: uuid.UUID, actor_id: uuid.UUID) -> Event:
    event = await load_event(db, event_id)
    ensure_organizer(event, actor_id, "view payments")
    return event


async def payment_summary(
    db: AsyncSession,
    event_id: uuid.UUID,
    actor_id: uuid.UUID,
) -> PaymentSummary:
    """Organizer dashboard: bookings still in play plus payment counts and revenue."""
    event = await authorize_summary(db, event_id, actor_id)

    result = await db.execute(
        select(Booking)
        .where(Booking.event_id == event_id)
        .order_by(Booking.created_at.desc())
    )
    bookings = [b for b in result.scalars().all() if b.booking_state.is_active]

    rows = [
        PaymentRow(
            id=b.id,
            user_id=b.user_id,
            user_full_name=(b.user.full_name or b.user.username) if b.user else "",
            state=b.state,
            status=b.status.value,
            payment_status=b.payment_status.value,
            payment_method=b.payment_method,
            payment_proof_ref=b.payment_proof_ref,
            participant_cancelled=b.participant_cancelled,
            companion_count=len(b.confirmed_companions),
            created_at=b.created_at,
        )
        for b in bookings
    ]
    stats = PaymentStats(
        total=len(bookings),
        paid=sum(1 for b in bookings if b.payment_status is PaymentStatus.PAID),
        pending=sum(1 for b in bookings if b.payment_status is PaymentStatus.PENDING),
        rejected=sum(1 for b in bookings if b.payment_status is PaymentStatus.REJECTED),
        cash=sum(1 for b in bookings if b.payment_method == "cash"),
        revenue=sum(booking_revenue(b, event) for b in bookings),
    )
    return PaymentSummary(event_id=event_id, bookings=rows, stats=stats)
