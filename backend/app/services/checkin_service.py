"""
Check-in processor.

Every scan ends in a CheckinResult rather than an exception, so the operator
screen can always render something: success, already checked in, a warning
that needs a forced retry, or an error. The only thing raised is Unauthorized,
when the caller does not organize the event being scanned at.

DOUBLE SCAN
===========
Two devices may scan the same code at the same moment. Both pass the
"already checked in?" read, both insert; the unique constraints on
(event, user) / (event, companion) let exactly one commit. The loser rolls
back and is told "already checked in", which is the truth.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_checkin
from app.domain.states import BookingState, CompanionStatus
from app.domain.tokens import InvalidToken, PrincipalKind, decode_token
from app.models.booking import Booking, Companion
from app.models.checkin import Checkin
from app.models.event import Event
from app.schemas.checkin import CheckinResult, PaymentContext
from app.services.booking_service import find_active_booking
from app.services.event_service import ensure_organizer

logger = get_logger(__name__)
settings = get_settings()

SCAN, MANUAL = "scan", "manual"


@dataclass
class _Principal:
    kind: PrincipalKind
    principal_id: uuid.UUID
    name: str
    booking: Booking
    companion: Companion | None = None

    @property
    def is_paid(self) -> bool:
        if not self.booking.booking_state.is_paid:
            return False
        if self.companion is not None:
            return self.companion.companion_status is CompanionStatus.CONFIRMED
        return True


def _error(code: str, message: str, event: Event | None = None) -> CheckinResult:
    return CheckinResult(
        kind="error",
        code=code,
        message=message,
        event_title=event.title if event else None,
    )


def _payment_context(booking: Booking) -> PaymentContext:
    return PaymentContext(
        payment_method=booking.payment_method,
        payment_status=booking.payment_status.value,
        booking_id=booking.id,
    )


async def _resolve_principal(
    db: AsyncSession,
    event: Event,
    kind: PrincipalKind,
    principal_id: uuid.UUID,
) -> _Principal | None:
    """Find the registration behind a principal; None when there is no active one."""
    if kind is PrincipalKind.USER:
        booking = await find_active_booking(db, event.id, principal_id)
        if booking is None:
            return None
        name = (booking.user.full_name or booking.user.username) if booking.user else ""
        return _Principal(kind, principal_id, name, booking)

    result = await db.execute(select(Companion).where(Companion.id == principal_id))
    companion = result.scalar_one_or_none()
    if companion is None or companion.companion_status is CompanionStatus.CANCELLED:
        return None
    booking = companion.booking
    if booking.event_id != event.id or not booking.booking_state.is_active:
        return None
    return _Principal(kind, principal_id, companion.full_name, booking, companion)


async def _existing_checkin(db: AsyncSession, event_id: uuid.UUID, principal: _Principal) -> Checkin | None:
    query = select(Checkin).where(Checkin.event_id == event_id)
    if principal.kind is PrincipalKind.USER:
        query = query.where(Checkin.user_id == principal.principal_id)
    else:
        query = query.where(Checkin.companion_id == principal.principal_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def _check_in(
    db: AsyncSession,
    event_id: uuid.UUID,
    kind: PrincipalKind,
    principal_id: uuid.UUID,
    actor_id: uuid.UUID,
    force: bool,
    method: str,
    tasks=None,
) -> CheckinResult:
    event = await db.get(Event, event_id)
    if event is None:
        return _error("not_registered", "Event not found")
    ensure_organizer(event, actor_id, "check in participants")

    principal = await _resolve_principal(db, event, kind, principal_id)
    if principal is None:
        return _error("not_registered", "This person is not registered for this event", event)

    base = dict(
        principal_name=principal.name,
        principal_type=principal.kind.value,
        event_title=event.title,
        payment=_payment_context(principal.booking),
    )

    existing = await _existing_checkin(db, event.id, principal)
    if existing is not None:
        return CheckinResult(
            kind="already_checked_in",
            code="already_checked_in",
            message=f"{principal.name} is already checked in",
            checkin_id=existing.id,
            **base,
        )

    if not force:
        if not principal.is_paid:
            return CheckinResult(
                kind="warning",
                code="payment_not_verified",
                message="Payment has not been verified. Check in anyway?",
                **base,
            )
        if principal.companion is None and principal.booking.booking_state is BookingState.WITHDRAWN:
            return CheckinResult(
                kind="warning",
                code="participant_withdrawn",
                message="This participant cancelled their attendance. Check in anyway?",
                **base,
            )

    checkin = Checkin(
        id=uuid.uuid4(),
        event_id=event.id,
        user_id=principal.principal_id if kind is PrincipalKind.USER else None,
        companion_id=principal.principal_id if kind is PrincipalKind.COMPANION else None,
        method=method,
        checked_in_by=actor_id,
    )
    checkin_id = checkin.id
    db.add(checkin)
    try:
        await db.commit()
    except IntegrityError:
        # concurrent scan of the same code won the insert
        await db.rollback()
        logger.info("checkin_conflict", event_id=str(event_id), principal_id=str(principal_id))
        return CheckinResult(
            kind="already_checked_in",
            code="already_checked_in",
            message=f"{base['principal_name']} is already checked in",
            **base,
        )

    logger.info(
        "checkin_recorded",
        checkin_id=str(checkin_id),
        event_id=str(event_id),
        principal_type=kind.value,
        principal_id=str(principal_id),
        method=method,
        forced=force and not principal.is_paid,
    )

    if tasks is not None and kind is PrincipalKind.USER:
        tasks.enqueue(
            "checkin_completed",
            {"user_id": str(principal_id), "event_id": str(event_id)},
        )

    return CheckinResult(
        kind="success",
        code="checked_in",
        message=f"{base['principal_name']} checked in",
        checkin_id=checkin_id,
        **base,
    )


async def scan(
    db: AsyncSession,
    raw_token: str,
    actor_id: uuid.UUID,
    force: bool = False,
    expected_event_id: uuid.UUID | None = None,
    tasks=None,
) -> CheckinResult:
    """Check in whoever the scanned code belongs to."""
    try:
        token = decode_token(settings.TOKEN_NAMESPACE, raw_token)
    except InvalidToken:
        result = _error("invalid_token", "Invalid QR code")
    else:
        if expected_event_id is not None and token.event_id != expected_event_id:
            result = _error("not_registered", "This code is for a different event")
        else:
            result = await _check_in(
                db, token.event_id, token.kind, token.principal_id, actor_id, force, SCAN, tasks
            )

    record_checkin(result.kind)
    if result.kind == "error":
        logger.info("checkin_refused", code=result.code, actor_id=str(actor_id))
    return result


async def manual(
    db: AsyncSession,
    event_id: uuid.UUID,
    actor_id: uuid.UUID,
    user_id: uuid.UUID | None = None,
    companion_id: uuid.UUID | None = None,
    force: bool = False,
    tasks=None,
) -> CheckinResult:
    """Organizer checks someone in from the attendee list instead of a code."""
    if user_id is not None:
        kind, principal_id = PrincipalKind.USER, user_id
    else:
        kind, principal_id = PrincipalKind.COMPANION, companion_id

    result = await _check_in(db, event_id, kind, principal_id, actor_id, force, MANUAL, tasks)
    record_checkin(result.kind)
    return result
