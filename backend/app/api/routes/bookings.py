"""
Booking endpoints: reservation, companions, payment proof and verification.
Every mutation drops the event's cached payment summary.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_task_queue
from app.db.session import get_db
from app.schemas.booking import (
    BookingCreate, BookingResponse, CancelToggle, CompanionsAdd, ProofSubmit,
    ToggleResponse, VerifyRequest, VerifyResponse,
)
from app.services import booking_service, payment_service
from app.services.cache_service import invalidate_summary
from app.core.security import get_current_user_id
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])

_VERIFY_MESSAGES = {
    "approve": "Payment approved",
    "reject": "Payment rejected",
    "refund": "Booking refunded",
    "void": "Booking voided",
}


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    tasks=Depends(get_task_queue),
):
    """
    Book the caller, plus any companions, onto an event.

    Uses optimistic locking on the capacity pool(s). If the request does not
    fit, nothing is reserved and a 409 is returned.
    """
    booking = await booking_service.create_booking(db, user_id, booking_data, tasks)
    await invalidate_summary(booking.event_id)
    return booking


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await booking_service.get_user_bookings(db, user_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_booking(db, booking_id, user_id)


@router.post("/{booking_id}/companions", response_model=BookingResponse)
async def add_companions(
    booking_id: uuid.UUID,
    data: CompanionsAdd,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Bring more people along on an existing booking."""
    booking = await booking_service.add_companions(db, booking_id, user_id, data.companions)
    await invalidate_summary(booking.event_id)
    return booking


@router.patch("/{booking_id}/proof", response_model=BookingResponse)
async def submit_proof(
    booking_id: uuid.UUID,
    data: ProofSubmit,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Upload (or re-upload after a rejection) the proof of payment reference."""
    booking = await payment_service.submit_proof(db, booking_id, user_id, data.payment_proof_ref)
    await invalidate_summary(booking.event_id)
    return booking


@router.patch("/{booking_id}/verify", response_model=VerifyResponse)
async def verify_payment(
    booking_id: uuid.UUID,
    data: VerifyRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    tasks=Depends(get_task_queue),
):
    """Organizer decision on a booking: approve, reject, refund or void."""
    booking, issued = await payment_service.verify_payment(
        db, booking_id, user_id, data.action, tasks
    )
    await invalidate_summary(booking.event_id)
    return VerifyResponse(
        message=_VERIFY_MESSAGES[data.action],
        booking=BookingResponse.model_validate(booking),
        issued_tokens=issued,
    )


@router.patch("/{booking_id}/participant", response_model=ToggleResponse)
async def toggle_participant(
    booking_id: uuid.UUID,
    data: CancelToggle,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Owner withdraws from (or rejoins) a paid booking. The slot is kept."""
    booking = await booking_service.set_participant_cancelled(db, booking_id, user_id, data.cancelled)
    await invalidate_summary(booking.event_id)
    return ToggleResponse(
        message="Participant cancelled" if data.cancelled else "Participant restored",
        id=booking.id,
        status=booking.state,
    )
