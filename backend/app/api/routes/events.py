"""
Event endpoints. The payment summary is cached in Redis per event.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.event import EventCreate, EventResponse, PaymentSummary
from app.services.event_service import create_event, get_event
from app.services.payment_service import authorize_summary, payment_summary
from app.services.cache_service import get_cached_summary, set_cached_summary
from app.core.security import get_current_user_id
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create an event organized by the caller, optionally split into distance tiers."""
    return await create_event(db, event_data, user_id)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event. Not cached (needs real-time slot counts)."""
    return await get_event(db, event_id)


@router.get("/{event_id}/payments", response_model=PaymentSummary)
async def payment_summary_endpoint(
    event_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Organizer payment dashboard: bookings, counts by payment status, revenue.
    Cached until the next booking change on this event.
    """
    # authorize on every request, cached or not
    await authorize_summary(db, event_id, user_id)
    cached = await get_cached_summary(event_id)
    if cached:
        logger.info("payment_summary_cache_hit", event_id=str(event_id))
        summary = PaymentSummary(**cached)
        summary.cached = True
        return summary

    summary = await payment_summary(db, event_id, user_id)
    await set_cached_summary(event_id, summary.model_dump(mode="json"))
    return summary
