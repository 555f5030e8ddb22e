"""
Companion cancel / restore.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.booking import CancelToggle, ToggleResponse
from app.services.booking_service import set_companion_cancelled
from app.services.cache_service import invalidate_summary
from app.core.security import get_current_user_id

router = APIRouter(prefix="/companions", tags=["Companions"])


@router.patch("/{companion_id}", response_model=ToggleResponse)
async def toggle_companion(
    companion_id: uuid.UUID,
    data: CancelToggle,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Cancel gives the companion's slot back; restore takes one again and
    fails with 409 if the pool has filled up in the meantime.
    """
    companion = await set_companion_cancelled(db, companion_id, user_id, data.cancelled)
    await invalidate_summary(companion.booking.event_id)
    return ToggleResponse(
        message="Companion cancelled" if data.cancelled else "Companion restored",
        id=companion.id,
        status=companion.status,
    )
