"""
Check-in endpoints. Both always answer 200 with a CheckinResult, except
when the caller does not organize the event (403).
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_task_queue
from app.db.session import get_db
from app.schemas.checkin import CheckinResult, ManualCheckinRequest, ScanRequest
from app.services import checkin_service
from app.core.security import get_current_user_id

router = APIRouter(prefix="/checkins", tags=["Check-ins"])


@router.post("/scan", response_model=CheckinResult)
async def scan_code(
    data: ScanRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    tasks=Depends(get_task_queue),
):
    """Check in by scanned QR code. Resend with force=true to override a warning."""
    return await checkin_service.scan(
        db, data.token, user_id, force=data.force, expected_event_id=data.event_id, tasks=tasks
    )


@router.post("/manual", response_model=CheckinResult)
async def manual_checkin(
    data: ManualCheckinRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    tasks=Depends(get_task_queue),
):
    """Check in from the attendee list when the code cannot be scanned."""
    return await checkin_service.manual(
        db,
        data.event_id,
        user_id,
        user_id=data.user_id,
        companion_id=data.companion_id,
        force=data.force,
        tasks=tasks,
    )
