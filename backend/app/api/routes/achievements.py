"""
Badges and avatar borders.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.achievement import (
    AchievementsResponse, ActiveBorderRequest, AwardedBadge, AwardedBorder,
    BadgeAwardRequest, BadgeAwardResponse, BadgeResponse, BorderResponse,
)
from app.services import achievement_service
from app.core.security import get_current_user_id

router = APIRouter(prefix="/achievements", tags=["Achievements"])


@router.get("/me", response_model=AchievementsResponse)
async def my_achievements(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    badges, borders, active_border_id = await achievement_service.list_achievements(db, user_id)
    return AchievementsResponse(
        badges=[
            AwardedBadge(badge=BadgeResponse.model_validate(badge), awarded_at=award.awarded_at)
            for award, badge in badges
        ],
        borders=[
            AwardedBorder(border=BorderResponse.model_validate(border), awarded_at=award.awarded_at)
            for award, border in borders
        ],
        active_border_id=active_border_id,
    )


@router.post("/badges/{badge_id}/award", response_model=BadgeAwardResponse)
async def award_badge(
    badge_id: uuid.UUID,
    data: BadgeAwardRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Organizer awards their event badge to participants. Repeats are no-ops."""
    awarded = await achievement_service.award_event_badge(db, badge_id, user_id, data.user_ids)
    return BadgeAwardResponse(awarded=len(awarded), newly_awarded=awarded)


@router.put("/me/active-border", response_model=AchievementsResponse)
async def set_active_border(
    data: ActiveBorderRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Choose which earned border is displayed; null clears it."""
    await achievement_service.set_active_border(db, user_id, data.border_id)
    return await my_achievements(user_id=user_id, db=db)
