"""
Pydantic schemas for badges and borders.
"""

import uuid
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class BadgeResponse(BaseModel):
    id: uuid.UUID
    event_id: Optional[uuid.UUID]
    title: str
    description: Optional[str]
    image_url: Optional[str]
    category: str
    rarity: str
    type: str
    criteria_key: Optional[str]

    model_config = {"from_attributes": True}


class BorderResponse(BaseModel):
    id: uuid.UUID
    slug: str
    name: str
    description: Optional[str]
    tier: str
    criteria_type: str
    criteria_value: dict[str, Any]

    model_config = {"from_attributes": True}


class AwardedBadge(BaseModel):
    badge: BadgeResponse
    awarded_at: datetime


class AwardedBorder(BaseModel):
    border: BorderResponse
    awarded_at: datetime


class AchievementsResponse(BaseModel):
    badges: list[AwardedBadge]
    borders: list[AwardedBorder]
    active_border_id: Optional[uuid.UUID]


class BadgeAwardRequest(BaseModel):
    user_ids: list[uuid.UUID] = Field(..., min_length=1, max_length=500)


class BadgeAwardResponse(BaseModel):
    awarded: int
    newly_awarded: list[uuid.UUID]


class ActiveBorderRequest(BaseModel):
    border_id: Optional[uuid.UUID] = None
