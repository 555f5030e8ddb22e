"""
Pydantic schemas for event-related request/response validation.
"""

import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, computed_field

from app.domain.achievements import EventCategory


class DistanceTierCreate(BaseModel):
    label: Optional[str] = Field(None, max_length=100)
    distance_km: float = Field(..., gt=0)
    price: int = Field(0, ge=0)
    capacity: int = Field(..., gt=0, le=100000)


class MountainIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    province: str = Field(..., min_length=1, max_length=100)


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    category: EventCategory
    date: datetime
    location: Optional[str] = Field(None, max_length=255)
    price: int = Field(0, ge=0)
    capacity: int = Field(..., gt=0, le=100000)
    tiers: list[DistanceTierCreate] = Field(default_factory=list, max_length=20)
    mountains: list[MountainIn] = Field(default_factory=list, max_length=50)


class DistanceTierResponse(BaseModel):
    id: uuid.UUID
    label: Optional[str]
    distance_km: float
    price: int
    capacity: int
    reserved_slots: int

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def available_slots(self) -> int:
        return self.capacity - self.reserved_slots


class MountainResponse(BaseModel):
    id: uuid.UUID
    name: str
    province: str

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str]
    category: str
    date: datetime
    location: Optional[str]
    price: int
    capacity: int
    reserved_slots: int
    organizer_id: uuid.UUID
    tiers: list[DistanceTierResponse]
    mountains: list[MountainResponse]
    created_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def available_slots(self) -> int:
        if self.tiers:
            return sum(t.available_slots for t in self.tiers)
        return self.capacity - self.reserved_slots


class PaymentStats(BaseModel):
    total: int
    paid: int
    pending: int
    rejected: int
    cash: int
    revenue: int


class PaymentRow(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    user_full_name: str
    state: str
    status: str
    payment_status: str
    payment_method: str
    payment_proof_ref: Optional[str]
    participant_cancelled: bool
    companion_count: int
    created_at: datetime


class PaymentSummary(BaseModel):
    event_id: uuid.UUID
    bookings: list[PaymentRow]
    stats: PaymentStats
    cached: bool = False
