"""
Pydantic schemas for booking-related request/response validation.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator

from app.domain.states import BookingStatus, PaymentStatus


class CompanionIn(BaseModel):
    full_name: str = Field(..., max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    tier_id: Optional[uuid.UUID] = None

    @field_validator("full_name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Companion names cannot be empty")
        return value


class BookingCreate(BaseModel):
    event_id: uuid.UUID
    payment_method: str
    tier_id: Optional[uuid.UUID] = None
    payment_proof_ref: Optional[str] = Field(None, max_length=500)
    companions: list[CompanionIn] = Field(default_factory=list, max_length=20)


class CompanionsAdd(BaseModel):
    companions: list[CompanionIn] = Field(..., min_length=1, max_length=20)


class CompanionResponse(BaseModel):
    id: uuid.UUID
    booking_id: uuid.UUID
    full_name: str
    phone: Optional[str]
    status: str
    qr_token: Optional[str]
    tier_id: Optional[uuid.UUID]
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: uuid.UUID
    event_id: uuid.UUID
    user_id: uuid.UUID
    tier_id: Optional[uuid.UUID]
    state: str
    status: BookingStatus
    payment_status: PaymentStatus
    participant_cancelled: bool
    payment_method: str
    payment_proof_ref: Optional[str]
    qr_token: Optional[str]
    payment_verified_at: Optional[datetime]
    created_at: datetime
    companions: list[CompanionResponse]

    model_config = {"from_attributes": True}


class ProofSubmit(BaseModel):
    payment_proof_ref: str = Field(..., min_length=1, max_length=500)


class VerifyRequest(BaseModel):
    action: Literal["approve", "reject", "refund", "void"]


class VerifyResponse(BaseModel):
    message: str
    booking: BookingResponse
    issued_tokens: list[str]


class CancelToggle(BaseModel):
    cancelled: bool


class ToggleResponse(BaseModel):
    message: str
    id: uuid.UUID
    status: str
