"""
Pydantic schemas for check-in requests and results.

Every scan produces a ``CheckinResult``; only authorization failures are raised
as errors. ``kind`` tells the operator what to do next:
success / already_checked_in (done), warning (ask, then resend with force=true),
error (try a different code).
"""

import uuid
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

CheckinKind = Literal["success", "already_checked_in", "warning", "error"]


class ScanRequest(BaseModel):
    token: str = Field(..., max_length=300)
    force: bool = False
    event_id: Optional[uuid.UUID] = None


class ManualCheckinRequest(BaseModel):
    event_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    companion_id: Optional[uuid.UUID] = None
    force: bool = False

    @model_validator(mode="after")
    def one_principal(self) -> "ManualCheckinRequest":
        if (self.user_id is None) == (self.companion_id is None):
            raise ValueError("Provide exactly one of user_id or companion_id")
        return self


class PaymentContext(BaseModel):
    payment_method: str
    payment_status: str
    booking_id: uuid.UUID


class CheckinResult(BaseModel):
    kind: CheckinKind
    code: str
    message: str
    principal_name: Optional[str] = None
    principal_type: Optional[Literal["user", "companion"]] = None
    event_title: Optional[str] = None
    payment: Optional[PaymentContext] = None
    checkin_id: Optional[uuid.UUID] = None
