from app.schemas.user import UserCreate, UserResponse, UserLogin, Token
from app.schemas.event import EventCreate, EventResponse, PaymentSummary
from app.schemas.booking import BookingCreate, BookingResponse, CompanionResponse
from app.schemas.checkin import CheckinResult, ScanRequest, ManualCheckinRequest
from app.schemas.achievement import AchievementsResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "EventCreate", "EventResponse", "PaymentSummary",
    "BookingCreate", "BookingResponse", "CompanionResponse",
    "CheckinResult", "ScanRequest", "ManualCheckinRequest",
    "AchievementsResponse",
]
