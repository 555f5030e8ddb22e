"""
Token issuer: attaches scan tokens to principals once they may attend.

Issuing is idempotent: the token is derived from (event, principal), so a
second call for the same principal writes the same value. Revoking clears the
stored token; restoring a companion later re-issues the identical string.
"""

from app.core.config import get_settings
from app.domain.tokens import issue_companion_token, issue_user_token
from app.models.booking import Booking, Companion

settings = get_settings()


def issue_owner_token(booking: Booking) -> str:
    token = issue_user_token(settings.TOKEN_NAMESPACE, booking.event_id, booking.user_id)
    booking.qr_token = token
    return token


def issue_companion(booking: Booking, companion: Companion) -> str:
    token = issue_companion_token(settings.TOKEN_NAMESPACE, booking.event_id, companion.id)
    companion.qr_token = token
    return token


def revoke_all(booking: Booking) -> None:
    booking.qr_token = None
    for companion in booking.companions:
        companion.qr_token = None
