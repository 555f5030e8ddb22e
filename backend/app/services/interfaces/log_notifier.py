"""
Log notifier - no delivery.
Records every notification in the structured log.
"""

import uuid

from app.core.logging import get_logger
from app.services.interfaces.notifier import Notifier

logger = get_logger(__name__)


class LogNotifier(Notifier):
    """
    Default notifier. Nothing leaves the process.

    Use when:
    - No delivery channel is configured
    - Local development and tests
    """

    async def booking_confirmed(self, user_id: uuid.UUID, booking_id: uuid.UUID, event_title: str):
        logger.info(
            "notify_booking_confirmed",
            user_id=str(user_id),
            booking_id=str(booking_id),
            event_title=event_title,
        )

    async def payment_rejected(self, user_id: uuid.UUID, booking_id: uuid.UUID, event_title: str):
        logger.info(
            "notify_payment_rejected",
            user_id=str(user_id),
            booking_id=str(booking_id),
            event_title=event_title,
        )

    async def awards_granted(self, user_id: uuid.UUID, badges: list[str], borders: list[str]):
        logger.info("notify_awards_granted", user_id=str(user_id), badges=badges, borders=borders)
