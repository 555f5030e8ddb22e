"""
Notifier interface.
Outbound delivery (push, email, chat) lives outside this service; the engine
only tells a Notifier what happened.
"""

import uuid
from abc import ABC, abstractmethod


class Notifier(ABC):
    """
    Interface for participant notifications.

    Implementations:
    - LogNotifier: Writes the notification to the structured log (default)
    - WebhookNotifier: POSTs the notification as JSON to NOTIFY_WEBHOOK_URL
    """

    @abstractmethod
    async def booking_confirmed(self, user_id: uuid.UUID, booking_id: uuid.UUID, event_title: str):
        """
        Payment approved (or free booking confirmed); the QR code is ready.

        Args:
            user_id: Booking owner
            booking_id: Booking that was confirmed
            event_title: Shown in the notification text
        """
        pass

    @abstractmethod
    async def payment_rejected(self, user_id: uuid.UUID, booking_id: uuid.UUID, event_title: str):
        """Organizer rejected the proof of payment; the owner may re-upload."""
        pass

    @abstractmethod
    async def awards_granted(self, user_id: uuid.UUID, badges: list[str], borders: list[str]):
        """
        New badges and/or borders were awarded.

        Args:
            user_id: Recipient
            badges: Titles of newly awarded badges
            borders: Names of newly awarded borders
        """
        pass
