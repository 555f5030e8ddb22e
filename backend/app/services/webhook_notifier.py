"""
Webhook notifier.

Each notification is POSTed as JSON to NOTIFY_WEBHOOK_URL, where a separate
delivery service turns it into push/email. Delivery errors are raised so the
background pool can retry the job; they never reach the request that caused it.
"""

import uuid
from typing import Any, Optional

import httpx

from app.core.config import get_settings
from app.core.logging import get_logger
from app.services.interfaces.notifier import Notifier

logger = get_logger(__name__)


class WebhookNotifier(Notifier):
    def __init__(self, url: str, timeout: Optional[float] = None, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout = timeout or get_settings().NOTIFY_WEBHOOK_TIMEOUT
        self._client = client

    async def _post(self, kind: str, data: dict[str, Any]) -> None:
        body = {"type": kind, "data": data}
        if self._client is not None:
            response = await self._client.post(self.url, json=body, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=body)
        response.raise_for_status()
        logger.info("webhook_delivered", type=kind, status_code=response.status_code)

    async def booking_confirmed(self, user_id: uuid.UUID, booking_id: uuid.UUID, event_title: str):
        await self._post(
            "booking_confirmed",
            {"user_id": str(user_id), "booking_id": str(booking_id), "event_title": event_title},
        )

    async def payment_rejected(self, user_id: uuid.UUID, booking_id: uuid.UUID, event_title: str):
        await self._post(
            "payment_rejected",
            {"user_id": str(user_id), "booking_id": str(booking_id), "event_title": event_title},
        )

    async def awards_granted(self, user_id: uuid.UUID, badges: list[str], borders: list[str]):
        await self._post(
            "awards_granted",
            {"user_id": str(user_id), "badges": badges, "borders": borders},
        )
