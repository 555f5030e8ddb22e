"""
Background job handlers.

checkin_completed  -> evaluate achievements for the checked-in user, then
                      schedule awards_granted for whatever was newly inserted
booking_confirmed  -> notify the owner their code is ready
payment_rejected   -> notify the owner to re-upload proof
awards_granted     -> notify the user about new badges/borders

Notification is its own job so a failing delivery is retried without
re-running the evaluation (which would find nothing new the second time).
"""

import uuid
from typing import Any, Callable

from app.services.achievement_service import evaluate_and_award
from app.services.background import Handler
from app.services.interfaces.notifier import Notifier


def build_handlers(
    session_factory,
    notifier: Notifier,
    schedule: Callable[[str, dict[str, Any]], bool],
) -> dict[str, Handler]:
    async def checkin_completed(payload: dict[str, Any]) -> None:
        user_id = uuid.UUID(payload["user_id"])
        async with session_factory() as db:
            outcome = await evaluate_and_award(db, user_id)
        if outcome:
            schedule(
                "awards_granted",
                {
                    "user_id": payload["user_id"],
                    "badges": [title for _, title in outcome.badges],
                    "borders": [name for _, name in outcome.borders],
                },
            )

    async def booking_confirmed(payload: dict[str, Any]) -> None:
        await notifier.booking_confirmed(
            uuid.UUID(payload["user_id"]),
            uuid.UUID(payload["booking_id"]),
            payload.get("event_title", ""),
        )

    async def payment_rejected(payload: dict[str, Any]) -> None:
        await notifier.payment_rejected(
            uuid.UUID(payload["user_id"]),
            uuid.UUID(payload["booking_id"]),
            payload.get("event_title", ""),
        )

    async def awards_granted(payload: dict[str, Any]) -> None:
        await notifier.awards_granted(
            uuid.UUID(payload["user_id"]), payload["badges"], payload["borders"]
        )

    return {
        "checkin_completed": checkin_completed,
        "booking_confirmed": booking_confirmed,
        "payment_rejected": payment_rejected,
        "awards_granted": awards_granted,
    }
