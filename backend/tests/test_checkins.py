"""
Tests for check-in: scans, manual check-in, warnings and double scans.
"""

import asyncio
import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from app.models import Checkin
from app.services import checkin_service


async def book(client: AsyncClient, headers: dict, event, method="free", companions=()):
    response = await client.post(
        "/api/v1/bookings/",
        json={
            "event_id": str(event.id),
            "payment_method": method,
            "companions": [{"full_name": name} for name in companions],
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


async def scan(client: AsyncClient, token: str, headers: dict, **extra):
    response = await client.post(
        "/api/v1/checkins/scan", json={"token": token, **extra}, headers=headers
    )
    assert response.status_code == 200
    return response.json()


async def checkin_count(db_session, event_id) -> int:
    result = await db_session.execute(
        select(func.count(Checkin.id)).where(Checkin.event_id == event_id)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_scan_checks_in_owner(client: AsyncClient, auth_headers, organizer_headers, test_user, free_event, task_queue):
    booking = await book(client, auth_headers, free_event)

    result = await scan(client, booking["qr_token"], organizer_headers)
    assert result["kind"] == "success"
    assert result["code"] == "checked_in"
    assert result["principal_name"] == "Juan Dela Cruz"
    assert result["principal_type"] == "user"
    assert result["event_title"] == free_event.title
    assert result["payment"]["payment_status"] == "paid"
    assert result["checkin_id"] is not None

    assert task_queue.named("checkin_completed") == [
        {"user_id": str(test_user.id), "event_id": str(free_event.id)}
    ]


@pytest.mark.asyncio
async def test_second_scan_is_already_checked_in(client: AsyncClient, auth_headers, organizer_headers, free_event, db_session):
    booking = await book(client, auth_headers, free_event)

    first = await scan(client, booking["qr_token"], organizer_headers)
    second = await scan(client, booking["qr_token"], organizer_headers)

    assert first["kind"] == "success"
    assert second["kind"] == "already_checked_in"
    assert second["checkin_id"] == first["checkin_id"]
    assert await checkin_count(db_session, free_event.id) == 1


@pytest.mark.asyncio
async def test_simultaneous_scans_record_one_checkin(
    session_factory, client: AsyncClient, auth_headers, organizer, free_event, db_session
):
    """Two gate devices scan the same code at once."""
    booking = await book(client, auth_headers, free_event)

    async def gate():
        async with session_factory() as db:
            return await checkin_service.scan(db, booking["qr_token"], organizer.id)

    results = await asyncio.gather(gate(), gate())

    assert sorted(r.kind for r in results) == ["already_checked_in", "success"]
    assert await checkin_count(db_session, free_event.id) == 1


@pytest.mark.asyncio
async def test_unpaid_cash_needs_force(client: AsyncClient, auth_headers, organizer_headers, paid_event, db_session):
    """Cash codes work before payment, but the operator is warned first."""
    booking = await book(client, auth_headers, paid_event, method="cash")

    result = await scan(client, booking["qr_token"], organizer_headers)
    assert result["kind"] == "warning"
    assert result["code"] == "payment_not_verified"
    assert result["payment"] == {
        "payment_method": "cash",
        "payment_status": "pending",
        "booking_id": booking["id"],
    }
    assert await checkin_count(db_session, paid_event.id) == 0

    result = await scan(client, booking["qr_token"], organizer_headers, force=True)
    assert result["kind"] == "success"
    assert await checkin_count(db_session, paid_event.id) == 1


@pytest.mark.asyncio
async def test_unpaid_wallet_code_warns(client: AsyncClient, auth_headers, organizer_headers, test_user, paid_event):
    """A wallet booking has no code yet; a forged one still only gets a warning."""
    await book(client, auth_headers, paid_event, method="gcash")
    token = f"eventtara:checkin:{paid_event.id}:{test_user.id}"

    result = await scan(client, token, organizer_headers)
    assert result["kind"] == "warning"
    assert result["code"] == "payment_not_verified"


@pytest.mark.asyncio
async def test_invalid_token(client: AsyncClient, organizer_headers):
    for token in ("hello", "eventtara:checkin:not-a-uuid:x", "othersystem:checkin:a:b"):
        result = await scan(client, token, organizer_headers)
        assert result["kind"] == "error"
        assert result["code"] == "invalid_token"


@pytest.mark.asyncio
async def test_code_for_another_event(client: AsyncClient, auth_headers, organizer_headers, free_event, make_event):
    other_event = await make_event(title="Mt. Ulap Traverse")
    booking = await book(client, auth_headers, free_event)

    result = await scan(client, booking["qr_token"], organizer_headers, event_id=str(other_event.id))
    assert result["kind"] == "error"
    assert result["code"] == "not_registered"


@pytest.mark.asyncio
async def test_unregistered_user(client: AsyncClient, organizer_headers, other_user, free_event):
    token = f"eventtara:checkin:{free_event.id}:{other_user.id}"
    result = await scan(client, token, organizer_headers)
    assert result["kind"] == "error"
    assert result["code"] == "not_registered"
    assert result["event_title"] == free_event.title


@pytest.mark.asyncio
async def test_unknown_event(client: AsyncClient, organizer_headers, test_user):
    token = f"eventtara:checkin:{uuid.uuid4()}:{test_user.id}"
    result = await scan(client, token, organizer_headers)
    assert result["code"] == "not_registered"


@pytest.mark.asyncio
async def test_only_organizer_scans(client: AsyncClient, auth_headers, other_headers, free_event):
    booking = await book(client, auth_headers, free_event)
    response = await client.post(
        "/api/v1/checkins/scan", json={"token": booking["qr_token"]}, headers=other_headers
    )
    assert response.status_code == 403
    assert response.json()["error"] == "unauthorized"


@pytest.mark.asyncio
async def test_companion_scan(client: AsyncClient, auth_headers, organizer_headers, free_event, task_queue, db_session):
    booking = await book(client, auth_headers, free_event, companions=("Ana",))
    companion = booking["companions"][0]

    result = await scan(client, companion["qr_token"], organizer_headers)
    assert result["kind"] == "success"
    assert result["principal_type"] == "companion"
    assert result["principal_name"] == "Ana"

    row = (await db_session.execute(select(Checkin))).scalar_one()
    assert row.companion_id == uuid.UUID(companion["id"])
    assert row.user_id is None
    # companions have no account to award
    assert task_queue.named("checkin_completed") == []

    # owner and companion are separate principals
    result = await scan(client, booking["qr_token"], organizer_headers)
    assert result["kind"] == "success"


@pytest.mark.asyncio
async def test_cancelled_companion_is_not_registered(
    client: AsyncClient, auth_headers, organizer_headers, free_event
):
    booking = await book(client, auth_headers, free_event, companions=("Ana",))
    companion = booking["companions"][0]
    response = await client.patch(
        f"/api/v1/companions/{companion['id']}", json={"cancelled": True}, headers=auth_headers
    )
    assert response.status_code == 200

    token = f"eventtara:checkin:{free_event.id}:companion:{companion['id']}"
    result = await scan(client, token, organizer_headers)
    assert result["code"] == "not_registered"


@pytest.mark.asyncio
async def test_withdrawn_participant_warns(client: AsyncClient, auth_headers, organizer_headers, free_event):
    booking = await book(client, auth_headers, free_event)
    response = await client.patch(
        f"/api/v1/bookings/{booking['id']}/participant", json={"cancelled": True}, headers=auth_headers
    )
    assert response.status_code == 200

    token = f"eventtara:checkin:{free_event.id}:{booking['user_id']}"
    result = await scan(client, token, organizer_headers)
    assert result["kind"] == "warning"
    assert result["code"] == "participant_withdrawn"

    result = await scan(client, token, organizer_headers, force=True)
    assert result["kind"] == "success"


@pytest.mark.asyncio
async def test_manual_checkin(client: AsyncClient, auth_headers, organizer_headers, test_user, free_event, db_session, task_queue):
    booking = await book(client, auth_headers, free_event, companions=("Ana",))

    response = await client.post(
        "/api/v1/checkins/manual",
        json={"event_id": str(free_event.id), "user_id": str(test_user.id)},
        headers=organizer_headers,
    )
    assert response.status_code == 200
    assert response.json()["kind"] == "success"

    response = await client.post(
        "/api/v1/checkins/manual",
        json={"event_id": str(free_event.id), "companion_id": booking["companions"][0]["id"]},
        headers=organizer_headers,
    )
    assert response.json()["kind"] == "success"

    rows = (await db_session.execute(select(Checkin))).scalars().all()
    assert {row.method for row in rows} == {"manual"}
    assert len(task_queue.named("checkin_completed")) == 1

    # the code now says already checked in
    result = await scan(client, booking["qr_token"], organizer_headers)
    assert result["kind"] == "already_checked_in"


@pytest.mark.asyncio
async def test_manual_checkin_needs_one_principal(client: AsyncClient, organizer_headers, test_user, free_event):
    response = await client.post(
        "/api/v1/checkins/manual",
        json={"event_id": str(free_event.id)},
        headers=organizer_headers,
    )
    assert response.status_code == 422

    response = await client.post(
        "/api/v1/checkins/manual",
        json={
            "event_id": str(free_event.id),
            "user_id": str(test_user.id),
            "companion_id": str(uuid.uuid4()),
        },
        headers=organizer_headers,
    )
    assert response.status_code == 422
