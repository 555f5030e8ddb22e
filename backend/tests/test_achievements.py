"""
Tests for the achievement engine and the achievement endpoints.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from app.core.errors import InvalidRequest, Unauthorized
from app.domain.achievements import SYSTEM_BADGES
from app.models import Badge, Border, Checkin, User, UserBadge, UserBorder
from app.services import achievement_service

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def check_in(db_session):
    async def _check_in(event, user, minutes: int = 0) -> Checkin:
        row = Checkin(
            id=uuid.uuid4(),
            event_id=event.id,
            user_id=user.id,
            method="scan",
            checked_in_at=START + timedelta(minutes=minutes),
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _check_in


@pytest.fixture
def make_border(db_session):
    async def _make(slug: str, criteria_type: str, criteria_value: dict, sort_order: int = 0) -> Border:
        border = Border(
            id=uuid.uuid4(),
            slug=slug,
            name=slug.replace("-", " ").title(),
            criteria_type=criteria_type,
            criteria_value=criteria_value,
            sort_order=sort_order,
        )
        db_session.add(border)
        await db_session.commit()
        return border

    return _make


async def seeded(session_factory) -> dict[str, uuid.UUID]:
    async with session_factory() as db:
        await achievement_service.seed_system_badges(db)
        rows = (await db.execute(select(Badge.criteria_key, Badge.id))).all()
    return dict(rows)


async def evaluate(session_factory, user_id):
    async with session_factory() as db:
        return await achievement_service.evaluate_and_award(db, user_id)


@pytest.mark.asyncio
async def test_seeding_is_idempotent(session_factory):
    async with session_factory() as db:
        assert await achievement_service.seed_system_badges(db) == len(SYSTEM_BADGES)
        assert await achievement_service.seed_system_badges(db) == 0
        count = await db.scalar(select(func.count(Badge.id)).where(Badge.type == "system"))
    assert count == len(SYSTEM_BADGES)


@pytest.mark.asyncio
async def test_first_checkin_awards_once(session_factory, make_event, test_user, check_in, db_session):
    """Evaluating the same history twice awards nothing the second time."""
    badges = await seeded(session_factory)
    await check_in(await make_event(category="hiking"), test_user)

    first = await evaluate(session_factory, test_user.id)
    second = await evaluate(session_factory, test_user.id)

    assert {badge_id for badge_id, _ in first.badges} == {badges["first_hike"], badges["pioneer"]}
    assert not second
    count = await db_session.scalar(
        select(func.count(UserBadge.id)).where(UserBadge.user_id == test_user.id)
    )
    assert count == 2


@pytest.mark.asyncio
async def test_concurrent_evaluations_award_once(session_factory, make_event, test_user, check_in, db_session):
    await seeded(session_factory)
    await check_in(await make_event(category="running"), test_user)

    outcomes = await asyncio.gather(
        evaluate(session_factory, test_user.id),
        evaluate(session_factory, test_user.id),
    )

    reported = [badge_id for outcome in outcomes for badge_id, _ in outcome.badges]
    rows = (
        await db_session.execute(select(UserBadge.badge_id).where(UserBadge.user_id == test_user.id))
    ).scalars().all()
    assert len(rows) == 2
    assert sorted(reported) == sorted(rows)


@pytest.mark.asyncio
async def test_milestones_and_all_rounder(session_factory, make_event, test_user, check_in):
    badges = await seeded(session_factory)
    for minutes, category in enumerate(["hiking", "running", "road_bike", "mtb", "trail_run"]):
        await check_in(await make_event(category=category), test_user, minutes)

    outcome = await evaluate(session_factory, test_user.id)
    earned = {badge_id for badge_id, _ in outcome.badges}

    for key in ("first_hike", "first_run", "first_road_ride", "first_mtb", "first_trail_run",
                "all_rounder", "events_5", "pioneer"):
        assert badges[key] in earned
    assert badges["events_10"] not in earned


@pytest.mark.asyncio
async def test_pioneer_rank_respects_limit(
    session_factory, make_event, test_user, other_user, check_in, monkeypatch
):
    badges = await seeded(session_factory)
    monkeypatch.setattr(achievement_service.settings, "PIONEER_LIMIT", 1)
    event = await make_event()
    await check_in(event, other_user, minutes=0)
    await check_in(event, test_user, minutes=5)

    async with session_factory() as db:
        assert (await achievement_service.build_history(db, other_user.id)).pioneer_rank == 1
        assert (await achievement_service.build_history(db, test_user.id)).pioneer_rank == 2

    late = await evaluate(session_factory, test_user.id)
    early = await evaluate(session_factory, other_user.id)
    assert badges["pioneer"] not in {badge_id for badge_id, _ in late.badges}
    assert badges["pioneer"] in {badge_id for badge_id, _ in early.badges}


@pytest.mark.asyncio
async def test_history_snapshot(session_factory, make_event, test_user, organizer, check_in):
    pulag = await make_event(category="hiking", mountains=[("Pulag", "Benguet"), ("Ulap", "Benguet")])
    run = await make_event(category="running")
    await check_in(pulag, test_user)
    await check_in(run, test_user, minutes=1)

    async with session_factory() as db:
        stats = await achievement_service.build_history(db, test_user.id)

    assert stats.total_checkins == 2
    assert stats.checkins_by_category == {"hiking": 1, "running": 1}
    assert stats.mountains_by_province == {"Benguet": 2}
    assert stats.checkins_by_organizer == {str(organizer.id): 2}
    assert stats.organized_event_count == 0
    assert stats.signup_at is not None


@pytest.mark.asyncio
async def test_border_criteria(session_factory, make_event, test_user, check_in, make_border):
    first_steps = await make_border("first-steps", "event_count", {"min_events": 1}, sort_order=1)
    benguet = await make_border(
        "benguet-explorer", "mountain_region", {"province": "Benguet", "mountain_count": 2}, sort_order=2
    )
    veteran = await make_border("veteran", "event_count", {"min_events": 10}, sort_order=3)
    runner = await make_border("runner", "event_type_count", {"event_type": "running", "min_events": 1})

    await check_in(
        await make_event(category="hiking", mountains=[("Pulag", "Benguet"), ("Ugo", "Benguet")]),
        test_user,
    )

    outcome = await evaluate(session_factory, test_user.id)
    earned = {border_id for border_id, _ in outcome.borders}
    assert earned == {first_steps.id, benguet.id}
    assert veteran.id not in earned and runner.id not in earned

    again = await evaluate(session_factory, test_user.id)
    assert again.borders == []


@pytest.mark.asyncio
async def test_variety_border_lands_with_fourth_category(
    session_factory, make_event, test_user, check_in, make_border, db_session
):
    """Five check-ins over three categories fall short of four types; the fourth category earns it once."""
    variety = await make_border("four-disciplines", "event_type_count", {"min_types": 4})
    for minutes, category in enumerate(["hiking", "hiking", "running", "running", "mtb"]):
        await check_in(await make_event(category=category), test_user, minutes)

    before = await evaluate(session_factory, test_user.id)
    assert variety.id not in {border_id for border_id, _ in before.borders}

    await check_in(await make_event(category="road_bike"), test_user, minutes=10)
    first = await evaluate(session_factory, test_user.id)
    second = await evaluate(session_factory, test_user.id)

    reported = [border_id for outcome in (first, second) for border_id, _ in outcome.borders]
    assert reported == [variety.id]
    rows = await db_session.scalar(
        select(func.count(UserBorder.id)).where(
            UserBorder.user_id == test_user.id, UserBorder.border_id == variety.id
        )
    )
    assert rows == 1


@pytest.mark.asyncio
async def test_organizer_border_counts_organized_events(session_factory, make_event, organizer, make_border):
    border = await make_border("host", "organizer_event_count", {"min_events": 2})
    await make_event()
    await make_event()

    outcome = await evaluate(session_factory, organizer.id)
    assert outcome.borders == [(border.id, "Host")]


@pytest.mark.asyncio
async def test_manual_event_badge(client: AsyncClient, organizer_headers, auth_headers, test_user, other_user, free_event, db_session):
    badge = Badge(id=uuid.uuid4(), event_id=free_event.id, title="Summit Finisher", type="event")
    db_session.add(badge)
    await db_session.commit()

    url = f"/api/v1/achievements/badges/{badge.id}/award"
    payload = {"user_ids": [str(test_user.id), str(test_user.id), str(other_user.id)]}

    response = await client.post(url, json=payload, headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["awarded"] == 2

    response = await client.post(url, json=payload, headers=organizer_headers)
    assert response.json() == {"awarded": 0, "newly_awarded": []}

    response = await client.post(url, json=payload, headers=auth_headers)
    assert response.status_code == 403

    count = await db_session.scalar(select(func.count(UserBadge.id)).where(UserBadge.badge_id == badge.id))
    assert count == 2


@pytest.mark.asyncio
async def test_system_badges_cannot_be_handed_out(session_factory, organizer, test_user):
    badges = await seeded(session_factory)
    async with session_factory() as db:
        with pytest.raises(InvalidRequest):
            await achievement_service.award_event_badge(db, badges["pioneer"], organizer.id, [test_user.id])


@pytest.mark.asyncio
async def test_event_badge_of_someone_elses_event(session_factory, make_event, other_user, test_user):
    event = await make_event(organizer_id=other_user.id)
    async with session_factory() as db:
        badge = Badge(id=uuid.uuid4(), event_id=event.id, title="Sweeper")
        db.add(badge)
        await db.commit()
        with pytest.raises(Unauthorized):
            await achievement_service.award_event_badge(db, badge.id, test_user.id, [test_user.id])


@pytest.mark.asyncio
async def test_my_achievements_and_active_border(
    client: AsyncClient, session_factory, auth_headers, make_event, test_user, check_in, make_border, db_session
):
    await seeded(session_factory)
    border = await make_border("first-steps", "event_count", {"min_events": 1})
    locked = await make_border("veteran", "event_count", {"min_events": 10})
    await check_in(await make_event(category="hiking"), test_user)
    await evaluate(session_factory, test_user.id)

    response = await client.get("/api/v1/achievements/me", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert {b["badge"]["criteria_key"] for b in data["badges"]} == {"first_hike", "pioneer"}
    assert [b["border"]["slug"] for b in data["borders"]] == ["first-steps"]
    assert data["active_border_id"] is None

    response = await client.put(
        "/api/v1/achievements/me/active-border", json={"border_id": str(locked.id)}, headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"

    response = await client.put(
        "/api/v1/achievements/me/active-border", json={"border_id": str(border.id)}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["active_border_id"] == str(border.id)
    user = await db_session.get(User, test_user.id, populate_existing=True)
    assert user.active_border_id == border.id

    response = await client.put(
        "/api/v1/achievements/me/active-border", json={"border_id": None}, headers=auth_headers
    )
    assert response.json()["active_border_id"] is None


@pytest.mark.asyncio
async def test_border_award_rows_are_unique(session_factory, test_user, make_border, db_session):
    border = await make_border("first-steps", "event_count", {"min_events": 1})
    async with session_factory() as db:
        assert await achievement_service._insert_once(db, UserBorder(user_id=test_user.id, border_id=border.id))
        assert not await achievement_service._insert_once(db, UserBorder(user_id=test_user.id, border_id=border.id))
