"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own SQLite file database (aiosqlite), created from the
model metadata. Every HTTP request gets a fresh session, as it would in
production, and background jobs are recorded instead of run.
"""

import os

os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["SEED_SYSTEM_BADGES"] = "false"

import uuid
from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.main import app
from app.api.deps import get_task_queue
from app.db.base import Base
from app.db.session import build_engine, get_db
from app.core.security import create_access_token, hash_password
from app.models import DistanceTier, Event, Mountain, User


class RecordingQueue:
    """Stands in for the background pool: remembers what would have run."""

    def __init__(self):
        self.jobs: list[tuple[str, dict]] = []

    def enqueue(self, name: str, payload: dict) -> bool:
        self.jobs.append((name, payload))
        return True

    def named(self, name: str) -> list[dict]:
        return [payload for job, payload in self.jobs if job == name]


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting state outside of requests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def task_queue() -> RecordingQueue:
    return RecordingQueue()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, task_queue) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB and background queue dependencies overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_task_queue] = lambda: task_queue

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db: AsyncSession, username: str, full_name: str = "") -> User:
    user = User(
        id=uuid.uuid4(),
        email=f"{username}@example.com",
        username=username,
        full_name=full_name,
        hashed_password=hash_password("testpassword123"),
    )
    db.add(user)
    await db.commit()
    return user


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Participant account."""
    return await _create_user(db_session, "testuser", "Juan Dela Cruz")


@pytest_asyncio.fixture
async def organizer(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "organizer", "Trail Org")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "otheruser", "Maria Clara")


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    async def _make(username: str, full_name: str = "") -> User:
        return await _create_user(db_session, username, full_name)

    return _make


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return headers_for(test_user)


@pytest.fixture
def organizer_headers(organizer: User) -> dict:
    return headers_for(organizer)


@pytest.fixture
def other_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest_asyncio.fixture
async def make_event(db_session: AsyncSession, organizer: User):
    """Factory for events straight in the database."""

    async def _make(
        price: int = 0,
        capacity: int = 10,
        category: str = "hiking",
        tiers: list[dict] | None = None,
        mountains: list[tuple[str, str]] | None = None,
        organizer_id: uuid.UUID | None = None,
        reserved_slots: int = 0,
        title: str = "Mt. Pulag Dayhike",
    ) -> Event:
        event = Event(
            id=uuid.uuid4(),
            title=title,
            description="A test event",
            category=category,
            date=datetime.now(timezone.utc) + timedelta(days=30),
            location="Benguet",
            price=price,
            capacity=capacity,
            reserved_slots=reserved_slots,
            organizer_id=organizer_id or organizer.id,
        )
        event.tiers = [
            DistanceTier(id=uuid.uuid4(), reserved_slots=0, **tier) for tier in (tiers or [])
        ]
        event.mountains = [
            Mountain(id=uuid.uuid4(), name=name, province=province)
            for name, province in (mountains or [])
        ]
        db_session.add(event)
        await db_session.commit()
        return event

    return _make


@pytest_asyncio.fixture
async def free_event(make_event) -> Event:
    return await make_event(price=0, capacity=10)


@pytest_asyncio.fixture
async def paid_event(make_event) -> Event:
    return await make_event(price=500, capacity=10)


@pytest.fixture
def headers_factory():
    return headers_for
