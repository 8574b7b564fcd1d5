"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own SQLite file (or TEST_DATABASE_URL when set), created
and dropped around the test. Request handlers and background tasks open
their sessions from the same factory, as they do in production.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("ADMISSION_STRATEGY", "optimistic")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./amicale_test.db")

from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from amicale.main import app
from amicale.db.base import Base
from amicale.db.session import get_db, get_session_factory
from amicale.core.security import create_access_token
from amicale.models.event import Event
from amicale.models.house import House
from amicale.models.user import User, UserRole, UserStatus
from amicale.services.interfaces import Notification, NotificationSink, OptimisticAdmission
from amicale.services.strategy_factory import get_admission, get_notification_sink


class RecordingSink(NotificationSink):
    """Keeps messages instead of sending them; can be told to fail."""

    def __init__(self):
        self.sent: list[Notification] = []
        self.fail = False

    async def send(self, message: Notification) -> bool:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append(message)
        return True


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create tables in a fresh database, drop them afterwards."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'amicale.db'}"
    test_engine = create_async_engine(url, echo=False)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, sink) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test database and the recording sink."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notification_sink] = lambda: sink
    app.dependency_overrides[get_admission] = lambda: OptimisticAdmission()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add(db_session: AsyncSession, obj):
    db_session.add(obj)
    await db_session.commit()
    await db_session.refresh(obj)
    return obj


def headers_for(user: User) -> dict:
    """Authorization headers with a Bearer token for `user`."""
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def member(db_session: AsyncSession) -> User:
    """An approved adherent."""
    return await _add(db_session, User(
        first_name="Sami",
        last_name="Ben Ali",
        email="sami@example.com",
        role=UserRole.ADHERENT.value,
        status=UserStatus.APPROVED.value,
    ))


@pytest_asyncio.fixture
async def other_member(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        first_name="Leila",
        last_name="Trabelsi",
        email="leila@example.com",
        role=UserRole.ADHERENT.value,
        status=UserStatus.APPROVED.value,
    ))


@pytest_asyncio.fixture
async def pending_member(db_session: AsyncSession) -> User:
    """An adherent whose membership has not been approved yet."""
    return await _add(db_session, User(
        first_name="Karim",
        last_name="Haddad",
        email="karim@example.com",
        role=UserRole.ADHERENT.value,
        status=UserStatus.PENDING.value,
    ))


@pytest_asyncio.fixture
async def responsable(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        first_name="Mona",
        last_name="Jlassi",
        email="mona@example.com",
        role=UserRole.RESPONSIBLE.value,
        status=UserStatus.APPROVED.value,
    ))


@pytest.fixture
def member_headers(member: User) -> dict:
    return headers_for(member)


@pytest.fixture
def responsable_headers(responsable: User) -> dict:
    return headers_for(responsable)


@pytest_asyncio.fixture
async def house(db_session: AsyncSession) -> House:
    return await _add(db_session, House(
        title="Maison Tabarka",
        address="Route de la corniche",
        location="Tabarka",
    ))


@pytest_asyncio.fixture
async def trip(db_session: AsyncSession) -> Event:
    """A trip with three places and no child or companion pricing."""
    return await _add(db_session, Event(
        title="Voyage Djerba",
        type="Voyage",
        start_date=datetime(2030, 5, 1, 8, 0, tzinfo=timezone.utc),
        end_date=datetime(2030, 5, 4, 20, 0, tzinfo=timezone.utc),
        base_price=Decimal("350.00"),
        max_participants=3,
        current_participants=0,
    ))


@pytest_asyncio.fixture
async def family_trip(db_session: AsyncSession) -> Event:
    """A trip charging a child price and a companion price."""
    return await _add(db_session, Event(
        title="Excursion Ain Draham",
        type="Excursion",
        start_date=datetime(2030, 6, 10, 7, 0, tzinfo=timezone.utc),
        end_date=datetime(2030, 6, 10, 19, 0, tzinfo=timezone.utc),
        base_price=Decimal("60.00"),
        child_presence=True,
        child_price=Decimal("30.00"),
        cojoin_presence=True,
        cojoin_price=Decimal("45.00"),
        number_of_children=2,
        number_of_companions=1,
        max_participants=20,
        current_participants=0,
    ))


def house_booking(house_id: int, start: str, end: str, **extra) -> dict:
    body = {
        "activity": house_id,
        "activityCategory": "Sejour Maison",
        "bookingPeriod": {"start": start, "end": end},
    }
    body.update(extra)
    return body


def event_booking(event_id: int, category: str = "Voyage", **extra) -> dict:
    body = {"activity": event_id, "activityCategory": category}
    body.update(extra)
    return body
