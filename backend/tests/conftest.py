"""
Pytest fixtures for test database, client, and authentication.

Every test gets its own SQLite file (aiosqlite), so tests are isolated and
concurrency tests can open several real connections to the same database.
Redis is disabled; event listings always come from the database.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./ticketing-test.db"
os.environ["REDIS_ENABLED"] = "false"
os.environ["STAFF_EMAILS"] = '["staff@example.com"]'
os.environ["TICKET_CHECKSUM_ALGORITHM"] = "legacy"
os.environ["EMAIL_PROVIDER"] = "log"

from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from ticketing.main import app
from ticketing.api.deps import get_notifier
from ticketing.db.base import Base
from ticketing.db.session import get_db
from ticketing.core.security import create_access_token, hash_password
from ticketing.models.user import User
from ticketing.models.event import Event
from ticketing.services.booking_service import BookingService
from ticketing.services.checksum import LegacyChecksum
from ticketing.services.interfaces.notifier import BookingNotice, Notifier
from ticketing.services.qr_codec import QRCodec
from ticketing.services.ticket_issuer import TicketIssuer
from ticketing.services.validation_service import TicketValidator


class RecordingNotifier(Notifier):
    """Keeps every notice instead of sending it."""

    name = "recording"

    def __init__(self):
        self.confirmed: list[BookingNotice] = []
        self.checked_in: list[BookingNotice] = []

    async def booking_confirmed(self, notice: BookingNotice) -> None:
        self.confirmed.append(notice)

    async def booking_checked_in(self, notice: BookingNotice) -> None:
        self.checked_in.append(notice)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh database file per test; NullPool so no connection outlives its loop."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ticketing.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    """Independent sessions for tests that race several transactions."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, notifier: RecordingNotifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB and notifier dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def issuer() -> TicketIssuer:
    return TicketIssuer(LegacyChecksum(), QRCodec(box_size=2))


@pytest.fixture
def booking_service(issuer: TicketIssuer) -> BookingService:
    return BookingService(issuer, reference_prefix="BE")


@pytest.fixture
def validator(issuer: TicketIssuer) -> TicketValidator:
    return TicketValidator(issuer.checksum, issuer.codec)


async def _persist(session: AsyncSession, obj):
    """Commit and detach, so later rollbacks in the same session leave the fixture readable."""
    session.add(obj)
    await session.commit()
    session.expunge(obj)
    return obj


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _persist(db_session, User(
        email="test@example.com",
        username="testuser",
        hashed_password=hash_password("testpassword123"),
    ))


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _persist(db_session, User(
        email="other@example.com",
        username="otheruser",
        hashed_password=hash_password("otherpassword123"),
    ))


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession) -> User:
    return await _persist(db_session, User(
        email="staff@example.com",
        username="doorstaff",
        hashed_password=hash_password("staffpassword123"),
        is_staff=True,
    ))


def _headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': user.id})}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return _headers_for(test_user)


@pytest.fixture
def other_headers(other_user: User) -> dict:
    return _headers_for(other_user)


@pytest.fixture
def staff_headers(staff_user: User) -> dict:
    return _headers_for(staff_user)


def _event(organizer: User, title: str, capacity: int, date: datetime) -> Event:
    return Event(
        title=title,
        description="A test event",
        date=date,
        location="Test City",
        venue="Test Hall",
        capacity=capacity,
        organizer_id=organizer.id,
    )


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession, test_user: User) -> Event:
    """Event a month out with 50 tickets."""
    return await _persist(db_session, _event(
        test_user, "Test Concert", 50, datetime.now(timezone.utc) + timedelta(days=30),
    ))


@pytest_asyncio.fixture
async def small_event(db_session: AsyncSession, test_user: User) -> Event:
    """Event a month out with 10 tickets."""
    return await _persist(db_session, _event(
        test_user, "Small Gig", 10, datetime.now(timezone.utc) + timedelta(days=30),
    ))


@pytest_asyncio.fixture
async def live_event(db_session: AsyncSession, test_user: User) -> Event:
    """Event that started an hour ago; its tickets can be scanned."""
    return await _persist(db_session, _event(
        test_user, "Tonight's Show", 20, datetime.now(timezone.utc) - timedelta(hours=1),
    ))


@pytest_asyncio.fixture
async def sold_out_event(db_session: AsyncSession, test_user: User) -> Event:
    return await _persist(db_session, _event(
        test_user, "Sold Out Show", 0, datetime.now(timezone.utc) + timedelta(days=30),
    ))


@pytest_asyncio.fixture
async def live_booking(db_session: AsyncSession, booking_service: BookingService, test_user: User, live_event: Event):
    """Two confirmed tickets for the live event."""
    result = await booking_service.create_booking(
        db_session, test_user.id, live_event.id, quantity=2, total_amount=Decimal("40.00"),
    )
    db_session.expunge_all()
    return result
