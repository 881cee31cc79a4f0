"""
Pytest fixtures for test database, client, users, tokens and events.

Tables are created and dropped per test. Each HTTP request gets its own
session with the same commit/rollback unit of work as production; the
`db_session` fixture is a separate session used to arrange data and to
inspect results.
"""

import os

TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///./onelastevent_test.db"
)

# Must be set before the application settings are first loaded
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["PAYMENT_PROVIDER"] = "mock"
os.environ["STRIPE_WEBHOOK_SECRET"] = ""

from datetime import datetime, timezone, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import AsyncGenerator  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker  # noqa: E402

from onelastevent.main import app  # noqa: E402
from onelastevent.db.base import Base  # noqa: E402
from onelastevent.db.session import get_db  # noqa: E402
from onelastevent.core.security import create_access_token, hash_password  # noqa: E402
from onelastevent.domain.status import EventStatus, UserRole  # noqa: E402
from onelastevent.models.user import User  # noqa: E402
from onelastevent.models.event import Event  # noqa: E402
from onelastevent.services.interfaces.mock_processor import MockPaymentProcessor  # noqa: E402
from onelastevent.services.processor_factory import get_payment_processor  # noqa: E402

PASSWORD = "testpassword123"
# bcrypt is deliberately slow; hash once per run
PASSWORD_HASH = hash_password(PASSWORD)

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Pooled connections belong to this test's event loop
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_session: AsyncSession):
    """Independent sessions, for tests that need concurrent transactions."""
    return TestSessionLocal


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with per-request test sessions and the mock processor."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    processor = MockPaymentProcessor()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_processor] = lambda: processor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db: AsyncSession, email: str, full_name: str, role: UserRole) -> User:
    user = User(
        email=email,
        full_name=full_name,
        hashed_password=PASSWORD_HASH,
        role=role.value,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def _headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def organizer(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "organizer@example.com", "Olga Organizer", UserRole.ORGANIZER)


@pytest_asyncio.fixture
async def attendee(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "test@example.com", "Ada Attendee", UserRole.USER)


@pytest_asyncio.fixture
async def other_attendee(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "other@example.com", "Bo Attendee", UserRole.USER)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "admin@example.com", "Ari Admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def organizer_headers(organizer: User) -> dict:
    return _headers(organizer)


@pytest_asyncio.fixture
async def attendee_headers(attendee: User) -> dict:
    return _headers(attendee)


@pytest_asyncio.fixture
async def other_headers(other_attendee: User) -> dict:
    return _headers(other_attendee)


@pytest_asyncio.fixture
async def admin_headers(admin: User) -> dict:
    return _headers(admin)


async def _create_event(db: AsyncSession, organizer: User, **overrides) -> Event:
    values = dict(
        organizer_id=organizer.id,
        title="Test Meetup",
        description="A test event",
        location="Test Venue",
        start_datetime=datetime.now(timezone.utc) + timedelta(days=30),
        capacity=100,
        current_participants=0,
        price=Decimal("0.00"),
        currency="EUR",
        status=EventStatus.PUBLISHED.value,
        tags=[],
    )
    values.update(overrides)
    event = Event(**values)
    db.add(event)
    await db.commit()
    await db.refresh(event)
    return event


@pytest_asyncio.fixture
async def free_event(db_session: AsyncSession, organizer: User) -> Event:
    """Published free event with a single spot."""
    return await _create_event(db_session, organizer, title="Free Meetup", capacity=1)


@pytest_asyncio.fixture
async def paid_event(db_session: AsyncSession, organizer: User) -> Event:
    """Published 20 EUR event with 10 spots."""
    return await _create_event(
        db_session, organizer, title="Paid Workshop", capacity=10, price=Decimal("20.00")
    )


@pytest_asyncio.fixture
async def draft_event(db_session: AsyncSession, organizer: User) -> Event:
    """Draft without a start date: cannot be published yet."""
    return await _create_event(
        db_session,
        organizer,
        title="Undated Draft",
        start_datetime=None,
        status=EventStatus.DRAFT.value,
    )


@pytest_asyncio.fixture
async def event_factory(db_session: AsyncSession, organizer: User):
    async def factory(**overrides) -> Event:
        return await _create_event(db_session, organizer, **overrides)

    return factory
