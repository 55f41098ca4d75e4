"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own database: a file-backed SQLite database under
tmp_path by default, or TEST_DATABASE_URL (e.g. a PostgreSQL test database)
when set. Tables are created from the models and dropped afterwards.
"""

import os
import tempfile

# Configure before the application modules read settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./shuttle_unused.db")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("REAPER_ENABLED", "false")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="shuttle-uploads-"))

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from shuttle.main import app
from shuttle.db.base import Base
from shuttle.db.session import get_db
from shuttle.core.security import create_access_token, hash_password
from shuttle.infrastructure.storage import LocalBlobStore, get_blob_store
from shuttle.models.user import User, UserRole
from shuttle.models.route import Route
from shuttle.models.schedule import Schedule, Seat
from shuttle.services.seat_service import generate_seat_labels

PASSWORD = "testpassword123"


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    connect_args = {"timeout": 15} if url.startswith("sqlite") else {}
    test_engine = create_async_engine(url, echo=False, connect_args=connect_args)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    """Independent sessions, one per simulated concurrent caller."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(str(tmp_path / "uploads"))


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, blob_store: LocalBlobStore) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB and blob store dependencies."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_user(db: AsyncSession, email: str, role: UserRole = UserRole.USER) -> User:
    user = User(
        email=email,
        full_name=email.split("@")[0].title(),
        hashed_password=hash_password(PASSWORD),
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory for extra accounts (e.g. many racing passengers)."""

    async def _make(email: str, role: UserRole = UserRole.USER) -> User:
        return await _make_user(db_session, email, role)

    return _make


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "test@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "other@example.com")


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "staff@example.com", UserRole.STAFF)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "admin@example.com", UserRole.ADMIN)


def _headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return _headers(test_user)


@pytest.fixture
def other_headers(other_user: User) -> dict:
    return _headers(other_user)


@pytest.fixture
def staff_headers(staff_user: User) -> dict:
    return _headers(staff_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return _headers(admin_user)


@pytest_asyncio.fixture
async def test_route(db_session: AsyncSession) -> Route:
    route = Route(origin_city="Jakarta", destination_city="Bandung")
    db_session.add(route)
    await db_session.commit()
    await db_session.refresh(route)
    return route


@pytest.fixture
def make_schedule(db_session: AsyncSession, test_route: Route):
    """Factory: a schedule with its seat ledger, committed."""

    async def _make(
        seats: int = 8,
        departure: datetime | None = None,
        price: Decimal = Decimal("150000.00"),
    ) -> Schedule:
        departure = departure or datetime.now(timezone.utc) + timedelta(days=2)
        schedule = Schedule(
            route_id=test_route.id,
            departure_time=departure,
            arrival_time=departure + timedelta(hours=3, minutes=30),
            price=price,
            total_seats=seats,
            available_seats=seats,
        )
        db_session.add(schedule)
        await db_session.flush()
        db_session.add_all(
            [Seat(schedule_id=schedule.id, label=label, claimed=False) for label in generate_seat_labels(seats)]
        )
        await db_session.commit()
        return schedule

    return _make


@pytest_asyncio.fixture
async def test_schedule(make_schedule) -> Schedule:
    return await make_schedule()


@pytest_asyncio.fixture
async def seats(db_session: AsyncSession, test_schedule: Schedule) -> list[Seat]:
    result = await db_session.execute(
        select(Seat).where(Seat.schedule_id == test_schedule.id).order_by(Seat.id)
    )
    return list(result.scalars().all())
