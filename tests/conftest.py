"""
Pytest configuration for the fuel price analytics tests

Settings are read from the environment on first import, so the overrides
below must run before anything under app/ is imported.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-fuel-analytics-0123456789"
os.environ["ENVIRONMENT"] = "test"

import asyncio
import uuid
from datetime import date, datetime, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from app.database import Base, get_db
from app.main import app
from app.models.fuel_price import FuelPrice, Region
from app.models.user import User, UserRole, UserStatus
from app.core.record_store import SqlAlchemyFuelRecordStore
from app.core.security import create_access_token, get_password_hash

# Engine tests run against a fixed clock
FIXED_NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def make_record(state, region, period, pms, ago=750.0, dpk=650.0, lpg=450.0):
    """Build an unsaved FuelPrice; period may be a date or an ISO string"""
    if isinstance(period, str):
        period = date.fromisoformat(period)
    return FuelPrice(
        state=state,
        region=region,
        period=period,
        pms=pms,
        ago=ago,
        dpk=dpk,
        lpg=lpg,
    )


@pytest.fixture
def sample_records():
    """Lagos, Kano and Abuja prices over the first two days of 2024"""
    return [
        make_record("Lagos", Region.SOUTH_WEST, "2024-01-01", 617.0, 750.5, 650.25, 450.75),
        make_record("Lagos", Region.SOUTH_WEST, "2024-01-02", 620.0, 755.0, 655.0, 455.0),
        make_record("Kano", Region.NORTH_WEST, "2024-01-01", 612.0, 745.0, 645.0, 445.0),
        make_record("Kano", Region.NORTH_WEST, "2024-01-02", 615.0, 748.0, 648.0, 448.0),
        make_record("Abuja", Region.NORTH_CENTRAL, "2024-01-01", 610.0, 740.0, 640.0, 440.0),
        make_record("Abuja", Region.NORTH_CENTRAL, "2024-01-02", 608.0, 742.0, 641.0, 441.0),
    ]


# ---------------------------------------------------------------------------
# Engine / store fixtures: one in-memory database per test
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def db_session():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def store(db_session):
    return SqlAlchemyFuelRecordStore(db_session)


@pytest.fixture
def seed(store):
    async def _seed(*records):
        await store.add_all(list(records))
    return _seed


# ---------------------------------------------------------------------------
# HTTP fixtures: a file database shared by the test and the TestClient loop
# ---------------------------------------------------------------------------
@pytest.fixture
def database(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def client(database):
    async def override_get_db():
        async with database() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def add_records(database):
    """Insert records straight into the HTTP test database"""
    def _add(*records):
        async def insert():
            async with database() as session:
                session.add_all(records)
                await session.commit()

        asyncio.run(insert())
        return records
    return _add


@pytest.fixture
def create_user(database):
    def _create(role=UserRole.ANALYST, email=None, password="password123!", status=UserStatus.ACTIVE):
        user = User(
            email=email or f"{role.value}.{uuid.uuid4().hex[:8]}@fuelwatch.ng",
            password_hash=get_password_hash(password),
            full_name=f"{role.value.title()} User",
            role=role,
            status=status,
        )

        async def insert():
            async with database() as session:
                session.add(user)
                await session.commit()

        asyncio.run(insert())
        return user
    return _create


@pytest.fixture
def auth_headers(create_user):
    """Bearer headers for a freshly created user with the given role"""
    def _headers(role=UserRole.ANALYST):
        user = create_user(role=role)
        token = create_access_token({"sub": user.id, "role": role.value})
        return {"Authorization": f"Bearer {token}"}
    return _headers
