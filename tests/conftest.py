"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from asc_readiness.db.base import Base
from asc_readiness.models import SURGEON_ROLE, FacilityUser


# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def facility_id() -> str:
    return str(uuid4())


@pytest.fixture
def clinic_id() -> str:
    return str(uuid4())


@pytest.fixture
async def surgeon(async_session: AsyncSession, facility_id: str) -> FacilityUser:
    """Create an active facility surgeon."""
    user = FacilityUser(
        id=str(uuid4()),
        facility_id=facility_id,
        username="dr.grey",
        name="Dr. Meredith Grey",
        roles=[SURGEON_ROLE],
        active=True,
    )
    async_session.add(user)
    await async_session.commit()
    await async_session.refresh(user)
    return user


@pytest.fixture
async def staff_user(async_session: AsyncSession, facility_id: str) -> FacilityUser:
    """Create an active facility user without the surgeon role."""
    user = FacilityUser(
        id=str(uuid4()),
        facility_id=facility_id,
        username="scheduler",
        name="Sam Scheduler",
        roles=["SCHEDULER", "ADMIN"],
        active=True,
    )
    async_session.add(user)
    await async_session.commit()
    await async_session.refresh(user)
    return user
