"""
Pytest fixtures for testing.

Provides:
- Async database session on in-memory SQLite
- Flag stores (memory and database)
- Test client with database session override
- Flag factories
"""

import os

# Settings are read at import time
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from featureflags.main import app
from featureflags.models.base import Base
from featureflags.api.dependencies.database import get_db
from featureflags.core.features import models  # noqa: F401
from featureflags.core.features import (
    DatabaseFlagStore,
    FeatureFlag,
    MemoryFlagStore,
    PercentageFilter,
    TargetingFilter,
    TimeWindowFilter,
)


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create database session with automatic rollback.

    Each test gets a fresh transaction that's rolled back after.
    """
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database session override.
    """

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============ Stores ============


@pytest.fixture
def memory_store() -> MemoryFlagStore:
    """Empty in-memory flag store."""
    return MemoryFlagStore()


@pytest_asyncio.fixture
async def db_store(db: AsyncSession) -> DatabaseFlagStore:
    """Flag store on the test database session."""
    return DatabaseFlagStore(db)


# ============ Factory Fixtures ============


def utc(*args) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)


class FlagFactory:
    """Builds flags with one filter of each common kind."""

    @staticmethod
    def simple(name: str = "new_checkout", status: bool = True, **kwargs) -> FeatureFlag:
        return FeatureFlag(name=name, status=status, **kwargs)

    @staticmethod
    def with_filters(name: str = "beta_reports", status: bool = True) -> FeatureFlag:
        return FeatureFlag(
            name=name,
            status=status,
            filters=(
                TargetingFilter(included_users=("alice", "bob"), excluded_users=("mallory",)),
                PercentageFilter(value=25),
                TimeWindowFilter(start=utc(2025, 1, 1), end=utc(2025, 2, 1)),
            ),
        )


@pytest.fixture
def flag_factory() -> FlagFactory:
    """Fixture that provides FlagFactory."""
    return FlagFactory()
