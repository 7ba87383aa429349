# File: tests/conftest.py
"""Pytest configuration and fixtures."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from caixapilot.core.db import Base, get_db
from caixapilot.core.kv_store import InMemoryKeyValueStore
from caixapilot.core.offline_cache import OfflineSessionRepository
from caixapilot.main import create_app

# Import all models
from caixapilot.models.cash_movement import CashMovement  # noqa: F401
from caixapilot.models.cash_session import CashSession  # noqa: F401

# Single shared in-memory database per test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

COMPANY_ID = "empresa-teste"
USER_ID = "operador-1"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    """Create fresh DB session for each test."""
    async_session_maker = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session):
    """Create async test client with overridden DB dependency."""
    app = create_app()

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        ac.db_session = db_session
        yield ac


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def offline_repository(kv_store) -> OfflineSessionRepository:
    return OfflineSessionRepository(kv_store)
