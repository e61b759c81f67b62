"""
Test configuration and fixtures
"""
import os

# Configure before the app modules read the environment
os.environ["DATABASE_URL"] = ""
os.environ["DATA_FILE"] = ""

import pytest
import pytest_asyncio
from datetime import date
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from database import make_sessionmaker
from main import app, get_service
from service import BookingService
from stores import MemoryStore, SQLStore

import models  # noqa: F401


TEST_DAY = date(2025, 1, 6)

SQLALCHEMY_TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def day():
    return TEST_DAY


@pytest.fixture
def memory_store():
    """A fresh in-memory store without file persistence"""
    return MemoryStore()


@pytest.fixture
def service(memory_store):
    """Booking service running on the in-memory store only"""
    return BookingService(primary=None, fallback=memory_store)


@pytest.fixture
def client(service):
    """Create a test client with overridden service dependency"""
    app.dependency_overrides[get_service] = lambda: service
    with TestClient(app=app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def sql_store():
    """SQL store backed by a fresh in-memory SQLite database"""
    engine = create_async_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    try:
        yield SQLStore(make_sessionmaker(engine))
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def unreachable_sql_store(tmp_path):
    """SQL store whose database file cannot be opened"""
    missing = tmp_path / "missing" / "bookings.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{missing}")
    try:
        yield SQLStore(make_sessionmaker(engine))
    finally:
        await engine.dispose()
