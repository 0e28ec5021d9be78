"""
Centralized Test Configuration.
"""

import os
import tempfile
import pytest
from datetime import date
from pathlib import Path
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from backend.app.main import app
from backend.app.db.session import get_db, get_session_factory, Base
from backend.app.schemas.client import ClientCreate
from backend.app.schemas.work import WorkCreate
from backend.app.services import client_service, work_store

# Setup File-Backed Test Database. Concurrent sessions need their own
# connections, which an in-memory database cannot give them.
TEST_DATABASE_PATH = Path(tempfile.gettempdir()) / f"ledger_test_{os.getpid()}.db"
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{TEST_DATABASE_PATH}"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=NullPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Apply overrides once for the session."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    def override_get_session_factory():
        return TestingSessionLocal

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = override_get_session_factory
    yield

    app.dependency_overrides = {}
    if TEST_DATABASE_PATH.exists():
        TEST_DATABASE_PATH.unlink()

@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session

@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def make_client(db_session):
    """Factory registering clients with distinct phone numbers."""
    counter = {"n": 0}

    async def _make(name="Ramesh Ghosh", **overrides):
        counter["n"] += 1
        data = {
            "name": name,
            "phone": f"98765{counter['n']:05d}",
            "address": "12 Lake Road, Kolkata 700029",
            "usual_work_types": ["income-tax"],
        }
        data.update(overrides)
        return await client_service.create_client(db_session, ClientCreate(**data))

    return _make


@pytest.fixture
def make_work(db_session):
    """Factory recording work transactions through the transaction store."""

    async def _make(client_id, total_price, paid_amount=0, **overrides):
        data = {
            "client_id": client_id,
            "total_price": total_price,
            "paid_amount": paid_amount,
            "work_types": ["income-tax"],
            "description": "ITR filing for AY 2025-26",
            "transaction_date": date(2025, 7, 15),
        }
        data.update(overrides)
        return await work_store.create_work(db_session, WorkCreate(**data))

    return _make
