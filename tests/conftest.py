"""
Pytest fixtures for the health log tests.

Each test gets its own SQLite file database; the app's get_db dependency is
overridden to hand out sessions bound to it.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("API_KEY", "test-api-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from healthlog import models  # noqa: F401
from healthlog.config import settings
from healthlog.database import Base, get_db
from healthlog.main import app
from healthlog.schemas import HealthDataSubmission

USER_ID = "patient-1"


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'health.db'}")

    # Take the write lock at BEGIN so concurrent writers queue on the busy
    # timeout instead of failing with "database is locked".
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"X-API-Key": settings.API_KEY, "X-User-Id": USER_ID}


def make_submission(**fields) -> HealthDataSubmission:
    """Build a submission dated 2024-03-10 unless a date is given."""
    fields.setdefault("date", "2024-03-10")
    return HealthDataSubmission(**fields)
