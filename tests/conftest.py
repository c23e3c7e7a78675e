"""Shared test fixtures."""

import os
import tempfile
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession

# Ensure mock mode and a throwaway SQLite database for tests
os.environ.setdefault("AUTH_MOCK", "true")
os.environ.setdefault("EMAIL_MOCK", "true")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-jwt")
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.mkdtemp(prefix="careteam-"), "test.db"),
)

import careteam.models  # noqa: E402,F401
from careteam.db.base import Base  # noqa: E402
from careteam.db.session import async_session_factory  # noqa: E402
from careteam.db.session import engine as app_engine  # noqa: E402
from careteam.main import app  # noqa: E402

if app_engine.dialect.name == "sqlite":

    @event.listens_for(app_engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture(autouse=True)
async def schema() -> AsyncGenerator[None, None]:
    """Fresh schema for every test.

    Disposes the app's connection pool afterwards so no pooled connection
    outlives the event loop that opened it.
    """
    async with app_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await app_engine.dispose()


@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """Async DB session. Tests commit when the app or another session must see their rows."""
    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client for the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
