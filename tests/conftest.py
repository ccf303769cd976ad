"""Pytest configuration and shared fixtures.

Tests run against a throwaway SQLite database (aiosqlite) created from the
ORM metadata, so no PostgreSQL or Redis server is needed.
"""

import asyncio
import os
import tempfile
import uuid
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

# Configure the environment BEFORE importing the app so Settings picks it up
_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="apptime-tests-"))
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR / 'test.db'}"
os.environ["COOKIE_SECURE"] = "false"

from apptime_api.config import settings

settings.testing = True

from apptime_api.core.security import create_access_token, hash_password
from apptime_api.core.totp import generate_secret
from apptime_api.database import get_session_maker, reset_database
from apptime_api.main import app
from apptime_api.models import Base, User

TEST_PASSWORD = "SecurePass123"


async def _create_schema() -> None:
    engine = create_async_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def database_schema():
    """Create all tables once for the test run.

    The app engine uses NullPool under TESTING, so it holds no connections
    tied to any one test's event loop.
    """
    asyncio.run(_create_schema())
    yield
    asyncio.run(reset_database())


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for each test."""
    session_maker = get_session_maker()
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def unique_username(prefix: str = "user") -> str:
    """Generate a unique username for testing."""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory inserting users directly, bypassing the registration endpoint.

    ``secret=None`` leaves the user without a provisioned secret.
    """

    async def _make_user(
        prefix: str = "user",
        *,
        secret: str | None = "generate",
        totp_enabled: bool = True,
        is_active: bool = True,
    ) -> User:
        username = unique_username(prefix)
        user = User(
            username=username,
            email=f"{username}@example.com",
            display_name=prefix.title(),
            hashed_password=hash_password(TEST_PASSWORD),
            totp_secret=generate_secret() if secret == "generate" else secret,
            totp_enabled=totp_enabled,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    """Build Bearer headers for a user."""

    def _auth_headers(user: User) -> dict[str, str]:
        token = create_access_token(user_id=user.id, username=user.username)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
