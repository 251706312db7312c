"""Pytest configuration and shared fixtures for API and client tests."""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test DB before app imports so config/engine use it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_quill.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("APP_ENV", "development")

import quill.models  # noqa: F401 - register tables
from quill.core.auth import hash_password
from quill.db.base import Base
from quill.db.session import async_session_maker, engine
from quill.main import app
from quill.models.user import User



@pytest_asyncio.fixture
async def clean_db():
    """Recreate all tables so each test starts from an empty database."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def client(clean_db):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def test_user(clean_db):
    """Create a user via DB (committed) and return it."""
    async with async_session_maker() as session:
        user = User(
            username="writer",
            email="test@test.com",
            full_name="Test Writer",
            avatar="avatars/writer/a.png",
            password_hash=hash_password("password123"),
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest.fixture
def upload_mock():
    """Patch avatar/cover storage so no S3 is needed."""
    from unittest.mock import AsyncMock, patch

    with patch("quill.api.v1.users.upload_image", new=AsyncMock(side_effect=lambda data, owner, category, ct: f"{category}/{owner}/img.png")) as m:
        yield m
