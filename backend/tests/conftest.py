"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Settings are read at import time, so the test environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite:///./cryptvault-test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_FILE"] = ""
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from typing import AsyncGenerator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from main import app
from app import models  # noqa: F401
from app.core.database import Base, configure_sqlite_engine, get_db
from app.models.user import User
from factories import create_test_user, login_headers


@pytest.fixture(scope="function")
def database_file(tmp_path) -> str:
    """A fresh SQLite file with the full schema for each test."""
    path = tmp_path / "cryptvault.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return str(path)


@pytest.fixture(scope="function")
def session_factory(database_file: str) -> async_sessionmaker:
    """Session factory bound to the test database.

    NullPool keeps connections from outliving the event loop that opened
    them, so the same factory serves the TestClient and async tests.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{database_file}", poolclass=NullPool)
    configure_sqlite_engine(engine)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def client(session_factory: async_sessionmaker) -> TestClient:
    """Create a test client."""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client: TestClient) -> dict:
    """Register and log in the default test user."""
    return login_headers(client, "testuser", "testpassword123", email="test@example.com")


@pytest.fixture
def other_headers(client: TestClient) -> dict:
    """A second user who owns nothing of the first user's."""
    return login_headers(client, "otheruser", "otherpassword123", email="other@example.com")


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user directly in the database."""
    return await create_test_user(db_session)
