"""
Pytest configuration and fixtures for Nuber Eats API tests.

Provides:
- Test environment variables (set before the app is imported)
- Async SQLite in-memory database setup
- FastAPI app with dependency overrides
- AsyncClient for testing async endpoints
- Helpers for creating users and tokens
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret-do-not-use")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import models  # noqa: E402,F401
from auth.passwords import CredentialHasher  # noqa: E402
from database import Base, get_db  # noqa: E402
from main import app  # noqa: E402
from models import User, UserRole  # noqa: E402
from services.user_directory import UserDirectory  # noqa: E402


@pytest_asyncio.fixture
async def session_factory():
    """
    Fresh in-memory database per test.

    Yields a session factory bound to it; tables are created up front
    and the engine is disposed afterwards.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        future=True,
    )

    async_session = sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        future=True,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_session

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    """A session for arranging and inspecting test data directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def directory(db):
    """A UserDirectory wired to the test database and the app's token service."""
    return UserDirectory(db, app.state.tokens, app.state.hasher)


@pytest_asyncio.fixture
async def async_client(session_factory):
    """
    Create an AsyncClient pointing to the FastAPI app with the test
    database. Every request gets its own session, as in production.

    Yields:
        httpx.AsyncClient: Async HTTP client for making requests to the app.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(session_factory):
    """
    Factory inserting a user directly and returning ``(user, token)``.

    The token is signed by the app's own token service.
    """
    hasher = CredentialHasher(rounds=4)

    async def _make_user(
        email: str = "user@test.com",
        password: str = "secret1",
        role: UserRole = UserRole.CLIENT,
        verified: bool = False,
    ):
        async with session_factory() as session:
            user = User(
                email=email,
                password=await hasher.hash(password),
                role=role,
                verified=verified,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user, app.state.tokens.sign({"id": user.id})

    return _make_user
