"""Shared test fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest  # noqa: E402
from fastapi import Depends, Request  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tally.config import settings  # noqa: E402
from tally.core.database import get_db  # noqa: E402
from tally.core.exceptions import AuthenticationError  # noqa: E402
from tally.core.security import get_current_user  # noqa: E402
from tally.main import app  # noqa: E402
from tally.models import Base, User  # noqa: E402


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
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
async def user(db):
    user = User(id="user-1", email="alice@example.com", first_name="Alice", last_name="Martin")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def other_user(db):
    user = User(id="user-2", email="bob@example.com", first_name="Bob")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path))
    return tmp_path


@pytest.fixture
def app_overrides(session_factory, upload_dir):
    """Point the app at the test database; "Bearer <user id>" authenticates."""

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _current_user(request: Request, db: AsyncSession = Depends(get_db)):
        header = request.headers.get("authorization", "")
        user_id = header.removeprefix("Bearer ").strip()
        user = await db.get(User, user_id) if user_id else None
        if user is None:
            raise AuthenticationError()
        return user

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = _current_user
    yield app.dependency_overrides
    app.dependency_overrides.clear()


def _client(headers: dict | None = None) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", headers=headers)


@pytest.fixture
async def client(app_overrides, user):
    """Async test client for the FastAPI app, authenticated as ``user``."""
    async with _client({"Authorization": f"Bearer {user.id}"}) as ac:
        yield ac


@pytest.fixture
async def other_client(app_overrides, other_user):
    async with _client({"Authorization": f"Bearer {other_user.id}"}) as ac:
        yield ac


@pytest.fixture
async def anon_client(app_overrides):
    async with _client() as ac:
        yield ac


@pytest.fixture
async def session_client(app_overrides):
    """Client going through the real session/bearer user resolution."""
    app_overrides.pop(get_current_user)
    async with _client() as ac:
        yield ac
