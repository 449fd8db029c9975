"""
Pytest configuration: every test gets its own SQLite database file.
"""

import os
import tempfile

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest-only")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="social-media-"))
os.environ.setdefault("MEDIA_URL", "http://testserver/media")
os.environ.setdefault("GOOGLE_CLIENT_ID", "")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "")

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.auth import create_access_token
from app.database import create_tables
from app.repositories.user_repository import UserRepository
from app.services.friend_service import FriendService


def make_engine(path):
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


class FakeWebSocket:
    """Stands in for a Starlette WebSocket; records what the server sends."""

    def __init__(self, broken: bool = False):
        self.accepted = False
        self.close_code = None
        self.close_reason = None
        self.sent = []
        self.broken = broken

    async def accept(self):
        self.accepted = True

    async def close(self, code: int = 1000, reason: str = None):
        self.close_code = code
        self.close_reason = reason

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, event_type: str):
        return [frame["data"] for frame in self.sent if frame["type"] == event_type]


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = make_engine(tmp_path / "test.db")
    await create_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    counter = {"n": 0}

    async def _make_user(name: str = None, email: str = None, google_id: str = None):
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        email = email or f"user{counter['n']}@example.com"
        async with session_factory() as session:
            return await UserRepository(session).create(name=name, email=email, google_id=google_id)

    return _make_user


@pytest.fixture
def make_friends(session_factory):
    async def _make_friends(user_a, user_b):
        async with session_factory() as session:
            service = FriendService(session)
            request = await service.send_friend_request(user_a.id, user_b.id)
            await service.accept_friend_request(request.id, user_b.id)

    return _make_friends


def token_for(user) -> str:
    return create_access_token(user.id)


def run(coro):
    """Run a coroutine from a synchronous (TestClient) test."""
    return asyncio.run(coro)
