"""Test configuration and fixtures.

Points the app at an isolated SQLite database so tests never touch the
developer's data directory, and provides in-memory fakes for the websocket,
session resolver and directory collaborators used by the realtime unit tests.
"""

import os
from typing import Generator

# Set env flags BEFORE importing application modules
os.environ.setdefault("DEBUG", "1")
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///./test_db.sqlite")

import asyncio
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from database import Base, SessionLocal, engine
from main import app  # imports routers & models
from models.user import User
from models.session import UserSession
from security import get_password_hash, sign_session_id
from config import settings


@pytest.fixture(scope="session", autouse=True)
def create_test_db() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def db_session() -> Generator:  # type: ignore
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    # Context manager runs the lifespan: registry, broadcaster worker, gatekeeper
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_user(db_session):
    def _make(username: str, role: str = "user", password: str = "secret123") -> User:
        u = User(username=username, password=get_password_hash(password), role=role)
        db_session.add(u)
        db_session.commit()
        db_session.refresh(u)
        return u
    return _make


@pytest.fixture()
def session_cookie(db_session):
    """Create a live session for a user and return the Cookie header value."""
    from datetime import datetime, timedelta
    import secrets

    def _cookie(user: User, expires_in: timedelta = timedelta(hours=1)) -> str:
        sess = UserSession(sid=secrets.token_urlsafe(16), user_id=user.id, expires_at=datetime.utcnow() + expires_in)
        db_session.add(sess)
        db_session.commit()
        return f"{settings.SESSION_COOKIE_NAME}={sign_session_id(sess.sid)}"
    return _cookie


class FakeWebSocket:
    """Just enough of starlette's WebSocket for the gatekeeper and registry."""

    def __init__(self, cookies=None, fail_send=False):
        self.cookies = cookies or {}
        self.fail_send = fail_send
        self.application_state = WebSocketState.CONNECTING
        self.accepted = False
        self.close_code = None
        self.sent = []
        self._incoming = None

    def _queue(self) -> asyncio.Queue:
        if self._incoming is None:
            self._incoming = asyncio.Queue()
        return self._incoming

    async def accept(self):
        self.accepted = True
        self.application_state = WebSocketState.CONNECTED

    async def close(self, code=1000):
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    async def send_json(self, data):
        if self.fail_send:
            raise RuntimeError("socket write failed")
        self.sent.append(data)

    async def receive(self):
        return await self._queue().get()

    def feed_text(self, text: str):
        self._queue().put_nowait({"type": "websocket.receive", "text": text})

    def drop(self):
        self._queue().put_nowait({"type": "websocket.disconnect", "code": 1000})


class FakeResolver:
    def __init__(self, sessions=None, error=None):
        self.sessions = sessions or {}
        self.error = error

    async def resolve(self, credential):
        if self.error:
            raise self.error
        return self.sessions.get(credential)


class FakeDirectory:
    def __init__(self, roles=None, error=None):
        self.roles = roles or {}
        self.error = error
        self.calls = []

    async def members_of(self, role):
        self.calls.append(role)
        if self.error:
            raise self.error
        return set(self.roles.get(role, set()))


@pytest.fixture()
def fakes():
    class _Fakes:
        WebSocket = FakeWebSocket
        Resolver = FakeResolver
        Directory = FakeDirectory
    return _Fakes
