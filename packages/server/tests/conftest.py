"""
Shared fixtures for server tests.

Tests run against a throwaway SQLite file through aiosqlite. The environment
is set before ``dpt_server`` is imported because the engine is built at
import time.
"""

import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="dpt-tests-")
os.environ.setdefault("DPT_DATABASE_URL", f"sqlite+aiosqlite:///{_db_dir}/tracker.db")
os.environ.setdefault("DPT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("DPT_CROSS_PROJECT_SECRET", "cross-project-test-secret-of-sufficient-length")
os.environ.setdefault("DPT_JSON_LOGS", "false")
os.environ.setdefault("DPT_DEBUG", "true")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel

import dpt_server.models  # noqa: F401
from dpt_server.core.auth import create_jwt, hash_password
from dpt_server.core.database import async_session_factory, engine
from dpt_server.models.user import User
from dpt_server.services.notifications import NotificationDispatcher
from dpt_server.services.settings_store import UserSettingsStore
from dpt_shared.schemas.common import Role, UserStatus


class FakeStorage:
    """Records deletions; optionally fails."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.deleted: list[list[str]] = []

    async def delete(self, paths: list[str]) -> None:
        if self.fail:
            raise RuntimeError("storage unavailable")
        self.deleted.append(list(paths))


class FakeNotifier:
    """Stands in for the collaborating dashboard's endpoint."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def notify(self, payload) -> bool:
        if self.fail:
            raise RuntimeError("collaborator unreachable")
        self.sent.append(payload)
        return True


@pytest.fixture(autouse=True)
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def session(db):
    async with async_session_factory() as s:
        yield s


async def _add_user(session, name: str, role: Role, status: UserStatus = UserStatus.ACTIVE, password=None) -> User:
    user = User(
        email=f"{name.lower()}@example.com",
        name=name,
        role=role.value,
        status=status.value,
        password_hash=hash_password(password) if password else None,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def users(session):
    """One active user per role plus an inactive producer."""
    return {
        "director": await _add_user(session, "Diana", Role.DIRECTOR, password="director-pass"),
        "producer": await _add_user(session, "Pablo", Role.PRODUCER),
        "designer": await _add_user(session, "Dora", Role.DESIGNER),
        "advisor": await _add_user(session, "Ana", Role.ADVISOR),
        "external": await _add_user(session, "Externo", Role.ADVISOR),
        "inactive": await _add_user(session, "Ivan", Role.PRODUCER, status=UserStatus.INACTIVE),
    }


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def dispatcher(session, notifier):
    return NotificationDispatcher(session, UserSettingsStore(session), notifier)


@pytest.fixture
async def client(db, storage, notifier):
    from dpt_server.main import app
    from dpt_server.services.cross_project import get_notifier
    from dpt_server.services.storage import get_storage

    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_jwt(user.id, user.role)}"}


@pytest.fixture
def headers(users):
    return {key: auth_headers(user) for key, user in users.items()}
