# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient

from taskboard.config import Settings
from taskboard.main import create_app
from taskboard.models import User
from taskboard.utils.security import hash_password

from .fakes import RecordingOutbox

PASSWORD = "secret123"


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings for an isolated app: a throwaway SQLite file, cheap bcrypt and
    no background scheduler. The .env file is ignored on purpose.
    """
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'taskboard.db'}",
        SECRET_KEY="test-secret",
        BCRYPT_ROUNDS=4,
        SCHEDULER_ENABLED=False,
        EMAIL_ENABLED=False,
        REMINDER_THRESHOLDS="48,24,1",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture()
def outbox() -> RecordingOutbox:
    return RecordingOutbox()


@pytest.fixture()
def app(settings: Settings, outbox: RecordingOutbox):
    return create_app(settings, outbox=outbox)


@pytest.fixture()
def services(app):
    return app.state.services


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture()
def make_user(db) -> Callable[..., User]:
    """Insert a user directly; verified and able to log in unless told otherwise"""

    def _make(username: str, role: str = "user", password: str = PASSWORD, **fields) -> User:
        values = dict(
            username=username,
            email=f"{username}@example.com",
            hashed_password=hash_password(password, 4),
            role=role,
            email_verified=True,
        )
        values.update(fields)
        user = User(**values)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def login(client) -> Callable[..., Dict[str, str]]:
    """Log in over HTTP and return the Authorization header"""

    def _login(username: str, password: str = PASSWORD) -> Dict[str, str]:
        response = client.post("/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.json()
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login


@pytest.fixture()
def admin(make_user) -> User:
    return make_user("admin", role="admin")


@pytest.fixture()
def manager(make_user) -> User:
    return make_user("manager", role="manager")


@pytest.fixture()
def alice(make_user) -> User:
    return make_user("alice")


@pytest.fixture()
def bob(make_user) -> User:
    return make_user("bob")
