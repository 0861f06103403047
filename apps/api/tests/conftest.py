from __future__ import annotations

import os
import tempfile
from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

# Ensure auth mode + storage are set before app import
_DB_DIR = tempfile.mkdtemp(prefix="checkin-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_DB_DIR}/checkin.db")
os.environ.setdefault("AUTH_MODE", "jwt")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret_32_chars_minimum")
os.environ.setdefault("ACCESS_TOKEN_TTL_SECONDS", "900")
os.environ.setdefault("ENV", "local")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")
os.environ.setdefault("QR_MAX_AGE_HOURS", "24")

from app.auth.jwt import create_access_token  # noqa: E402
from app.db import SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Event, User  # noqa: E402
from app.models.base import Base  # noqa: E402
from app.models.user import UserRole  # noqa: E402


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db():
    # Ensure a clean slate for each test
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def make_user(db_session) -> Callable[..., User]:
    def _make(email: str, role: UserRole = UserRole.STUDENT, name: str | None = None) -> User:
        user = User(email=email, name=name or email.split("@")[0], role=role)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_event(db_session) -> Callable[..., Event]:
    def _make(organizer: User, title: str = "Hack Night", rsvp_count: int = 0) -> Event:
        event = Event(title=title, organizer_id=organizer.id, location="Main Hall", rsvp_count=rsvp_count)
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for() -> Callable[[User], dict[str, str]]:
    return auth_headers
