"""Test fixtures: a fresh in-memory SQLite database per test.

StaticPool keeps a single connection so every session (including the ones
FastAPI opens per request in its threadpool) sees the same in-memory database.
"""

import os
import uuid

# Keep bcrypt fast in tests; must be set before the app reads its settings.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ENV", "dev")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.auth import PasswordHasher, TokenService
from src.api.database import get_db
from src.api.main import app
from src.api.models import Base


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture()
def tokens():
    return TokenService(secret_key="test-secret")


@pytest.fixture()
def client(session_factory):
    """HTTP client with get_db pointed at the per-test database."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_account():
    """Factory for unique registration payloads."""

    def _make(prefix: str = "user") -> dict:
        suffix = uuid.uuid4().hex[:8]
        return {
            "username": f"{prefix}_{suffix}",
            "email": f"{prefix}-{suffix}@example.com",
            "password": "password_123",
        }

    return _make


@pytest.fixture()
def signup(client, make_account):
    """Register a fresh account; returns (account payload, Authorization headers)."""

    def _signup(prefix: str = "user"):
        account = make_account(prefix)
        r = client.post("/auth/register", json=account)
        assert r.status_code == 201, r.text
        return account, {"Authorization": f"Bearer {r.json()['token']}"}

    return _signup
