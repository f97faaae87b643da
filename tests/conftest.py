"""
Shared fixtures: an isolated in-memory SQLite store per test, a session on
it, and a TestClient whose requests use the same store.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ.setdefault("SECRET_KEY", "hydrolog-test-secret-key-0123456789abcdef")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from hydrolog.config.database import Base, get_db
from hydrolog.models.user import User
from hydrolog.utils.security import get_password_hash

PASSWORD = "hydro-pass-123"


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    """Factory for bare users (no systems) inserted straight into the store."""
    def _make_user(email="grower@hydrolog.dev", name="Grower", is_admin=False):
        user = User(email=email, name=name, hashed_password=get_password_hash(PASSWORD), is_admin=is_admin)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def signup(client, email="grower@hydrolog.dev", **extra):
    response = client.post("/api/auth/signup", json={"email": email, "password": PASSWORD, **extra})
    assert response.status_code == 200, response.text
    return response.json()["user"]


@pytest.fixture
def auth_client(client):
    """Client logged in as a freshly signed-up user (one active default system)."""
    client.user = signup(client)
    return client
