"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database (one shared connection) and
never touch Redis: the client getter is patched to report Redis as
unavailable unless a test installs its own fake.
"""
import os
import sys

# Settings are read at import time; configure before importing app modules.
os.environ["SECRET_KEY"] = "test-secret-key-for-pytest-only-0123456789"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FORMAT"] = "text"
os.environ["ENVIRONMENT"] = "test"

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import pytest
from unittest.mock import MagicMock, patch

from core.database import Base, engine, get_db, init_db, SessionLocal
from fixtures.log_store_fixtures import USER_ID, InMemoryLogStore


@pytest.fixture(scope="session", autouse=True)
def _create_schema():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _no_redis():
    """Redis is unavailable by default; cache helpers degrade to misses."""
    with patch("core.cache.get_redis_client", return_value=None):
        yield


@pytest.fixture
def fake_redis():
    """
    Dict-backed stand-in for the Redis client, installed for the test.

    Only the calls core.cache makes are supported: mget, delete and a
    pipeline of setex calls.
    """
    data = {}
    client = MagicMock()
    client.mget.side_effect = lambda keys: [data.get(key) for key in keys]
    pipe = client.pipeline.return_value
    pipe.setex.side_effect = lambda key, ttl, value: data.__setitem__(key, value)
    client.delete.side_effect = lambda key: data.pop(key, None)
    client.store = data

    with patch("core.cache.get_redis_client", return_value=client):
        yield client


@pytest.fixture
def store():
    """Empty in-memory LogStore."""
    return InMemoryLogStore()


@pytest.fixture(scope="function")
def db_session():
    """
    Database session for one test.

    Rows are deleted afterwards, so nothing leaks between tests even when
    application code commits.
    """
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def client(db_session):
    """TestClient whose requests share `db_session`."""
    from fastapi.testclient import TestClient
    from main import app

    def _override():
        yield db_session

    app.dependency_overrides[get_db] = _override
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def auth_headers():
    from core.security import create_access_token

    token = create_access_token(USER_ID)
    return {"Authorization": f"Bearer {token}"}
