"""
Pytest configuration and fixtures for Roster tests.

The suite runs against a throwaway SQLite database. Environment variables are
set before anything from ``roster`` is imported because settings are read at
import time.
"""

import os
import tempfile

_TEST_DB_DIR = tempfile.mkdtemp(prefix="roster-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'roster.db')}"
os.environ["SKIP_DB_INIT"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from roster.core.security import User, create_access_token, create_user, init_auth_tables  # noqa: E402
from roster.db.models import create_tables  # noqa: E402
from roster.db.session import Base, get_engine, get_session_local  # noqa: E402
from roster.domain.records.store import RecordStore  # noqa: E402


@pytest.fixture(scope="session")
def engine():
    """Create every table once per test session."""
    engine = get_engine()
    init_auth_tables()
    create_tables(engine)
    return engine


@pytest.fixture
def clean_db(engine):
    """Empty all tables before the test runs."""
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    yield engine


@pytest.fixture
def session_factory(clean_db):
    return get_session_local()


@pytest.fixture
def store(session_factory):
    return RecordStore(session_factory)


@pytest.fixture
def client(clean_db):
    from roster.main import app

    with TestClient(app) as test_client:
        yield test_client


def _make_user(session_factory, username, role):
    with session_factory() as db:
        return create_user(db=db, username=username, password="password123", role=role)


def _auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.username})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(session_factory):
    return _make_user(session_factory, "instructor", "user")


@pytest.fixture
def other_user(session_factory):
    return _make_user(session_factory, "other-instructor", "user")


@pytest.fixture
def admin_user(session_factory):
    return _make_user(session_factory, "registrar", "admin")


@pytest.fixture
def auth_headers(user):
    return _auth_headers(user)


@pytest.fixture
def other_auth_headers(other_user):
    return _auth_headers(other_user)


@pytest.fixture
def admin_headers(admin_user):
    return _auth_headers(admin_user)
