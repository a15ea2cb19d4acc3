"""Shared test fixtures.

Sets environment variables BEFORE any app imports so that
``tarely.config.settings``, the Fernet key in ``tarely.models.calendar`` and
the object store root resolve without a real .env file, PostgreSQL or SMTP.
"""

import os
import tempfile
import uuid
from types import SimpleNamespace
from unittest.mock import patch

from cryptography.fernet import Fernet

# --- Environment setup (must happen before app imports) -------------------
_test_key = Fernet.generate_key().decode()

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("GOOGLE_REDIRECT_URI", "http://localhost:8000/google-calendar/callback")
os.environ.setdefault("ENCRYPTION_KEY", _test_key)
os.environ.setdefault("AUTH_JWT_SECRET", "test-auth-secret")
os.environ.setdefault("STORAGE_SIGNING_SECRET", "test-storage-secret")
os.environ.setdefault("STORAGE_ROOT", tempfile.mkdtemp(prefix="tarely-storage-"))
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")

# --- Now it's safe to import app modules ---------------------------------
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient

from tarely.models import calendar, note, section, tag, task  # noqa: F401  register tables
from tarely.database import Base, get_db
from tarely.main import app
from tarely.models.profile import Profile
from tarely.models.workspace import WorkspaceMember
from tarely.services import workspace_service
from tarely.services.auth_provider import auth_provider


# In-memory SQLite engine shared across the test session
_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(_engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    # Let SQLAlchemy drive BEGIN/SAVEPOINT itself so nested transactions work.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


_TestingSession = sessionmaker(autocommit=False, autoflush=False)


@pytest.fixture(scope="session", autouse=True)
def _create_tables():
    """Create all tables once, drop them when the session ends."""
    Base.metadata.create_all(bind=_engine)
    yield
    Base.metadata.drop_all(bind=_engine)


@pytest.fixture()
def db_session():
    """Yield a DB session whose commits are savepoints rolled back after each test."""
    connection = _engine.connect()
    transaction = connection.begin()
    session = _TestingSession(bind=connection, join_transaction_mode="create_savepoint")
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(autouse=True)
def email_jobs():
    """Stop every enqueue from reaching the broker; expose the mocks for assertions."""
    with (
        patch("tarely.api.deps.send_welcome_email") as welcome,
        patch("tarely.services.workspace_service.send_invitation_email") as invitation,
        patch("tarely.services.profile_service.send_account_deleted_email") as account_deleted,
    ):
        yield SimpleNamespace(
            welcome=welcome, invitation=invitation, account_deleted=account_deleted
        )


@pytest.fixture()
def client(db_session):
    """FastAPI TestClient with ``get_db`` overridden to use the test session."""

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def auth_headers(profile: Profile) -> dict[str, str]:
    token = auth_provider.issue_token(profile.id, profile.email, profile.name)
    return {"Authorization": f"Bearer {token}"}


def make_profile(db_session, name: str = "Test User", *, is_admin: bool = False) -> Profile:
    profile = Profile(
        id=str(uuid.uuid4()),
        email=f"{name.lower().replace(' ', '.')}-{uuid.uuid4().hex[:8]}@example.com",
        name=name,
        is_admin=is_admin,
    )
    db_session.add(profile)
    db_session.commit()
    return profile


def make_workspace(db_session, owner: Profile, name: str = "Proyecto"):
    return workspace_service.create_workspace(db_session, owner.id, {"name": name})


def add_member(db_session, workspace, profile: Profile, status: str = "accepted") -> WorkspaceMember:
    member = WorkspaceMember(
        workspace_id=workspace.id,
        user_id=profile.id,
        invited_by=workspace.owner_id,
        role="member",
        status=status,
    )
    db_session.add(member)
    db_session.commit()
    return member


@pytest.fixture()
def owner(db_session) -> Profile:
    return make_profile(db_session, "Owner")


@pytest.fixture()
def workspace(db_session, owner):
    return make_workspace(db_session, owner)


@pytest.fixture()
def headers(owner) -> dict[str, str]:
    return auth_headers(owner)
