"""
Pytest configuration and fixtures for testing.
"""
import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("IDENTITY_BACKEND", "local")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import cms_admin.models  # noqa: F401
from cms_admin.core.clock import utcnow
from cms_admin.core.security import hash_password
from cms_admin.db.base import Base
from cms_admin.db.seeds.seed_permissions import sync_permissions
from cms_admin.db.seeds.seed_roles import seed_roles
from cms_admin.identity.local import LocalIdentityProvider
from cms_admin.main import create_app
from cms_admin.models.identity import LocalIdentity
from cms_admin.models.role import Role
from cms_admin.models.user import User, UserStatus
from cms_admin.schemas.schemas import Actor

from fakes import RecordingDelivery

# Test database URL - using in-memory SQLite for tests
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="function")
def session_factory():
    """Fresh in-memory database per test, shared by every session through StaticPool."""
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    sync_permissions(session)
    seed_roles(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def roles(db):
    return {role.name: role for role in db.query(Role).all()}


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def identity(session_factory, delivery):
    return LocalIdentityProvider(session_factory, delivery)


def create_account(db, email, role, name=None, password=PASSWORD, status=UserStatus.active):
    """Local identity account plus profile, bypassing the invitation flow."""
    account = LocalIdentity(
        email=email,
        hashed_password=hash_password(password),
        email_confirmed_at=utcnow(),
        user_metadata={"name": name or email},
    )
    db.add(account)
    db.flush()
    user = User(id=account.id, name=name or email.split("@")[0], email=email, role_id=role.id, status=status)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_actor(db):
    """Factory: ``make_actor("Editor", email=...)`` returns the persisted actor."""
    def _make(role_name, email=None, status=UserStatus.active, name=None):
        email = email or f"{role_name.lower().replace(' ', '-')}@example.com"
        role = db.query(Role).filter(Role.name == role_name).one()
        user = create_account(db, email, role, name=name, status=status)
        return Actor.model_validate(user)
    return _make


@pytest.fixture
def super_admin(make_actor):
    return make_actor("Super Admin", email="root@example.com", name="Root")


@pytest.fixture
def editor(make_actor):
    return make_actor("Editor", email="editor@example.com", name="Eddie")


@pytest.fixture
def app(identity, session_factory, delivery):
    return create_app(identity=identity, session_factory=session_factory, delivery=delivery)


@pytest.fixture
def client(app, db):
    with TestClient(app) as test_client:
        yield test_client


def login(client, email, password=PASSWORD):
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["access_token"]


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}
