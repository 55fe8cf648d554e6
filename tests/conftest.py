"""
Shared pytest fixtures for the wizard test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - user / auth_headers: a registered account and its Bearer header
    - project / workflow: a project owned by ``user``, with and without a started wizard
"""

import os

# Keep password hashing cheap; must be set before any hash is computed.
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest

from app import create_app
from app.models import db as _db
from app.models.auth import User
from app.services import project_service, workflow_service
from app.services.jwt_service import generate_access_token
from app.utils.crypto import hash_password

DEFAULT_PASSWORD = "Pass1234!"


def make_user(email: str, full_name: str | None = None) -> User:
    user = User(
        email=email,
        password_hash=hash_password(DEFAULT_PASSWORD),
        full_name=full_name or email,
        status="active",
    )
    _db.session.add(user)
    _db.session.commit()
    return user


def jwt_headers(user_id: int) -> dict:
    """Bearer header for ``user_id``; call inside an app context."""
    return {
        "Authorization": f"Bearer {generate_access_token(user_id)}",
        "Content-Type": "application/json",
    }


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def user():
    return make_user("owner@ideaspec.io", "Olive Owner")


@pytest.fixture()
def other_user():
    return make_user("intruder@ideaspec.io")


@pytest.fixture()
def auth_headers(user):
    return jwt_headers(user.id)


@pytest.fixture()
def project(user):
    """A project owned by ``user`` with no workflow yet."""
    p = project_service.create_project(
        owner_id=user.id, data={"name": "Habit tracker", "description": "Daily habits"},
    )
    _db.session.commit()
    return p


@pytest.fixture()
def workflow(project):
    """``project`` with its wizard started (default data flows seeded)."""
    wf = workflow_service.create_workflow(project)
    _db.session.commit()
    return wf
