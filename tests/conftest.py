"""
Shared pytest fixtures for the IdeaHub Review Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user: factory creating a committed User, optionally with roles
    - author / collaborator / sme / board / dd / admin: ready-made users
    - idea_payload: factory for a complete, submittable idea body
"""

from datetime import date, timedelta

import pytest

from ideahub import create_app
from ideahub.models import db as _db
from ideahub.models.auth import User
from ideahub.services.role_catalogue import assign_role, seed_roles
from ideahub.services.role_directory import Roles


def _long_text(label, length=150):
    return (f"{label} " * length)[:length]


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
    """Per-test: open app context, seed roles, rollback and recreate tables after."""
    with app.app_context():
        seed_roles()
        _db.session.commit()
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
def make_user():
    """Factory: ``make_user("ada", Roles.SME)`` → committed User."""
    counter = {"n": 0}

    def _make(name, *roles):
        counter["n"] += 1
        user = User(email=f"{name}.{counter['n']}@acme.org", full_name=name.title())
        _db.session.add(user)
        _db.session.flush()
        for role in roles:
            assign_role(user.id, role)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def author(make_user):
    return make_user("author")


@pytest.fixture()
def collaborator(make_user):
    return make_user("collaborator")


@pytest.fixture()
def sme(make_user):
    return make_user("sme", Roles.SME)


@pytest.fixture()
def board(make_user):
    return make_user("board", Roles.BOARD)


@pytest.fixture()
def dd(make_user):
    return make_user("deputy", Roles.DEPUTY_DIRECTOR)


@pytest.fixture()
def admin(make_user):
    return make_user("admin", Roles.ADMIN)


@pytest.fixture()
def idea_payload():
    """Factory for an idea body that passes every submit-time content rule."""

    def _payload(**overrides):
        data = {
            "title": "Solar-powered bus shelters",
            "abstract": _long_text("abstract"),
            "problem_statement": _long_text("problem"),
            "proposed_solution": _long_text("solution"),
            "cost_benefit_analysis": _long_text("cost"),
            "declaration_of_interests": _long_text("interests"),
            "original_idea_disclaimer": True,
            "collaboration_enabled": True,
            "collaboration_deadline": (date.today() + timedelta(days=30)).isoformat(),
        }
        data.update(overrides)
        return data

    return _payload
