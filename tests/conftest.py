"""
Shared pytest fixtures for the Audit Portal review test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test app context + table recreate (autouse)
    - client: Flask test client (function-scoped)
    - profiles: Pre-created Profile rows, one per portal role
    - auth_headers: Bearer header factory backed by the JWT service
    - make_caller: Caller factory for service-level tests
"""

import pytest

from audit_portal import create_app
from audit_portal.models import db as _db
from audit_portal.models.profile import Profile
from audit_portal.services.item_registry import clear_item_fetchers
from audit_portal.services.jwt_service import generate_access_token
from audit_portal.services.permission import Caller

# user_id -> (name, email, role)
TEST_PROFILES = {
    "E1": ("Emma Employee", "emma@firm.test", "employee"),
    "E2": ("Eli Employee", "eli@firm.test", "employee"),
    "R1": ("Rita Reviewer", "rita@firm.test", "reviewer"),
    "R2": ("Rob Reviewer", "rob@firm.test", "reviewer"),
    "M1": ("Max Manager", "max@firm.test", "manager"),
    "P1": ("Pia Partner", "pia@firm.test", "partner"),
    "A1": ("Ada Admin", "ada@firm.test", "admin"),
    "C1": ("Cal Client", "cal@client.test", "client"),
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
        clear_item_fetchers()
        yield
        clear_item_fetchers()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def profiles():
    """Create one Profile per entry in TEST_PROFILES and return them by user id."""
    rows = {}
    for user_id, (name, email, role) in TEST_PROFILES.items():
        p = Profile(user_id=user_id, name=name, email=email, role=role)
        _db.session.add(p)
        rows[user_id] = p
    _db.session.commit()
    return rows


@pytest.fixture()
def auth_headers():
    """Return a factory: auth_headers("R1") → {"Authorization": "Bearer ..."}.

    The role defaults to the one in TEST_PROFILES; pass ``role=None``
    explicitly via ``include_role=False`` to mint a role-less token.
    """

    def _make(user_id, role=None, include_role=True, **extra_headers):
        if include_role and role is None:
            role = TEST_PROFILES.get(user_id, (None, None, "employee"))[2]
        token = generate_access_token(user_id, role=role if include_role else None)
        headers = {"Authorization": f"Bearer {token}"}
        headers.update(extra_headers)
        return headers

    return _make


@pytest.fixture()
def make_caller():
    """Return a factory: make_caller("R1") → Caller with the profile role."""

    def _make(user_id, role=None, **kwargs):
        if role is None:
            role = TEST_PROFILES.get(user_id, (None, None, "employee"))[2]
        kwargs.setdefault("ip_address", "10.0.0.1")
        kwargs.setdefault("user_agent", "pytest")
        return Caller(user_id=user_id, role=role, **kwargs)

    return _make
