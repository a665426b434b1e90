"""
Shared pytest fixtures for the Client Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - tenant graph: owner_co, client_co, sub_co, other_client_co, partner_co
    - one user per role family, plus auth_headers(user)
"""

import pytest

from portal import create_app
from portal.models import db as _db
from portal.models.auth import User
from portal.models.company import Company
from portal.services.jwt_service import generate_session_token
from portal.utils.crypto import hash_password

DEFAULT_PASSWORD = "Secret123!"


def _make_company(name: str, type_: str, parent: Company | None = None, domain: str | None = None) -> Company:
    company = Company(
        name=name,
        type=type_,
        parent_id=parent.id if parent else None,
        domain=domain,
    )
    _db.session.add(company)
    _db.session.commit()
    return company


def _make_user(
    company: Company,
    role: str,
    email: str,
    *,
    password: str = DEFAULT_PASSWORD,
    is_active: bool = True,
) -> User:
    first, _, last = email.split("@", 1)[0].partition(".")
    user = User(
        company_id=company.id,
        email=email,
        password_hash=hash_password(password),
        first_name=first.title() or "Test",
        last_name=last.title() or "User",
        role=role,
        is_active=is_active,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


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


@pytest.fixture()
def auth_headers():
    """Return a function that builds Bearer headers for a user."""
    def _headers(user: User) -> dict:
        return {
            "Authorization": f"Bearer {generate_session_token(user.id)}",
            "Content-Type": "application/json",
        }
    return _headers


# ── Tenant graph ─────────────────────────────────────────────────────────


@pytest.fixture()
def owner_co():
    return _make_company("Northwind Agency", "owner", domain="northwind.com")


@pytest.fixture()
def client_co(owner_co):
    return _make_company("Acme Retail", "client", parent=owner_co, domain="acme.com")


@pytest.fixture()
def sub_co(client_co):
    return _make_company("Acme Outlet", "sub", parent=client_co, domain="acme-outlet.com")


@pytest.fixture()
def other_client_co(owner_co):
    return _make_company("Globex Foods", "client", parent=owner_co, domain="globex.com")


@pytest.fixture()
def partner_co(owner_co):
    return _make_company("Initech Media", "partner", parent=owner_co, domain="initech.com")


# ── Users ────────────────────────────────────────────────────────────────


@pytest.fixture()
def owner_user(owner_co):
    return _make_user(owner_co, "owner", "olivia.owner@northwind.com")


@pytest.fixture()
def admin_user(owner_co):
    return _make_user(owner_co, "admin", "adam.admin@northwind.com")


@pytest.fixture()
def staff_user(owner_co):
    return _make_user(owner_co, "client_services", "sam.staff@northwind.com")


@pytest.fixture()
def client_user(client_co):
    return _make_user(client_co, "client_editor", "cora.client@acme.com")


@pytest.fixture()
def client_viewer_user(client_co):
    return _make_user(client_co, "client_viewer", "vic.viewer@acme.com")


@pytest.fixture()
def other_client_user(other_client_co):
    return _make_user(other_client_co, "client_editor", "gail.globex@globex.com")


@pytest.fixture()
def partner_user(partner_co):
    return _make_user(partner_co, "partner", "pat.partner@initech.com")


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_company():
    """Factory: make_company(name, type_, parent=None, domain=None)."""
    return _make_company


@pytest.fixture()
def make_user():
    """Factory: make_user(company, role, email, password=..., is_active=True)."""
    return _make_user
