"""
Shared pytest fixtures for the Resource Capacity Planner test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - rbac: Default permissions and roles (user, manager, admin)
    - make_resource / make_project / make_allocation / make_time_entry: ORM factories
    - make_user / auth_headers: Login identities and Bearer headers
    - auth_enabled: Turns the API_AUTH_ENABLED gate on for one test
"""

from datetime import date, timedelta

import pytest

from app import create_app
from app.models import db as _db
from app.models.auth import User
from app.models.project import Project, ResourceAllocation
from app.models.resource import Resource
from app.models.time_entry import TimeEntry
from app.services.jwt_service import generate_access_token
from app.services.periods import monday_of
from app.services.permission_service import invalidate_all_cache
from app.services.rbac_service import assign_role, seed_defaults
from app.utils.crypto import hash_password

TEST_PASSWORD = "Secret123!"


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
        # Tables are recreated per test and ids are reused; clear the
        # permission cache so decisions never leak between tests.
        invalidate_all_cache()
        yield
        invalidate_all_cache()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def auth_enabled(app):
    """Require a JWT on every protected route for the duration of one test."""
    previous = app.config.get("API_AUTH_ENABLED")
    app.config["API_AUTH_ENABLED"] = "true"
    yield
    app.config["API_AUTH_ENABLED"] = previous


# ── Dates ────────────────────────────────────────────────────────────────


@pytest.fixture()
def this_monday():
    return monday_of(date.today())


@pytest.fixture()
def last_monday(this_monday):
    return this_monday - timedelta(days=7)


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_resource():
    counter = {"n": 0}

    def _make(name=None, department="Engineering", weekly_capacity=40.0, **kwargs):
        counter["n"] += 1
        resource = Resource(
            name=name or f"Resource {counter['n']}",
            email=kwargs.pop("email", f"resource{counter['n']}@example.com"),
            role=kwargs.pop("role", "Developer"),
            department=department,
            weekly_capacity=weekly_capacity,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        _db.session.add(resource)
        _db.session.commit()
        return resource

    return _make


@pytest.fixture()
def make_project():
    counter = {"n": 0}

    def _make(name=None, status="active", start_date=None, end_date=None, **kwargs):
        counter["n"] += 1
        today = date.today()
        project = Project(
            name=name or f"Project {counter['n']}",
            status=status,
            type=kwargs.pop("type", "business"),
            priority=kwargs.pop("priority", "medium"),
            start_date=start_date if start_date is not None else today - timedelta(days=60),
            end_date=end_date if end_date is not None else today + timedelta(days=60),
            **kwargs,
        )
        _db.session.add(project)
        _db.session.commit()
        return project

    return _make


@pytest.fixture()
def make_allocation():
    def _make(resource, project, allocated_hours=16.0, weekly_allocations=None, **kwargs):
        alloc = ResourceAllocation(
            resource_id=resource.id,
            project_id=project.id,
            allocated_hours=allocated_hours,
            weekly_allocations=weekly_allocations or {},
            start_date=kwargs.pop("start_date", project.start_date),
            end_date=kwargs.pop("end_date", project.end_date),
            status=kwargs.pop("status", "active"),
            role=kwargs.pop("role", None),
        )
        _db.session.add(alloc)
        _db.session.commit()
        return alloc

    return _make


@pytest.fixture()
def make_time_entry():
    def _make(allocation, week_start, hours_per_day=8.0, days=5):
        entry = TimeEntry(
            resource_id=allocation.resource_id,
            allocation_id=allocation.id,
            week_start_date=week_start,
        )
        for i, field in enumerate(
            ("monday_hours", "tuesday_hours", "wednesday_hours", "thursday_hours",
             "friday_hours", "saturday_hours", "sunday_hours")
        ):
            setattr(entry, field, hours_per_day if i < days else 0.0)
        _db.session.add(entry)
        _db.session.commit()
        return entry

    return _make


# ── RBAC & auth fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def rbac():
    """Seed default permissions and the user / manager / admin roles."""
    return seed_defaults()


@pytest.fixture()
def make_user(rbac):
    counter = {"n": 0}

    def _make(role=None, email=None, password=TEST_PASSWORD, is_active=True):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password),
            first_name="Test",
            last_name=f"User{counter['n']}",
            is_active=is_active,
        )
        _db.session.add(user)
        _db.session.commit()
        if role:
            assign_role(user.id, role)
        return user

    return _make


@pytest.fixture()
def auth_headers():
    """Bearer header for a user (roles claim is informational only)."""
    def _headers(user):
        token = generate_access_token(user.id, user.role_names)
        return {"Authorization": f"Bearer {token}"}

    return _headers
