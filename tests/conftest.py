"""
Shared pytest fixtures for the College Administration Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - department / student: Pre-created directory entities
    - auth_headers: factory for Bearer headers per role
"""

import pytest

from college_admin import create_app
from college_admin.models import db as _db
from college_admin.models.student import Department, Student
from college_admin.services.jwt_service import generate_access_token

# User ids of the reviewers in the default fixtures
ADMIN_USER_ID = 1
ADVISOR_USER_ID = 2
HOD_USER_ID = 3
OFFICE_USER_ID = 4
PRINCIPAL_USER_ID = 5
STUDENT_USER_ID = 100

ROLE_USER_IDS = {
    "admin": ADMIN_USER_ID,
    "advisor": ADVISOR_USER_ID,
    "hod": HOD_USER_ID,
    "office": OFFICE_USER_ID,
    "principal": PRINCIPAL_USER_ID,
    "student": STUDENT_USER_ID,
}


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


# ── Directory fixtures ───────────────────────────────────────────────────


@pytest.fixture()
def department():
    dept = Department(name="Computer Science and Engineering", code="CSE", hod_id=HOD_USER_ID)
    _db.session.add(dept)
    _db.session.commit()
    return dept


@pytest.fixture()
def student(department):
    s = Student(
        name="Anjali Menon",
        admission_number="CSE2023001",
        department_id=department.id,
        advisor_id=ADVISOR_USER_ID,
        program="B.Tech",
        current_semester=5,
    )
    _db.session.add(s)
    _db.session.commit()
    return s


@pytest.fixture()
def make_student(department):
    """Factory for extra students: make_student("Rahul Nair", "CSE2023002", ...)."""
    def _make(name, admission_number, **kwargs):
        kwargs.setdefault("department_id", department.id)
        kwargs.setdefault("advisor_id", ADVISOR_USER_ID)
        kwargs.setdefault("current_semester", 5)
        s = Student(name=name, admission_number=admission_number, **kwargs)
        _db.session.add(s)
        _db.session.commit()
        return s
    return _make


# ── Auth fixtures ────────────────────────────────────────────────────────


@pytest.fixture()
def auth_headers():
    """
    Bearer headers for a role.

        auth_headers("advisor")
        auth_headers("student", student_id=7)
        auth_headers("hod", user_id=99)
    """
    def _headers(role, *, user_id=None, student_id=None):
        if user_id is None:
            user_id = ROLE_USER_IDS.get(role, 999)
        token = generate_access_token(user_id, [role], student_id=student_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers
