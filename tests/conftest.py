"""
Pytest configuration and shared fixtures for tests
"""

from contextlib import contextmanager
from datetime import datetime

import pytest
from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.pool import StaticPool

from residence import db_models  # noqa: F401  registers tables
from residence.exceptions import IdentityError, SessionVerificationError
from residence.models import Role, VerifiedSession
from residence.repositories import ServiceRequestRepository, UserRepository
from residence.services.request_store import RequestStore

ADMIN = VerifiedSession(uid="admin-1", email="warden@campus.ac.za", role=Role.ADMIN)
STUDENT = VerifiedSession(uid="student-1", email="thandi@campus.ac.za", role=Role.STUDENT)
OTHER_STUDENT = VerifiedSession(uid="student-2", email="sipho@campus.ac.za", role=Role.STUDENT)
# Claims admin at the identity service but has no local profile
STAFF = VerifiedSession(uid="staff-1", email="staff@campus.ac.za", role=Role.ADMIN)


@pytest.fixture(name="db_engine")
def db_engine_fixture():
    """Create in-memory SQLite database engine for testing"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # Keep single connection for in-memory DB
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(name="db_session")
def db_session_fixture(db_engine):
    """Create database session for testing"""
    with Session(db_engine) as session:
        yield session
        session.rollback()  # Rollback any uncommitted changes after test


@pytest.fixture(name="session_factory")
def session_factory_fixture(db_engine):
    """Same contract as residence.database.get_session, bound to the test engine"""

    @contextmanager
    def factory():
        session = Session(db_engine)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return factory


@pytest.fixture(name="store")
def store_fixture(session_factory):
    return RequestStore(session_factory)


@pytest.fixture(name="make_request")
def make_request_fixture(session_factory):
    """Insert a request row directly, bypassing the lifecycle"""

    def make(
        request_id="r1",
        category="maintenance",
        user_id=STUDENT.uid,
        status="pending",
        created_at=None,
        user_name="Thandi Mokoena",
        title="Leaking tap",
        details="",
    ):
        with session_factory() as session:
            record = ServiceRequestRepository(session).create_request(
                category=category,
                user_id=user_id,
                title=title,
                user_name=user_name,
                room_number="B12",
                description="Kitchen tap drips all night",
                priority="high",
                details=details,
                status=status,
                created_at=created_at or datetime(2025, 3, 14, 10, 30),
                request_id=request_id,
            )
            return record.id

    return make


class FakeIdentity:
    """In-memory stand-in for the identity service"""

    def __init__(self):
        self.sessions = {
            "admin-cookie": ADMIN,
            "student-cookie": STUDENT,
            "other-cookie": OTHER_STUDENT,
            "staff-cookie": STAFF,
        }
        self.accounts = {"thandi@campus.ac.za": ("secret123", STUDENT.uid)}
        self.verify_calls = []

    async def verify_session_cookie(self, session_cookie):
        self.verify_calls.append(session_cookie)
        if session_cookie not in self.sessions:
            raise SessionVerificationError("revoked", "session cookie has been revoked")
        return self.sessions[session_cookie]

    async def sign_in(self, email, password):
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise IdentityError("INVALID_PASSWORD", "Invalid email or password")
        return {"uid": account[1], "id_token": f"token-{account[1]}", "email": email}

    async def sign_up(self, email, password):
        if email in self.accounts:
            raise IdentityError("EMAIL_EXISTS", "Email already registered")
        uid = f"uid-{len(self.accounts) + 1}"
        self.accounts[email] = (password, uid)
        return {"uid": uid, "email": email}

    async def create_session_cookie(self, id_token, expires_in):
        return f"cookie-for-{id_token}"


@pytest.fixture(name="identity")
def identity_fixture():
    return FakeIdentity()


@pytest.fixture(name="admin_profile")
def admin_profile_fixture(session_factory):
    """Local profile that makes ADMIN an administrator"""
    with session_factory() as session:
        UserRepository(session).create_user(
            uid=ADMIN.uid, email=ADMIN.email, role="admin", first_name="Warden"
        )
