"""
Test configuration and fixtures.

Every test runs against a fresh in-memory SQLite database built from the ORM
metadata. Email delivery and rate limiting are replaced with in-process
doubles through the same seams the application uses.
"""

import itertools
import os
from datetime import date, time, timedelta

# Configure the application before it is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["EMAILS_ENABLED"] = "true"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from field_scheduling.auth import create_access_token
from field_scheduling.database import Base, get_db
from field_scheduling.email_service import get_notifier
from field_scheduling.main import app
from field_scheduling.models import AssignmentDay, Project, ProjectAssignment, User
from field_scheduling.rate_limiter import InMemoryRateLimitStore, get_rate_limit_store

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeNotifier:
    """Records outgoing email instead of calling Resend"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    async def send_email(self, to, subject, html_body):
        self.sent.append({"to": to, "subject": subject, "html": html_body})
        if self.fail:
            return {"success": False, "error": "Delivery failed"}
        return {"success": True, "error": None}


def date_range(start: date, end: date) -> list[date]:
    """Every calendar date from start to end inclusive"""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


@pytest.fixture
def db_session():
    """Create a fresh database session for each test"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def rate_limiter():
    return InMemoryRateLimitStore(limit=5, window_seconds=60, max_keys=1000)


@pytest.fixture
def make_user(db_session):
    counter = itertools.count(1)

    def _make(role: str = "admin", full_name: str = None, email: str = None) -> User:
        n = next(counter)
        user = User(
            email=email or f"user{n}@example.com",
            full_name=full_name or f"User {n}",
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_project(db_session):
    def _make(
        client_name: str = "Acme Plant",
        start_date: date = date(2025, 1, 6),
        end_date: date = date(2025, 1, 17),
        schedule_status: str = "draft",
        poc_name: str = None,
        email_notifications_enabled: bool = True,
    ) -> Project:
        project = Project(
            client_name=client_name,
            start_date=start_date,
            end_date=end_date,
            schedule_status=schedule_status if start_date and end_date else None,
            poc_name=poc_name,
            email_notifications_enabled=email_notifications_enabled,
        )
        db_session.add(project)
        db_session.commit()
        db_session.refresh(project)
        return project

    return _make


@pytest.fixture
def make_assignment(db_session):
    def _make(
        project: Project,
        user: User,
        status: str = "draft",
        dates=(),
        start_time: time = time(7, 0),
        end_time: time = time(16, 0),
    ) -> ProjectAssignment:
        assignment = ProjectAssignment(project_id=project.id, user_id=user.id, booking_status=status)
        db_session.add(assignment)
        db_session.flush()
        for work_date in dates:
            db_session.add(
                AssignmentDay(
                    assignment_id=assignment.id,
                    work_date=work_date,
                    start_time=start_time,
                    end_time=end_time,
                )
            )
        db_session.commit()
        db_session.refresh(assignment)
        return assignment

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", full_name="Alex Admin")


@pytest.fixture
def engineer(make_user):
    return make_user(role="engineer", full_name="Erin Engineer")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def client(db_session, notifier, rate_limiter):
    """Test client wired to the test session and the in-process doubles"""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_rate_limit_store] = lambda: rate_limiter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
