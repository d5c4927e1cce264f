import os
import sys
from datetime import date, datetime, timedelta, timezone

import pytest

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# settings are read at import time
os.environ["NOTIFICATION_SCAN_ENABLED"] = "false"
os.environ["STORAGE_BACKEND"] = "sql"
os.environ["EXPOSE_RESET_TOKENS"] = "true"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lms_service.domain.entities import (
    Chapter,
    Course,
    Instructor,
    Milestone,
    Permissions,
    Question,
    User,
)
from lms_service.infrastructure.db import get_db
from lms_service.infrastructure.locks import KeyedLocks
from lms_service.infrastructure.models import Base
from lms_service.infrastructure.repositories import CourseRepository, UserRepository
from lms_service.infrastructure.security import PasswordHasher, create_access_token
from lms_service.infrastructure.storage import MemoryStorage, SqlStorage
from lms_service.interfaces.http.ratelimit import limiter

# in-memory DB shared by every session
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


import lms_service.infrastructure.db
lms_service.infrastructure.db.engine = test_engine
lms_service.infrastructure.db.SessionLocal = TestingSessionLocal

from lms_service.main import app

app.dependency_overrides[get_db] = override_get_db
limiter.enabled = False

PASSWORD = "secret-pass-1"
NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def client():
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    app.state.locks = KeyedLocks()
    yield TestClient(app)
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def sql_storage(client):
    """Storage bound to the same database the app uses."""
    db = TestingSessionLocal()
    yield SqlStorage(db)
    db.close()


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def locks():
    return KeyedLocks()


def build_user(role="user", email=None, status="active", permissions=None, password=PASSWORD, **extra):
    user_id = extra.pop("id", None) or f"{role}-{os.urandom(4).hex()}"
    return User(
        id=user_id,
        email=email or f"{user_id}@example.com",
        first_name=extra.pop("first_name", "Test"),
        last_name=extra.pop("last_name", role.capitalize()),
        role=role,
        status=status,
        permissions=permissions or Permissions(),
        password_hash=PasswordHasher().hash(password) if password else None,
        created_at=NOW,
        updated_at=NOW,
        **extra,
    )


def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(sub=user.id, role=user.role)}"}


@pytest.fixture
def add_user(sql_storage):
    def _add(role="user", **kwargs):
        user = build_user(role=role, **kwargs)
        UserRepository(sql_storage).add(user)
        return user
    return _add


@pytest.fixture
def admin(add_user):
    return add_user(role="admin", email="admin@example.com")


@pytest.fixture
def student(add_user):
    return add_user(email="student@example.com", first_name="Ada", last_name="Lovelace")


def make_course(course_id="c1", status="active", start=date(2024, 1, 1), chapters=None,
                months=12, target_users=None):
    """Two chapters; the first with two text milestones, the second with one quiz."""
    if chapters is None:
        chapters = [
            Chapter(
                id="ch1", title="Basics", start_date=start, duration=60, order=0,
                milestones=[Milestone(id="m1", title="Read intro"), Milestone(id="m2", title="Watch video")],
            ),
            Chapter(
                id="ch2", title="Advanced", start_date=start + timedelta(days=7), duration=90, order=1,
                milestones=[Milestone(
                    id="m3", title="Quiz", type="questionary",
                    questions=[
                        Question(question="2+2?", answers=["3", "4"], correct_answer=1),
                        Question(question="Capital of France?", answers=["Paris", "Rome"], correct_answer=0),
                    ],
                )],
            ),
        ]
    course = Course(
        id=course_id,
        title=f"Course {course_id}",
        start_date=start,
        instructor=Instructor(id="i1", name="Grace Hopper"),
        status=status,
        chapters=chapters,
        target_users=target_users or [],
        created_at=NOW,
        updated_at=NOW,
    )
    course.certificate_validity.months = months
    return course


@pytest.fixture
def add_course(sql_storage):
    def _add(**kwargs):
        course = make_course(**kwargs)
        CourseRepository(sql_storage).add(course)
        return course
    return _add
