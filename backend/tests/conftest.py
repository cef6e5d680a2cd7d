"""
Pytest configuration for the Tutorbook backend.

Every test gets a fresh in-memory SQLite store with the full schema, a few
directory users and a TestClient wired to the same session.
"""

import os
import sys

# Set testing mode BEFORE any tutorbook imports
os.environ["IS_TESTING"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.pop("REDIS_URL", None)

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from decimal import Decimal
from typing import Any, Iterator

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker

from tests.factories.booking_builders import (
    LESSON_DATE,
    RecordingDispatcher,
    booking_request,
    make_user,
)
from tutorbook.api.dependencies import get_db, get_event_publisher
from tutorbook.core import teacher_lock as teacher_lock_module
from tutorbook.core.config import settings
from tutorbook.core.enums import RoleName
from tutorbook.database import Base, build_engine
from tutorbook.events import EventPublisher
from tutorbook.main import app
from tutorbook.models.booking import Booking
from tutorbook.models.user import User
from tutorbook.services.booking_service import BookingService


@pytest.fixture(autouse=True)
def _no_redis(monkeypatch):
    """Tests run on the in-process teacher lock unless they opt into Redis."""
    monkeypatch.setattr(settings, "redis_url", None)
    teacher_lock_module.reset_redis_client()
    yield
    teacher_lock_module.reset_redis_client()


@pytest.fixture
def test_engine():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(test_engine) -> Iterator[Session]:
    session = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine, expire_on_commit=False
    )()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def student(db) -> User:
    return make_user(db, name="Sam Student", email="sam@example.com", role=RoleName.STUDENT)


@pytest.fixture
def other_student(db) -> User:
    return make_user(db, name="Olive Student", email="olive@example.com", role=RoleName.STUDENT)


@pytest.fixture
def teacher(db) -> User:
    return make_user(
        db,
        name="Tara Teacher",
        email="tara@example.com",
        role=RoleName.TEACHER,
        hourly_rate=Decimal("50.00"),
    )


@pytest.fixture
def other_teacher(db) -> User:
    return make_user(
        db,
        name="Theo Teacher",
        email="theo@example.com",
        role=RoleName.TEACHER,
        hourly_rate=Decimal("80.00"),
    )


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def booking_service(db, dispatcher) -> BookingService:
    return BookingService(db, event_publisher=EventPublisher(dispatcher))


@pytest.fixture
def lesson_date():
    return LESSON_DATE


@pytest.fixture
def create_booking(booking_service, student, teacher):
    """Create a pending booking for ``student`` with ``teacher``; overridable per call."""

    def _create(**overrides: Any) -> Booking:
        student_id = overrides.pop("student_id", student.id)
        teacher_id = overrides.pop("teacher_id", teacher.id)
        return booking_service.create_booking(booking_request(student_id, teacher_id, **overrides))

    return _create


@pytest.fixture
def client(db, dispatcher) -> Iterator[TestClient]:
    """TestClient sharing the test session; lifespan is not run."""

    def override_get_db() -> Iterator[Session]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_publisher] = lambda: EventPublisher(dispatcher)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
