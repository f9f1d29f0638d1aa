"""Pytest configuration and shared fixtures.

This module provides fixtures used across unit and integration tests:
- An in-memory SQLite database with all tables created
- A seeded school (teachers, students, classes, enrollments, an administrator)
- A controllable clock and an email dispatcher that records messages
"""

import os
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Iterator, List

# Configure the environment before application modules are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import AuthSettings
from core.exceptions import DeliveryError
from core.security import (
    ROLE_ADMINISTRATOR,
    ROLE_STUDENT,
    ROLE_TEACHER,
    Identity,
    PasswordHasher,
    TokenIssuer,
)
from models.base import Base
from models.class_model import ClassModel
from models.enrollment import EnrollmentModel
from models.user import AdministratorModel, StudentModel, TeacherModel

ADMIN_PASSWORD = "admin-secret"


class FakeClock:
    """Clock returning a fixed naive UTC time that tests move forward."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> None:
        self.now = self.now + timedelta(seconds=seconds, **kwargs)


class RecordingDispatcher:
    """Email dispatcher that keeps sent login codes instead of mailing them."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[SimpleNamespace] = []

    def send_login_code(self, to_email: str, code: str, name: str, expires_in_minutes: int) -> None:
        if self.fail:
            raise DeliveryError("Could not send the email")
        self.sent.append(
            SimpleNamespace(
                to=to_email, code=code, name=name, expires_in_minutes=expires_in_minutes
            )
        )

    @property
    def last_code(self) -> str:
        return self.sent[-1].code


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 10, 8, 0, 0))


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def auth_settings() -> AuthSettings:
    return AuthSettings(jwt_secret_key="test-secret-key-for-testing-only")


@pytest.fixture
def token_issuer(auth_settings) -> TokenIssuer:
    return TokenIssuer(auth_settings)


@pytest.fixture
def password_hasher() -> PasswordHasher:
    # Low cost factor keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def school(db_session, password_hasher) -> SimpleNamespace:
    """Seed a small school.

    Students 1..10: grade 3 for ids 1-6, grade 2 for ids 7-10; odd ids in
    group A, even ids in group B.

    Classes:
        math (teacher 1): students 1-6
        history (teacher 1): students 7, 8
        biology (teacher 2): students 2, 9, 10
    """
    teachers = [
        TeacherModel(
            teacher_id=1,
            first_name="Laura",
            last_name="Mendez",
            email="laura.mendez@school.edu",
        ),
        TeacherModel(
            teacher_id=2,
            first_name="Pablo",
            last_name="Ortega",
            email="pablo.ortega@school.edu",
        ),
    ]
    students = [
        StudentModel(
            student_id=i,
            first_name=f"Student{i}",
            last_name="Lopez",
            email=f"student{i}@school.edu",
            grade=3 if i <= 6 else 2,
            group="A" if i % 2 else "B",
            enrollment_number=f"M{i:04d}",
        )
        for i in range(1, 11)
    ]
    classes = [
        ClassModel(class_id=1, teacher_id=1, name="Mathematics", code="MAT-3"),
        ClassModel(class_id=2, teacher_id=1, name="History", code="HIS-2"),
        ClassModel(class_id=3, teacher_id=2, name="Biology", code="BIO-2"),
    ]
    roster = {1: [1, 2, 3, 4, 5, 6], 2: [7, 8], 3: [2, 9, 10]}
    enrollments = [
        EnrollmentModel(student_id=student_id, class_id=class_id)
        for class_id, student_ids in roster.items()
        for student_id in student_ids
    ]
    admin = AdministratorModel(
        admin_id=1,
        email="admin@school.edu",
        password_hash=password_hasher.hash(ADMIN_PASSWORD),
        first_name="Ana",
        last_name="Ruiz",
    )
    db_session.add_all(teachers + students + classes + [admin])
    db_session.flush()
    db_session.add_all(enrollments)
    db_session.commit()

    return SimpleNamespace(
        teacher=Identity(id=1, email="laura.mendez@school.edu", role=ROLE_TEACHER, name="Laura Mendez"),
        other_teacher=Identity(id=2, email="pablo.ortega@school.edu", role=ROLE_TEACHER, name="Pablo Ortega"),
        admin=Identity(id=1, email="admin@school.edu", role=ROLE_ADMINISTRATOR, name="Ana Ruiz"),
        student=lambda i: Identity(
            id=i, email=f"student{i}@school.edu", role=ROLE_STUDENT, name=f"Student{i} Lopez"
        ),
        roster=roster,
    )
