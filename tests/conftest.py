import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="campus-timetable-tests-")

# Must be set before the application modules create their engine
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ["PERSIST_CONSUMED_AVAILABILITY"] = "false"

import pytest
from fastapi.testclient import TestClient

from campus_timetable.dependencies import create_access_token
from campus_timetable.main import app
from campus_timetable.models.database import SessionLocal, drop_db, init_db
from campus_timetable.models.models import Course, Instructor, Room, User, UserRole
from campus_timetable.routes.auth import hash_password

ALL_SLOTS = ["9AM-10AM", "10AM-11AM", "11AM-12PM", "12PM-1PM"]
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]


def full_week(days=WEEKDAYS, slots=ALL_SLOTS):
    return [{"day": day, "time_slots": list(slots)} for day in days]


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        drop_db()


@pytest.fixture
def client(db):
    return TestClient(app)


def make_user(db, username, role, password="secret123", registration_number=None):
    user = User(
        username=username,
        email=f"{username}@campus.edu",
        password_hash=hash_password(password),
        role=role,
        registration_number=registration_number,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return make_user(db, "admin", UserRole.ADMIN)


@pytest.fixture
def student(db):
    return make_user(db, "student", UserRole.STUDENT, registration_number="REG-001")


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_access_token(admin)}"}


@pytest.fixture
def student_headers(student):
    return {"Authorization": f"Bearer {create_access_token(student)}"}


def add_course(db, code, name=None, department="CS", semester="1", credit_hours=3, **extra):
    course = Course(
        course_name=name or f"Course {code}",
        course_code=code,
        credit_hours=credit_hours,
        department=department,
        semester=semester,
        **extra,
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def add_instructor(db, name, availability=None, subjects=()):
    instructor = Instructor(
        name=name,
        email=f"{name.lower().replace(' ', '.').replace('..', '.')}@campus.edu",
        availability=full_week() if availability is None else availability,
        subjects=list(subjects),
    )
    db.add(instructor)
    db.commit()
    db.refresh(instructor)
    return instructor


def add_room(db, number, availability=None, is_active=True, capacity=40):
    room = Room(
        room_number=number,
        capacity=capacity,
        availability=full_week() if availability is None else availability,
        is_active=is_active,
    )
    db.add(room)
    db.commit()
    db.refresh(room)
    return room
