"""
SQLAlchemy models for the Campus Timetable system.
"""

from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Boolean, Text, JSON, Table,
    Enum as SQLEnum, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class UserRole(str, Enum):
    """Closed set of roles a principal can hold."""
    ADMIN = "Admin"
    STUDENT = "Student"


class ClassType(str, Enum):
    LECTURE = "Lecture"
    LAB = "Lab"


class CourseStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class RoomType(str, Enum):
    ROOM = "Room"
    LABORATORY = "Laboratory"
    SEMINAR_ROOM = "Seminar Room"
    COMPUTER_LAB = "Computer Lab"


class RoomLocation(str, Enum):
    MAIN_CAMPUS = "Main Campus"
    SUB_CAMPUS = "Sub Campus"


class Equipment(str, Enum):
    LECTURE = "Lecture"
    LAB = "Lab"


class Shift(str, Enum):
    MORNING = "Morning"
    EVENING = "Evening"


class DayOfWeek(str, Enum):
    """Days of the week."""
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"


class User(Base):
    """An authenticated principal: an administrator or a student."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(100), unique=True, nullable=False)
    password_hash = Column(String(128), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False)
    registration_number = Column(String(30), unique=True, nullable=True)  # students only
    refresh_token = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Courses an instructor is qualified to teach
instructor_subjects = Table(
    "instructor_subjects",
    Base.metadata,
    Column("instructor_id", Integer, ForeignKey("instructors.id", ondelete="CASCADE"), primary_key=True),
    Column("course_id", Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
)


class Course(Base):
    """Represents a course offered by a department in a semester."""
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    course_name = Column(String(100), nullable=False)
    course_code = Column(String(20), unique=True, nullable=False)
    credit_hours = Column(Integer, nullable=False)
    class_type = Column(SQLEnum(ClassType), nullable=False, default=ClassType.LECTURE)
    semester = Column(String(20), nullable=False)
    department = Column(String(50), nullable=False)
    status = Column(SQLEnum(CourseStatus), nullable=False, default=CourseStatus.ACTIVE)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    instructors = relationship("Instructor", secondary=instructor_subjects, back_populates="subjects")

    __table_args__ = (Index("ix_course_department_semester", "department", "semester"),)


class Instructor(Base):
    """
    Represents an instructor.

    availability is stored as [{"day": "Monday", "time_slots": ["9AM-10AM", ...]}, ...].
    """
    __tablename__ = "instructors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    availability = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    # Bumped on every update; stale availability writes fail instead of overwriting
    version_id = Column(Integer, nullable=False)

    # Relationships
    subjects = relationship(
        "Course", secondary=instructor_subjects, back_populates="instructors", order_by="Course.id"
    )

    __mapper_args__ = {"version_id_col": version_id}


class Room(Base):
    """Represents a lecture room or laboratory."""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(20), unique=True, nullable=False)
    room_type = Column(SQLEnum(RoomType), nullable=False, default=RoomType.ROOM)
    capacity = Column(Integer, nullable=False)
    availability = Column(JSON, nullable=False, default=list)
    location = Column(SQLEnum(RoomLocation), nullable=False, default=RoomLocation.MAIN_CAMPUS)
    equipment = Column(SQLEnum(Equipment), nullable=False, default=Equipment.LECTURE)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}


class Timetable(Base):
    """A generated timetable for one (department, semester, shift)."""
    __tablename__ = "timetables"

    id = Column(Integer, primary_key=True, index=True)
    department = Column(String(50), nullable=False)
    semester = Column(String(20), nullable=False)
    shift = Column(SQLEnum(Shift), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    schedule = relationship(
        "ScheduleDay",
        back_populates="timetable",
        order_by="ScheduleDay.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("department", "semester", "shift", name="uq_timetable_department_semester_shift"),
        Index("ix_timetable_created_at", "created_at"),
    )


class ScheduleDay(Base):
    """One day of a timetable's schedule with its classes."""
    __tablename__ = "timetable_days"

    id = Column(Integer, primary_key=True, index=True)
    timetable_id = Column(Integer, ForeignKey("timetables.id", ondelete="CASCADE"), nullable=False)
    day = Column(SQLEnum(DayOfWeek), nullable=False)
    position = Column(Integer, nullable=False)

    # Relationships
    timetable = relationship("Timetable", back_populates="schedule")
    classes = relationship(
        "ClassEntry",
        back_populates="schedule_day",
        order_by="ClassEntry.position",
        cascade="all, delete-orphan",
    )


class ClassEntry(Base):
    """
    A single class in a timetable.
    Names are copied at generation time, not linked to the source records.
    """
    __tablename__ = "timetable_classes"

    id = Column(Integer, primary_key=True, index=True)
    day_id = Column(Integer, ForeignKey("timetable_days.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    time_slot = Column(String(20), nullable=False)
    course_name = Column(String(100), nullable=False)
    course_code = Column(String(20), nullable=False)
    credit_hours = Column(Integer, nullable=False)
    instructor_name = Column(String(100), nullable=False)
    room_number = Column(String(20), nullable=False)

    # Relationships
    schedule_day = relationship("ScheduleDay", back_populates="classes")

    __table_args__ = (Index("ix_class_day", "day_id"),)
