"""
Scheduler engine for timetable generation using greedy first-fit assignment.

The builder walks a fixed Monday-Friday x four-slot grid. For every cell it takes
the next pending course and asks the matcher for the first instructor and the
first room that are both free at that cell. Consumed cells are removed from the
availability ledger, so no instructor or room is ever double-booked.
"""

import logging
import os
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import FrozenSet, Hashable, List, Optional, Sequence

from dotenv import load_dotenv
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from campus_timetable.models.models import (
    ClassEntry, Course, CourseStatus, DayOfWeek, Instructor, Room, ScheduleDay, Shift, Timetable
)
from campus_timetable.services.availability import AvailabilityLedger
from campus_timetable.services.exceptions import EntryNotFound, PreconditionFailed, TimetableConflict

load_dotenv()

logger = logging.getLogger(__name__)

PERSIST_CONSUMED_AVAILABILITY = os.getenv("PERSIST_CONSUMED_AVAILABILITY", "false").lower() in ("1", "true", "yes")

# Existence check, grid walk and insert run under this lock within one process.
# Across processes the timetable unique constraint and the instructor / room
# version columns reject the losing write.
_generation_lock = threading.Lock()


@dataclass
class PendingCourse:
    """A course waiting to be placed, copied from its database row."""
    course_id: int
    course_name: str
    course_code: str
    credit_hours: int

    @classmethod
    def from_model(cls, course: Course) -> "PendingCourse":
        return cls(
            course_id=course.id,
            course_name=course.course_name,
            course_code=course.course_code,
            credit_hours=course.credit_hours,
        )


@dataclass
class Resource:
    """An instructor or room as seen by the matcher."""
    key: Hashable
    label: str
    qualified_course_ids: FrozenSet[int] = frozenset()


@dataclass
class ClassAssignment:
    time_slot: str
    course_name: str
    course_code: str
    credit_hours: int
    instructor_name: str
    room_number: str


@dataclass
class DaySchedule:
    day: DayOfWeek
    classes: List[ClassAssignment] = field(default_factory=list)


@dataclass
class BuildResult:
    schedule: List[DaySchedule]
    unscheduled: List[PendingCourse]

    @property
    def placed_count(self) -> int:
        return sum(len(day.classes) for day in self.schedule)


class AssignmentMatcher:
    """
    Binds a course to the first free instructor and the first free room of a cell.
    Instructors and rooms are scanned independently, in the order given.
    """

    def __init__(
        self,
        instructors: Sequence[Resource],
        rooms: Sequence[Resource],
        ledger: AvailabilityLedger,
        match_qualified: bool = False,
    ):
        self.instructors = list(instructors)
        self.rooms = list(rooms)
        self.ledger = ledger
        self.match_qualified = match_qualified

    def _can_teach(self, instructor: Resource, course: PendingCourse) -> bool:
        return not self.match_qualified or course.course_id in instructor.qualified_course_ids

    def find_instructor(self, day: DayOfWeek, slot: str, course: PendingCourse) -> Optional[Resource]:
        for instructor in self.instructors:
            if self._can_teach(instructor, course) and self.ledger.is_free(instructor.key, day, slot):
                return instructor
        return None

    def find_room(self, day: DayOfWeek, slot: str) -> Optional[Resource]:
        for room in self.rooms:
            if self.ledger.is_free(room.key, day, slot):
                return room
        return None

    def match(self, day: DayOfWeek, slot: str, course: PendingCourse) -> Optional[ClassAssignment]:
        """Return a bound class for the cell, or None when the cell cannot be filled."""
        instructor = self.find_instructor(day, slot, course)
        room = self.find_room(day, slot)
        if instructor is None or room is None:
            return None

        self.ledger.consume(instructor.key, day, slot)
        self.ledger.consume(room.key, day, slot)
        return ClassAssignment(
            time_slot=slot,
            course_name=course.course_name,
            course_code=course.course_code,
            credit_hours=course.credit_hours,
            instructor_name=instructor.label,
            room_number=room.label,
        )


class TimetableBuilder:
    """
    Walks the day x slot grid in a fixed order and collects class assignments.

    Courses are taken from the end of the pending list. With requeue_unmatched
    disabled a course whose cell cannot be filled is dropped; with it enabled the
    course goes behind the remaining courses and is retried at a later cell.
    """

    DAYS = [
        DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.WEDNESDAY,
        DayOfWeek.THURSDAY, DayOfWeek.FRIDAY
    ]

    TIME_SLOTS = ["9AM-10AM", "10AM-11AM", "11AM-12PM", "12PM-1PM"]

    def __init__(self, matcher: AssignmentMatcher, requeue_unmatched: bool = False):
        self.matcher = matcher
        self.requeue_unmatched = requeue_unmatched

    def build(self, courses: Sequence[PendingCourse]) -> BuildResult:
        pending = deque(courses)
        dropped: List[PendingCourse] = []
        schedule: List[DaySchedule] = []

        for day in self.DAYS:
            classes: List[ClassAssignment] = []
            for slot in self.TIME_SLOTS:
                if not pending:
                    break
                course = pending.pop()
                assignment = self.matcher.match(day, slot, course)
                if assignment is not None:
                    classes.append(assignment)
                elif self.requeue_unmatched:
                    pending.appendleft(course)
                else:
                    logger.debug(f"Dropping {course.course_code}: no instructor/room free on {day.value} {slot}")
                    dropped.append(course)

            if classes:
                schedule.append(DaySchedule(day=day, classes=classes))

        # Anything still pending is reported in the order it would have been taken
        return BuildResult(schedule=schedule, unscheduled=dropped + list(reversed(pending)))


@dataclass
class GenerationResult:
    timetable: Timetable
    unscheduled_courses: List[PendingCourse]
    ledger: AvailabilityLedger


def instructor_key(instructor_id: int) -> tuple:
    return ("instructor", instructor_id)


def room_key(room_id: int) -> tuple:
    return ("room", room_id)


def _timetable_query(db: Session, department: str, semester: str, shift: Shift):
    return db.query(Timetable).filter(
        Timetable.department == department,
        Timetable.semester == semester,
        Timetable.shift == shift,
    )


def generate_timetable(
    db: Session,
    department: str,
    semester: str,
    shift,
    requeue_unmatched: bool = False,
    match_qualified: bool = False,
    persist_availability: Optional[bool] = None,
) -> GenerationResult:
    """
    Generate and persist a timetable for (department, semester, shift).

    Raises:
        TimetableConflict: a timetable already exists for the triple, or persisted
            availability was changed by another process during the run.
        PreconditionFailed: there are no instructors or no active rooms.
    """
    shift = Shift(shift)
    if persist_availability is None:
        persist_availability = PERSIST_CONSUMED_AVAILABILITY

    with _generation_lock:
        if _timetable_query(db, department, semester, shift).first() is not None:
            raise TimetableConflict("Timetable already exists")

        courses = db.query(Course).filter(
            Course.department == department,
            Course.semester == semester,
            Course.status == CourseStatus.ACTIVE
        ).order_by(Course.id).all()
        instructors = db.query(Instructor).order_by(Instructor.id).all()
        rooms = db.query(Room).filter(Room.is_active == True).order_by(Room.id).all()

        if not instructors:
            raise PreconditionFailed("No available instructors")
        if not rooms:
            raise PreconditionFailed("No available rooms")

        logger.info(
            f"Generating timetable for {department}/{semester}/{shift.value}: "
            f"courses={len(courses)}, instructors={len(instructors)}, rooms={len(rooms)}"
        )

        ledger = AvailabilityLedger()
        instructor_resources = []
        for instructor in instructors:
            ledger.register(instructor_key(instructor.id), instructor.availability)
            qualified = frozenset(c.id for c in instructor.subjects) if match_qualified else frozenset()
            instructor_resources.append(Resource(instructor_key(instructor.id), instructor.name, qualified))

        room_resources = []
        for room in rooms:
            ledger.register(room_key(room.id), room.availability)
            room_resources.append(Resource(room_key(room.id), room.room_number))

        matcher = AssignmentMatcher(instructor_resources, room_resources, ledger, match_qualified=match_qualified)
        builder = TimetableBuilder(matcher, requeue_unmatched=requeue_unmatched)
        result = builder.build([PendingCourse.from_model(c) for c in courses])

        timetable = Timetable(
            department=department,
            semester=semester,
            shift=shift,
            schedule=[
                ScheduleDay(
                    day=day_schedule.day,
                    position=day_position,
                    classes=[
                        ClassEntry(position=class_position, **asdict(assignment))
                        for class_position, assignment in enumerate(day_schedule.classes)
                    ],
                )
                for day_position, day_schedule in enumerate(result.schedule)
            ],
        )

        if persist_availability:
            for instructor in instructors:
                instructor.availability = ledger.snapshot(instructor_key(instructor.id))
            for room in rooms:
                room.availability = ledger.snapshot(room_key(room.id))

        db.add(timetable)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise TimetableConflict("Timetable already exists")
        except StaleDataError:
            # Another process wrote an instructor or room availability after we read it
            db.rollback()
            logger.warning(f"Availability changed during generation for {department}/{semester}/{shift.value}")
            raise TimetableConflict("Availability changed during generation, please retry")
        db.refresh(timetable)

    if result.unscheduled:
        logger.warning(
            f"Timetable {timetable.id}: {len(result.unscheduled)} course(s) not placed: "
            f"{', '.join(c.course_code for c in result.unscheduled)}"
        )
    logger.info(f"Timetable {timetable.id} created with {result.placed_count} classes")

    return GenerationResult(timetable=timetable, unscheduled_courses=result.unscheduled, ledger=ledger)


def find_latest_timetable(
    db: Session,
    department: Optional[str] = None,
    semester: Optional[str] = None,
    shift=None,
) -> Optional[Timetable]:
    """Most recently created timetable matching the given filters."""
    query = db.query(Timetable)
    if department is not None:
        query = query.filter(Timetable.department == department)
    if semester is not None:
        query = query.filter(Timetable.semester == semester)
    if shift is not None:
        query = query.filter(Timetable.shift == Shift(shift))
    return query.order_by(Timetable.created_at.desc(), Timetable.id.desc()).first()


EDITABLE_ENTRY_FIELDS = (
    "time_slot", "course_name", "course_code", "credit_hours", "instructor_name", "room_number"
)


def update_class_entry(db: Session, entry_id: int, changes: dict) -> Timetable:
    """Apply a partial update to one class entry and return its timetable."""
    unknown = set(changes) - set(EDITABLE_ENTRY_FIELDS)
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    entry = db.query(ClassEntry).filter(ClassEntry.id == entry_id).first()
    if entry is None:
        raise EntryNotFound("Class entry not found")

    for name, value in changes.items():
        setattr(entry, name, value)

    timetable = entry.schedule_day.timetable
    timetable.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(timetable)
    logger.info(f"Updated class entry {entry_id} in timetable {timetable.id}: {sorted(changes)}")
    return timetable
