from collections import defaultdict

import pytest

from campus_timetable.models.database import SessionLocal
from campus_timetable.models.models import DayOfWeek, Instructor, Room, Shift, Timetable
from campus_timetable.services.availability import AvailabilityLedger
from campus_timetable.services.exceptions import EntryNotFound, PreconditionFailed, TimetableConflict
from campus_timetable.services.scheduling_engine import (
    AssignmentMatcher, PendingCourse, Resource, TimetableBuilder, generate_timetable,
    instructor_key, room_key, update_class_entry,
)
from campus_timetable.services.validators import ConstraintValidator

from conftest import ALL_SLOTS, add_course, add_instructor, add_room, full_week


def _courses(n):
    return [PendingCourse(i, f"Course {i}", f"C{i:03d}", 3) for i in range(1, n + 1)]


def _builder(instructors, rooms, requeue_unmatched=False, match_qualified=False):
    """instructors/rooms: list of (label, availability[, qualified ids])."""
    ledger = AvailabilityLedger()
    instructor_resources = []
    for i, resource in enumerate(instructors):
        key = instructor_key(i)
        ledger.register(key, resource[1])
        qualified = frozenset(resource[2]) if len(resource) > 2 else frozenset()
        instructor_resources.append(Resource(key, resource[0], qualified))
    room_resources = []
    for i, (label, availability) in enumerate(rooms):
        key = room_key(i)
        ledger.register(key, availability)
        room_resources.append(Resource(key, label))
    matcher = AssignmentMatcher(instructor_resources, room_resources, ledger, match_qualified=match_qualified)
    return TimetableBuilder(matcher, requeue_unmatched=requeue_unmatched), ledger


class TestTimetableBuilder:

    def test_places_at_most_twenty_classes(self):
        builder, _ = _builder([("Dr. A", full_week())], [("R1", full_week())])

        result = builder.build(_courses(25))

        assert result.placed_count == 20
        assert [day.day for day in result.schedule] == TimetableBuilder.DAYS
        assert [c.course_code for c in result.unscheduled] == ["C005", "C004", "C003", "C002", "C001"]

    def test_courses_are_taken_from_the_end(self):
        builder, _ = _builder([("Dr. A", full_week())], [("R1", full_week())])

        result = builder.build(_courses(3))

        monday = result.schedule[0]
        assert [c.course_code for c in monday.classes] == ["C003", "C002", "C001"]
        assert [c.time_slot for c in monday.classes] == ALL_SLOTS[:3]

    def test_empty_days_are_omitted(self):
        builder, _ = _builder([("Dr. A", full_week())], [("R1", full_week())])

        result = builder.build(_courses(3))

        assert len(result.schedule) == 1
        assert result.schedule[0].day == DayOfWeek.MONDAY
        assert result.unscheduled == []

    def test_no_courses_gives_empty_schedule(self):
        builder, _ = _builder([("Dr. A", full_week())], [("R1", full_week())])

        result = builder.build([])

        assert result.schedule == []
        assert result.placed_count == 0

    def test_no_overlapping_availability_places_nothing(self):
        builder, _ = _builder(
            [("Dr. A", full_week(days=["Monday"]))],
            [("R1", full_week(days=["Tuesday"]))],
        )

        result = builder.build(_courses(3))

        assert result.schedule == []
        assert [c.course_code for c in result.unscheduled] == ["C003", "C002", "C001"]

    def test_unmatched_course_is_dropped_by_default(self):
        builder, _ = _builder(
            [("Dr. A", [{"day": "Tuesday", "time_slots": ["9AM-10AM"]}])],
            [("R1", full_week())],
        )

        result = builder.build(_courses(1))

        assert result.placed_count == 0
        assert [c.course_code for c in result.unscheduled] == ["C001"]

    def test_requeue_retries_course_at_later_cell(self):
        builder, _ = _builder(
            [("Dr. A", [{"day": "Tuesday", "time_slots": ["9AM-10AM"]}])],
            [("R1", full_week())],
            requeue_unmatched=True,
        )

        result = builder.build(_courses(1))

        assert result.placed_count == 1
        assert result.schedule[0].day == DayOfWeek.TUESDAY
        assert result.schedule[0].classes[0].time_slot == "9AM-10AM"
        assert result.unscheduled == []

    def test_requeue_reports_courses_never_placed(self):
        builder, _ = _builder([("Dr. A", [])], [("R1", full_week())], requeue_unmatched=True)

        result = builder.build(_courses(2))

        assert result.placed_count == 0
        assert {c.course_code for c in result.unscheduled} == {"C001", "C002"}

    def test_first_free_instructor_and_room_win(self):
        builder, ledger = _builder(
            [("Dr. A", full_week()), ("Dr. B", full_week())],
            [("R1", full_week()), ("R2", full_week())],
        )

        result = builder.build(_courses(2))

        assert {c.instructor_name for c in result.schedule[0].classes} == {"Dr. A"}
        assert {c.room_number for c in result.schedule[0].classes} == {"R1"}
        assert ledger.is_free(instructor_key(1), "Monday", "9AM-10AM")

    def test_match_qualified_restricts_instructors(self):
        courses = [PendingCourse(1, "Algorithms", "CS201", 3), PendingCourse(2, "Databases", "CS202", 3)]

        plain, _ = _builder(
            [("Dr. X", full_week(), [2]), ("Dr. Y", full_week(), [1])],
            [("R1", full_week())],
        )
        qualified, _ = _builder(
            [("Dr. X", full_week(), [2]), ("Dr. Y", full_week(), [1])],
            [("R1", full_week())],
            match_qualified=True,
        )

        plain_classes = plain.build(courses).schedule[0].classes
        qualified_classes = qualified.build(courses).schedule[0].classes

        assert [(c.course_code, c.instructor_name) for c in plain_classes] == [
            ("CS202", "Dr. X"), ("CS201", "Dr. X")
        ]
        assert [(c.course_code, c.instructor_name) for c in qualified_classes] == [
            ("CS202", "Dr. X"), ("CS201", "Dr. Y")
        ]

    def test_no_double_booking_with_scarce_resources(self):
        morning = ["9AM-10AM", "10AM-11AM"]
        instructors = [
            ("Dr. A", full_week(days=["Monday", "Tuesday"])),
            ("Dr. B", full_week(days=["Monday", "Wednesday"], slots=morning)),
            ("Dr. C", full_week(days=["Thursday", "Friday"], slots=morning)),
        ]
        rooms = [
            ("R1", full_week(days=["Monday", "Thursday"])),
            ("R2", full_week(slots=morning)),
        ]
        builder, _ = _builder(instructors, rooms, requeue_unmatched=True)
        available = {label: availability for label, availability in instructors + rooms}

        result = builder.build(_courses(30))

        booked = defaultdict(list)
        for day in result.schedule:
            for entry in day.classes:
                booked[(day.day, entry.time_slot)] += [entry.instructor_name, entry.room_number]
                for label in (entry.instructor_name, entry.room_number):
                    assert any(
                        a["day"] == day.day.value and entry.time_slot in a["time_slots"]
                        for a in available[label]
                    )
        for labels in booked.values():
            assert len(labels) == len(set(labels))
        assert result.placed_count + len(result.unscheduled) == 30


class TestAssignmentMatcher:

    def test_match_consumes_both_resources(self):
        ledger = AvailabilityLedger()
        ledger.register("i", [{"day": "Monday", "time_slots": ["9AM-10AM"]}])
        ledger.register("r", [{"day": "Monday", "time_slots": ["9AM-10AM"]}])
        matcher = AssignmentMatcher([Resource("i", "Dr. A")], [Resource("r", "R1")], ledger)

        assignment = matcher.match(DayOfWeek.MONDAY, "9AM-10AM", PendingCourse(1, "Intro", "CS101", 3))

        assert assignment.instructor_name == "Dr. A"
        assert assignment.room_number == "R1"
        assert not ledger.is_free("i", "Monday", "9AM-10AM")
        assert not ledger.is_free("r", "Monday", "9AM-10AM")

    def test_no_room_leaves_instructor_free(self):
        ledger = AvailabilityLedger()
        ledger.register("i", [{"day": "Monday", "time_slots": ["9AM-10AM"]}])
        ledger.register("r", [])
        matcher = AssignmentMatcher([Resource("i", "Dr. A")], [Resource("r", "R1")], ledger)

        assert matcher.match(DayOfWeek.MONDAY, "9AM-10AM", PendingCourse(1, "Intro", "CS101", 3)) is None
        assert ledger.is_free("i", "Monday", "9AM-10AM")


class TestGenerateTimetable:

    def test_single_course_scenario(self, db):
        add_course(db, "CS101", name="Intro to CS")
        dr_a = add_instructor(db, "Dr. A", availability=[{"day": "Monday", "time_slots": ["9AM-10AM"]}])
        r1 = add_room(db, "R1", availability=[{"day": "Monday", "time_slots": ["9AM-10AM"]}])

        result = generate_timetable(db, "CS", "1", Shift.MORNING)

        schedule = result.timetable.schedule
        assert len(schedule) == 1
        assert schedule[0].day == DayOfWeek.MONDAY
        entry = schedule[0].classes[0]
        assert (entry.time_slot, entry.course_code, entry.instructor_name, entry.room_number) == (
            "9AM-10AM", "CS101", "Dr. A", "R1"
        )
        assert entry.course_name == "Intro to CS"
        assert entry.credit_hours == 3
        assert not result.ledger.is_free(instructor_key(dr_a.id), "Monday", "9AM-10AM")
        assert not result.ledger.is_free(room_key(r1.id), "Monday", "9AM-10AM")
        assert result.unscheduled_courses == []

    def test_stored_availability_is_untouched_by_default(self, db):
        add_course(db, "CS101")
        instructor = add_instructor(db, "Dr. A", availability=[{"day": "Monday", "time_slots": ["9AM-10AM"]}])
        add_room(db, "R1")

        generate_timetable(db, "CS", "1", Shift.MORNING)
        db.refresh(instructor)

        assert instructor.availability == [{"day": "Monday", "time_slots": ["9AM-10AM"]}]

    def test_persist_availability_writes_remaining_cells(self, db):
        add_course(db, "CS101")
        instructor = add_instructor(
            db, "Dr. A", availability=[{"day": "Monday", "time_slots": ["9AM-10AM", "10AM-11AM"]}]
        )
        add_room(db, "R1")

        generate_timetable(db, "CS", "1", Shift.MORNING, persist_availability=True)
        db.refresh(instructor)

        assert instructor.availability == [{"day": "Monday", "time_slots": ["10AM-11AM"]}]

    def test_only_active_courses_of_the_department_and_semester(self, db):
        from campus_timetable.models.models import CourseStatus

        add_course(db, "CS101")
        add_course(db, "CS102", status=CourseStatus.INACTIVE)
        add_course(db, "CS201", semester="2")
        add_course(db, "EE101", department="EE")
        add_instructor(db, "Dr. A")
        add_room(db, "R1")

        result = generate_timetable(db, "CS", "1", "Morning")

        codes = [c.course_code for day in result.timetable.schedule for c in day.classes]
        assert codes == ["CS101"]

    def test_second_generation_conflicts(self, db):
        add_course(db, "CS101")
        add_instructor(db, "Dr. A")
        add_room(db, "R1")
        generate_timetable(db, "CS", "1", Shift.MORNING)

        with pytest.raises(TimetableConflict):
            generate_timetable(db, "CS", "1", Shift.MORNING)

        assert db.query(Timetable).count() == 1

    def test_duplicate_inserted_during_run_conflicts(self, db, monkeypatch):
        add_course(db, "CS101")
        add_instructor(db, "Dr. A")
        add_room(db, "R1")
        original_build = TimetableBuilder.build

        def build_while_another_worker_inserts(self, courses):
            other = SessionLocal()
            try:
                other.add(Timetable(department="CS", semester="1", shift=Shift.MORNING))
                other.commit()
            finally:
                other.close()
            return original_build(self, courses)

        monkeypatch.setattr(TimetableBuilder, "build", build_while_another_worker_inserts)

        with pytest.raises(TimetableConflict, match="already exists"):
            generate_timetable(db, "CS", "1", Shift.MORNING)

        assert db.query(Timetable).count() == 1

    def test_availability_written_by_another_worker_is_not_overwritten(self, db, monkeypatch):
        add_course(db, "CS101")
        instructor = add_instructor(
            db, "Dr. A", availability=[{"day": "Monday", "time_slots": ["9AM-10AM", "10AM-11AM"]}]
        )
        add_room(db, "R1")
        original_build = TimetableBuilder.build
        other_write = [{"day": "Monday", "time_slots": ["9AM-10AM"]}]

        def build_while_another_worker_persists(self, courses):
            other = SessionLocal()
            try:
                row = other.query(Instructor).filter(Instructor.id == instructor.id).one()
                row.availability = other_write
                other.commit()
            finally:
                other.close()
            return original_build(self, courses)

        monkeypatch.setattr(TimetableBuilder, "build", build_while_another_worker_persists)

        with pytest.raises(TimetableConflict, match="Availability changed"):
            generate_timetable(db, "CS", "1", Shift.MORNING, persist_availability=True)

        db.expire_all()
        assert db.query(Timetable).count() == 0
        stored = db.query(Instructor).filter(Instructor.id == instructor.id).one()
        assert stored.availability == other_write
        assert stored.version_id == 2

    def test_other_shift_is_a_different_timetable(self, db):
        add_course(db, "CS101")
        add_instructor(db, "Dr. A")
        add_room(db, "R1")

        generate_timetable(db, "CS", "1", Shift.MORNING)
        generate_timetable(db, "CS", "1", Shift.EVENING)

        assert db.query(Timetable).count() == 2

    def test_no_instructors(self, db):
        add_course(db, "CS101")
        add_room(db, "R1")

        with pytest.raises(PreconditionFailed, match="No available instructors"):
            generate_timetable(db, "CS", "1", Shift.MORNING)

    def test_no_active_rooms(self, db):
        add_course(db, "CS101")
        add_instructor(db, "Dr. A")
        add_room(db, "R1", is_active=False)

        with pytest.raises(PreconditionFailed, match="No available rooms"):
            generate_timetable(db, "CS", "1", Shift.MORNING)

    def test_conflict_is_checked_before_preconditions(self, db):
        add_instructor(db, "Dr. A")
        room = add_room(db, "R1")
        generate_timetable(db, "CS", "1", Shift.MORNING)
        db.query(Room).filter(Room.id == room.id).delete()
        db.commit()

        with pytest.raises(TimetableConflict):
            generate_timetable(db, "CS", "1", Shift.MORNING)

    def test_no_courses_is_not_an_error(self, db):
        add_instructor(db, "Dr. A")
        add_room(db, "R1")

        result = generate_timetable(db, "CS", "1", Shift.MORNING)

        assert result.timetable.id is not None
        assert result.timetable.schedule == []

    def test_generated_timetable_validates_clean(self, db):
        for i in range(12):
            add_course(db, f"CS1{i:02d}")
        add_instructor(db, "Dr. A", availability=full_week(days=["Monday", "Tuesday"]))
        add_instructor(db, "Dr. B")
        add_room(db, "R1")
        add_room(db, "R2", availability=full_week(days=["Monday"]))

        result = generate_timetable(db, "CS", "1", Shift.MORNING)

        is_valid, conflicts = ConstraintValidator(result.timetable).validate_full_schedule()
        assert is_valid, conflicts


class TestUpdateClassEntry:

    def test_room_number_only(self, db):
        add_course(db, "CS101")
        add_instructor(db, "Dr. A")
        add_room(db, "R1")
        timetable = generate_timetable(db, "CS", "1", Shift.MORNING).timetable
        entry = timetable.schedule[0].classes[0]
        before = (entry.time_slot, entry.course_name, entry.course_code, entry.credit_hours, entry.instructor_name)

        updated = update_class_entry(db, entry.id, {"room_number": "R9"})

        edited = updated.schedule[0].classes[0]
        assert edited.room_number == "R9"
        assert (edited.time_slot, edited.course_name, edited.course_code,
                edited.credit_hours, edited.instructor_name) == before

    def test_missing_entry(self, db):
        with pytest.raises(EntryNotFound):
            update_class_entry(db, 999, {"room_number": "R9"})

    def test_unknown_field_is_rejected(self, db):
        with pytest.raises(ValueError):
            update_class_entry(db, 1, {"day": "Friday"})
