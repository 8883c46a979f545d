"""
Seed data script to populate the database with a bootstrap admin and sample
courses, instructors and rooms.
Run this before generating a timetable.
"""

import os

from dotenv import load_dotenv

from campus_timetable.models.database import SessionLocal, init_db
from campus_timetable.models.models import (
    ClassType, Course, Equipment, Instructor, Room, RoomType, User, UserRole
)
from campus_timetable.routes.auth import hash_password

load_dotenv()

ALL_SLOTS = ["9AM-10AM", "10AM-11AM", "11AM-12PM", "12PM-1PM"]
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]


def _availability(days, slots=ALL_SLOTS):
    return [{"day": day, "time_slots": list(slots)} for day in days]


def seed_database():
    """Populate database with sample data."""

    # Initialize tables
    init_db()

    db = SessionLocal()

    try:
        # Check if data already exists
        if db.query(Course).count() > 0:
            print("Database already seeded. Skipping...")
            return

        # Bootstrap admin
        admin_email = os.getenv("SEED_ADMIN_EMAIL", "admin@campus.edu").lower()
        if db.query(User).filter(User.email == admin_email).first() is None:
            db.add(User(
                username=os.getenv("SEED_ADMIN_USERNAME", "admin").lower(),
                email=admin_email,
                password_hash=hash_password(os.getenv("SEED_ADMIN_PASSWORD", "change-me-now")),
                role=UserRole.ADMIN,
            ))

        # Create Courses
        courses_data = [
            ("Introduction to Programming", "CS101", 3, ClassType.LECTURE),
            ("Programming Lab", "CS101L", 1, ClassType.LAB),
            ("Discrete Mathematics", "CS102", 3, ClassType.LECTURE),
            ("Digital Logic Design", "CS103", 3, ClassType.LECTURE),
            ("Calculus I", "MA101", 3, ClassType.LECTURE),
            ("Technical Writing", "HU101", 2, ClassType.LECTURE),
        ]

        courses = {}
        for name, code, credits, class_type in courses_data:
            course = Course(
                course_name=name, course_code=code, credit_hours=credits,
                class_type=class_type, semester="1", department="CS",
            )
            db.add(course)
            courses[code] = course

        db.flush()

        # Create Instructors
        instructors_data = [
            ("Dr. Ayesha Khan", "ayesha.khan@campus.edu", ["CS101", "CS101L"], WEEKDAYS),
            ("Prof. Bilal Ahmed", "bilal.ahmed@campus.edu", ["CS102", "CS103"], ["Monday", "Wednesday", "Friday"]),
            ("Dr. Sara Malik", "sara.malik@campus.edu", ["MA101"], ["Tuesday", "Thursday"]),
            ("Mr. Usman Tariq", "usman.tariq@campus.edu", ["HU101"], WEEKDAYS),
        ]

        for name, email, codes, days in instructors_data:
            db.add(Instructor(
                name=name,
                email=email,
                availability=_availability(days),
                subjects=[courses[c] for c in codes],
            ))

        # Create Rooms
        rooms_data = [
            ("R-101", RoomType.ROOM, 60, Equipment.LECTURE),
            ("R-102", RoomType.ROOM, 50, Equipment.LECTURE),
            ("LAB-1", RoomType.COMPUTER_LAB, 30, Equipment.LAB),
        ]

        for number, room_type, capacity, equipment in rooms_data:
            db.add(Room(
                room_number=number,
                room_type=room_type,
                capacity=capacity,
                equipment=equipment,
                availability=_availability(WEEKDAYS),
            ))

        db.commit()
        print("Database seeded successfully!")
        print(f"  Admin: {admin_email}")
        print(f"  Courses: {len(courses_data)}")
        print(f"  Instructors: {len(instructors_data)}")
        print(f"  Rooms: {len(rooms_data)}")

    except Exception as e:
        db.rollback()
        print(f"Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
