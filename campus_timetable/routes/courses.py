"""
Course CRUD routes (admin only).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from campus_timetable.dependencies import get_current_admin
from campus_timetable.models.database import get_db
from campus_timetable.models.models import ClassEntry, Course
from campus_timetable.schemas.schemas import CourseCreate, CourseResponse, CourseUpdate, api_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/courses", tags=["courses"], dependencies=[Depends(get_current_admin)])


def _course_or_404(db: Session, course_id: int) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def _ensure_code_free(db: Session, course_code: str, exclude_id: int = None):
    query = db.query(Course).filter(Course.course_code == course_code)
    if exclude_id is not None:
        query = query.filter(Course.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Course already exists with this code")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_course(body: CourseCreate, db: Session = Depends(get_db)):
    _ensure_code_free(db, body.course_code)
    course = Course(**body.model_dump())
    db.add(course)
    db.commit()
    db.refresh(course)
    return api_response(CourseResponse.model_validate(course), "Course created successfully", 201)


@router.get("")
async def list_courses(department: str = None, semester: str = None, db: Session = Depends(get_db)):
    query = db.query(Course)
    if department:
        query = query.filter(Course.department == department)
    if semester:
        query = query.filter(Course.semester == semester)
    courses = query.order_by(Course.id).all()
    return api_response([CourseResponse.model_validate(c) for c in courses], "Courses fetched successfully")


@router.get("/{course_id}")
async def get_course(course_id: int, db: Session = Depends(get_db)):
    course = _course_or_404(db, course_id)
    return api_response(CourseResponse.model_validate(course), "Course fetched successfully")


@router.patch("/{course_id}")
async def update_course(course_id: int, body: CourseUpdate, db: Session = Depends(get_db)):
    course = _course_or_404(db, course_id)
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    if "course_code" in data:
        _ensure_code_free(db, data["course_code"], exclude_id=course.id)
    for key, value in data.items():
        setattr(course, key, value)
    db.commit()
    db.refresh(course)
    return api_response(CourseResponse.model_validate(course), "Course updated successfully")


@router.delete("/{course_id}")
async def delete_course(course_id: int, db: Session = Depends(get_db)):
    course = _course_or_404(db, course_id)
    referenced = db.query(ClassEntry).filter(ClassEntry.course_code == course.course_code).count()
    if referenced:
        # Timetables keep their copied course details
        logger.warning(f"Deleting course {course.course_code} still listed in {referenced} timetable class(es)")
    deleted = CourseResponse.model_validate(course)
    db.delete(course)
    db.commit()
    return api_response(deleted, "Course deleted successfully")
