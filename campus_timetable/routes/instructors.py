"""
Instructor CRUD routes (admin only).
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from campus_timetable.dependencies import get_current_admin
from campus_timetable.models.database import get_db
from campus_timetable.models.models import ClassEntry, Course, Instructor
from campus_timetable.schemas.schemas import (
    InstructorCreate, InstructorResponse, InstructorUpdate, api_response
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/instructors", tags=["instructors"], dependencies=[Depends(get_current_admin)])


def _instructor_or_404(db: Session, instructor_id: int) -> Instructor:
    instructor = db.query(Instructor).filter(Instructor.id == instructor_id).first()
    if not instructor:
        raise HTTPException(status_code=404, detail="Instructor not found")
    return instructor


def _ensure_email_free(db: Session, email: str, exclude_id: int = None):
    query = db.query(Instructor).filter(Instructor.email == email)
    if exclude_id is not None:
        query = query.filter(Instructor.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Instructor already exists with this email")


def _resolve_subjects(db: Session, course_ids: List[int]) -> List[Course]:
    wanted = list(dict.fromkeys(course_ids))
    if not wanted:
        return []
    courses = db.query(Course).filter(Course.id.in_(wanted)).all()
    missing = set(wanted) - {c.id for c in courses}
    if missing:
        raise HTTPException(status_code=404, detail=f"Courses not found: {sorted(missing)}")
    return courses


def _availability_json(slots) -> list:
    return [slot.model_dump(mode="json") for slot in slots]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_instructor(body: InstructorCreate, db: Session = Depends(get_db)):
    email = str(body.email).lower()
    _ensure_email_free(db, email)
    instructor = Instructor(
        name=body.name,
        email=email,
        availability=_availability_json(body.availability),
        subjects=_resolve_subjects(db, body.subjects),
    )
    db.add(instructor)
    db.commit()
    db.refresh(instructor)
    return api_response(InstructorResponse.model_validate(instructor), "Instructor created successfully", 201)


@router.get("")
async def list_instructors(db: Session = Depends(get_db)):
    instructors = db.query(Instructor).order_by(Instructor.id).all()
    return api_response(
        [InstructorResponse.model_validate(i) for i in instructors],
        "Instructors fetched successfully",
    )


@router.get("/{instructor_id}")
async def get_instructor(instructor_id: int, db: Session = Depends(get_db)):
    instructor = _instructor_or_404(db, instructor_id)
    return api_response(InstructorResponse.model_validate(instructor), "Instructor fetched successfully")


@router.patch("/{instructor_id}")
async def update_instructor(instructor_id: int, body: InstructorUpdate, db: Session = Depends(get_db)):
    instructor = _instructor_or_404(db, instructor_id)
    data = body.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in data:
        data["email"] = str(data["email"]).lower()
        _ensure_email_free(db, data["email"], exclude_id=instructor.id)
    if "subjects" in data:
        instructor.subjects = _resolve_subjects(db, data.pop("subjects"))
    if "availability" in data:
        data.pop("availability")
        instructor.availability = _availability_json(body.availability)

    for key, value in data.items():
        setattr(instructor, key, value)
    db.commit()
    db.refresh(instructor)
    return api_response(InstructorResponse.model_validate(instructor), "Instructor updated successfully")


@router.delete("/{instructor_id}")
async def delete_instructor(instructor_id: int, db: Session = Depends(get_db)):
    instructor = _instructor_or_404(db, instructor_id)
    referenced = db.query(ClassEntry).filter(ClassEntry.instructor_name == instructor.name).count()
    if referenced:
        logger.warning(f"Deleting instructor '{instructor.name}' still listed in {referenced} timetable class(es)")
    deleted = InstructorResponse.model_validate(instructor)
    db.delete(instructor)
    db.commit()
    return api_response(deleted, "Instructor deleted successfully")
