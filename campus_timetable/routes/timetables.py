"""
API routes for timetable generation and management.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from campus_timetable.dependencies import get_any_user, get_current_admin, get_current_student
from campus_timetable.models.database import get_db
from campus_timetable.models.models import Shift, Timetable, User, UserRole
from campus_timetable.schemas.schemas import (
    ClassEntryUpdate, GenerateTimetableRequest, GenerationResponse, SendTimetableRequest,
    SendToAllRequest, TimetableResponse, UnscheduledCourse, ValidationReport, api_response,
)
from campus_timetable.services.exceptions import (
    EntryNotFound, InvariantViolation, PreconditionFailed, TimetableConflict
)
from campus_timetable.services.mailer import EmailDeliveryError, send_timetable_email
from campus_timetable.services.pdf_export import render_timetable_pdf
from campus_timetable.services.scheduling_engine import (
    find_latest_timetable, generate_timetable as run_generation, update_class_entry
)
from campus_timetable.services.validators import ConstraintValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/timetables", tags=["timetables"])


def _latest_or_404(
    db: Session,
    department: Optional[str] = None,
    semester: Optional[str] = None,
    shift: Optional[Shift] = None,
) -> Timetable:
    timetable = find_latest_timetable(db, department, semester, shift)
    if timetable is None:
        raise HTTPException(status_code=404, detail="Timetable not found")
    return timetable


def _timetable_or_404(db: Session, timetable_id: int) -> Timetable:
    timetable = db.query(Timetable).filter(Timetable.id == timetable_id).first()
    if timetable is None:
        raise HTTPException(status_code=404, detail="Timetable not found")
    return timetable


def _pdf_response(timetable: Timetable) -> Response:
    pdf_bytes = render_timetable_pdf(timetable)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="timetable.pdf"'},
    )


@router.post("/generate", status_code=status.HTTP_201_CREATED)
async def generate_timetable(
    request: GenerateTimetableRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    try:
        result = run_generation(
            db,
            request.department,
            request.semester,
            request.shift,
            requeue_unmatched=request.requeue_unmatched,
            match_qualified=request.match_qualified,
        )
    except TimetableConflict as e:
        raise HTTPException(status_code=409, detail=e.message)
    except PreconditionFailed as e:
        raise HTTPException(status_code=400, detail=e.message)
    except InvariantViolation as e:
        logger.exception("Availability ledger out of sync during generation")
        raise HTTPException(status_code=500, detail=f"Error generating timetable: {e.message}")
    except Exception as e:
        logger.exception("Timetable generation failed")
        raise HTTPException(status_code=500, detail=f"Error generating timetable: {str(e)}")

    timetable = TimetableResponse.model_validate(result.timetable)
    payload = GenerationResponse(
        timetable=timetable,
        classes_scheduled=sum(len(day.classes) for day in timetable.schedule),
        unscheduled_courses=[
            UnscheduledCourse(course_id=c.course_id, course_code=c.course_code, course_name=c.course_name)
            for c in result.unscheduled_courses
        ],
    )
    logger.info(f"Admin '{admin.username}' generated timetable {timetable.id}")
    return api_response(payload, "Timetable auto-generated", status.HTTP_201_CREATED)


@router.get("")
async def get_timetable(
    department: Optional[str] = None,
    semester: Optional[str] = None,
    shift: Optional[Shift] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    timetable = _latest_or_404(db, department, semester, shift)
    return api_response(TimetableResponse.model_validate(timetable), "Timetable retrieved successfully")


@router.get("/download")
async def download_timetable_pdf(
    department: Optional[str] = None,
    semester: Optional[str] = None,
    shift: Optional[Shift] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_any_user),
):
    timetable = _latest_or_404(db, department, semester, shift)
    try:
        return _pdf_response(timetable)
    except Exception as e:
        logger.exception("PDF rendering failed")
        raise HTTPException(status_code=500, detail=f"Error exporting timetable: {str(e)}")


@router.post("/send")
async def send_timetable(
    request: SendTimetableRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    timetable = _latest_or_404(db, request.department, request.semester, request.shift)
    pdf_bytes = render_timetable_pdf(timetable)
    try:
        send_timetable_email([str(request.email)], pdf_bytes)
    except EmailDeliveryError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return api_response(None, "Timetable sent successfully")


@router.post("/send-to-all")
async def send_timetable_to_all(
    request: Optional[SendToAllRequest] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    request = request or SendToAllRequest()
    timetable = _latest_or_404(db, request.department, request.semester, request.shift)

    students = db.query(User).filter(User.role == UserRole.STUDENT).order_by(User.id).all()
    if not students:
        raise HTTPException(status_code=404, detail="No students to send the timetable to")

    pdf_bytes = render_timetable_pdf(timetable)
    try:
        sent = send_timetable_email([s.email for s in students], pdf_bytes)
    except EmailDeliveryError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return api_response({"recipients": len(sent)}, "Timetable sent to all students")


@router.get("/student/view")
async def view_student_timetable(
    department: Optional[str] = None,
    semester: Optional[str] = None,
    shift: Optional[Shift] = None,
    db: Session = Depends(get_db),
    student: User = Depends(get_current_student),
):
    timetable = _latest_or_404(db, department, semester, shift)
    return api_response(TimetableResponse.model_validate(timetable), "Student timetable retrieved successfully")


@router.patch("/entries/{entry_id}")
async def edit_timetable_entry(
    entry_id: int,
    request: ClassEntryUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")
    try:
        timetable = update_class_entry(db, entry_id, changes)
    except EntryNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return api_response(TimetableResponse.model_validate(timetable), "Timetable entry updated successfully")


@router.get("/{timetable_id}")
async def get_timetable_by_id(
    timetable_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    timetable = _timetable_or_404(db, timetable_id)
    return api_response(TimetableResponse.model_validate(timetable), "Timetable retrieved successfully")


@router.get("/{timetable_id}/validate", response_model=ValidationReport)
async def validate_timetable(
    timetable_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    timetable = _timetable_or_404(db, timetable_id)
    is_valid, conflicts = ConstraintValidator(timetable).validate_full_schedule()
    return ValidationReport(
        timetable_id=timetable.id,
        is_valid=is_valid,
        total_conflicts=len(conflicts),
        conflicts=conflicts,
    )


@router.delete("/{timetable_id}")
async def delete_timetable(
    timetable_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    timetable = _timetable_or_404(db, timetable_id)
    db.delete(timetable)
    db.commit()
    logger.info(f"Admin '{admin.username}' deleted timetable {timetable_id}")
    return api_response({"id": timetable_id}, "Timetable deleted successfully")
