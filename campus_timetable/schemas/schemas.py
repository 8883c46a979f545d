"""
Pydantic schemas for API request/response validation.
"""

from typing import Any, List, Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator

from campus_timetable.models.models import (
    ClassType, CourseStatus, DayOfWeek, Equipment, RoomLocation, RoomType, Shift, UserRole
)


# Response envelope
class ApiResponse(BaseModel):
    status_code: int = 200
    data: Any = None
    message: str = "Success"
    success: bool = True


def api_response(data: Any = None, message: str = "Success", status_code: int = 200) -> ApiResponse:
    return ApiResponse(status_code=status_code, data=data, message=message, success=status_code < 400)


# Availability
class AvailabilitySlot(BaseModel):
    day: DayOfWeek
    time_slots: List[str] = []

    @field_validator("time_slots")
    @classmethod
    def strip_slots(cls, value: List[str]) -> List[str]:
        return [slot.strip() for slot in value if slot and slot.strip()]


# User Schemas
class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    role: UserRole
    registration_number: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StudentRegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    registration_number: str = Field(..., min_length=1, max_length=30)


class AdminRegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)


class LoginRequest(BaseModel):
    username_or_email: str = Field(..., min_length=1)
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    registration_number: Optional[str] = Field(None, min_length=1, max_length=30)


class PasswordChange(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=6, max_length=72)


# Course Schemas
class CourseBase(BaseModel):
    course_name: str = Field(..., min_length=1, max_length=100)
    course_code: str = Field(..., min_length=1, max_length=20)
    credit_hours: int = Field(..., ge=0)
    class_type: ClassType = ClassType.LECTURE
    semester: str = Field(..., min_length=1, max_length=20)
    department: str = Field(..., min_length=1, max_length=50)
    status: CourseStatus = CourseStatus.ACTIVE


class CourseCreate(CourseBase):
    pass


class CourseUpdate(BaseModel):
    course_name: Optional[str] = Field(None, min_length=1, max_length=100)
    course_code: Optional[str] = Field(None, min_length=1, max_length=20)
    credit_hours: Optional[int] = Field(None, ge=0)
    class_type: Optional[ClassType] = None
    semester: Optional[str] = None
    department: Optional[str] = None
    status: Optional[CourseStatus] = None


class CourseResponse(CourseBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True


class CourseBrief(BaseModel):
    id: int
    course_name: str
    course_code: str

    class Config:
        from_attributes = True


# Instructor Schemas
class InstructorBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    availability: List[AvailabilitySlot] = []


class InstructorCreate(InstructorBase):
    subjects: List[int] = []  # course ids


class InstructorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    subjects: Optional[List[int]] = None
    availability: Optional[List[AvailabilitySlot]] = None


class InstructorResponse(InstructorBase):
    id: int
    subjects: List[CourseBrief] = []
    created_at: datetime

    class Config:
        from_attributes = True


# Room Schemas
class RoomBase(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=20)
    room_type: RoomType = RoomType.ROOM
    capacity: int = Field(..., ge=1)
    availability: List[AvailabilitySlot] = []
    location: RoomLocation = RoomLocation.MAIN_CAMPUS
    equipment: Equipment = Equipment.LECTURE
    is_active: bool = True


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    room_number: Optional[str] = Field(None, min_length=1, max_length=20)
    room_type: Optional[RoomType] = None
    capacity: Optional[int] = Field(None, ge=1)
    availability: Optional[List[AvailabilitySlot]] = None
    location: Optional[RoomLocation] = None
    equipment: Optional[Equipment] = None
    is_active: Optional[bool] = None


class RoomResponse(RoomBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True


# Timetable Schemas
class ClassEntryResponse(BaseModel):
    id: int
    time_slot: str
    course_name: str
    course_code: str
    credit_hours: int
    instructor_name: str
    room_number: str

    class Config:
        from_attributes = True


class ScheduleDayResponse(BaseModel):
    day: DayOfWeek
    classes: List[ClassEntryResponse]

    class Config:
        from_attributes = True


class TimetableResponse(BaseModel):
    id: int
    department: str
    semester: str
    shift: Shift
    schedule: List[ScheduleDayResponse]
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TimetableSummary(BaseModel):
    id: int
    department: str
    semester: str
    shift: Shift
    created_at: datetime

    class Config:
        from_attributes = True


class ClassEntryUpdate(BaseModel):
    time_slot: Optional[str] = Field(None, min_length=1, max_length=20)
    course_name: Optional[str] = Field(None, min_length=1, max_length=100)
    course_code: Optional[str] = Field(None, min_length=1, max_length=20)
    credit_hours: Optional[int] = Field(None, ge=0)
    instructor_name: Optional[str] = Field(None, min_length=1, max_length=100)
    room_number: Optional[str] = Field(None, min_length=1, max_length=20)

    class Config:
        extra = "forbid"


# Timetable Generation Request/Response
class GenerateTimetableRequest(BaseModel):
    department: str = Field(..., min_length=1, max_length=50)
    semester: str = Field(..., min_length=1, max_length=20)
    shift: Shift
    requeue_unmatched: bool = False
    match_qualified: bool = False


class UnscheduledCourse(BaseModel):
    course_id: int
    course_code: str
    course_name: str


class GenerationResponse(BaseModel):
    timetable: TimetableResponse
    classes_scheduled: int
    unscheduled_courses: List[UnscheduledCourse] = []


# Validation Report
class ValidationReport(BaseModel):
    timetable_id: int
    is_valid: bool
    total_conflicts: int
    conflicts: List[str]


# Email
class SendTimetableRequest(BaseModel):
    email: EmailStr
    department: Optional[str] = None
    semester: Optional[str] = None
    shift: Optional[Shift] = None


class SendToAllRequest(BaseModel):
    department: Optional[str] = None
    semester: Optional[str] = None
    shift: Optional[Shift] = None
