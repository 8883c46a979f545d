"""
User & Auth Routes - Campus Timetable System
POST   /api/v1/users/register            - student self-registration
POST   /api/v1/users/login               - any role; /admin/login and /student/login restrict the role
POST   /api/v1/users/refresh-token       - exchange a refresh token for a new pair
POST   /api/v1/users/logout
GET    /api/v1/users/profile
PATCH  /api/v1/users/update-profile
POST   /api/v1/users/change-password
DELETE /api/v1/users/delete-account
POST   /api/v1/users/admin/register      - admins create other admins
GET    /api/v1/users/admin-dashboard
GET    /api/v1/users/student-dashboard
"""

import logging
import os
from typing import Optional

import bcrypt
from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campus_timetable.dependencies import (
    REFRESH_TOKEN_SECRET, create_access_token, create_refresh_token, decode_token,
    get_any_user, get_current_admin, get_current_student,
)
from campus_timetable.models.database import get_db
from campus_timetable.models.models import Course, Instructor, Room, Timetable, User, UserRole
from campus_timetable.schemas.schemas import (
    AdminRegisterRequest, LoginRequest, PasswordChange, ProfileUpdate, RefreshTokenRequest,
    StudentRegisterRequest, TimetableSummary, TokenResponse, UserResponse, api_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])

REFRESH_COOKIE = "refresh_token"
COOKIE_SECURE = os.getenv("ENV", "development") == "production"


# ── Helpers ───────────────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def _issue_tokens(db: Session, user: User, response: Response) -> TokenResponse:
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user)
    user.refresh_token = refresh_token
    db.commit()
    db.refresh(user)

    response.set_cookie(
        REFRESH_COOKIE, refresh_token,
        httponly=True, secure=COOKIE_SECURE, samesite="strict",
    )
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserResponse.model_validate(user),
    )


def _ensure_unique(db: Session, username: str, email: str, registration_number: Optional[str] = None,
                   exclude_id: Optional[int] = None):
    clauses = [User.username == username, User.email == email]
    if registration_number:
        clauses.append(User.registration_number == registration_number)
    query = db.query(User).filter(or_(*clauses))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username, email, or registration number already exists",
        )


def _create_user(db: Session, role: UserRole, username: str, email: str, password: str,
                 registration_number: Optional[str] = None) -> User:
    username = username.strip().lower()
    email = str(email).strip().lower()
    _ensure_unique(db, username, email, registration_number)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        registration_number=registration_number,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username, email, or registration number already exists",
        )
    db.refresh(user)
    logger.info(f"Registered {role.value} user '{username}'")
    return user


def _login(db: Session, body: LoginRequest, response: Response, role: Optional[UserRole] = None) -> TokenResponse:
    identifier = body.username_or_email.strip().lower()
    user = db.query(User).filter(or_(User.email == identifier, User.username == identifier)).first()

    if user is None or (role is not None and user.role != role):
        logger.warning(f"Failed login for '{identifier}'")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not verify_password(body.password, user.password_hash):
        logger.warning(f"Failed login for '{identifier}': wrong password")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    return _issue_tokens(db, user, response)


# ── Registration & sessions ───────────────────────────────────────────────────

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_student(body: StudentRegisterRequest, response: Response, db: Session = Depends(get_db)):
    """Students register themselves; admins are created by other admins or the seed script."""
    user = _create_user(
        db, UserRole.STUDENT, body.username, body.email, body.password,
        registration_number=body.registration_number.strip(),
    )
    tokens = _issue_tokens(db, user, response)
    return api_response(tokens, "Student registered successfully", status.HTTP_201_CREATED)


@router.post("/admin/register", status_code=status.HTTP_201_CREATED)
async def register_admin(
    body: AdminRegisterRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    user = _create_user(db, UserRole.ADMIN, body.username, body.email, body.password)
    logger.info(f"Admin '{admin.username}' created admin '{user.username}'")
    return api_response(UserResponse.model_validate(user), "Admin registered successfully", status.HTTP_201_CREATED)


@router.post("/login")
async def login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    tokens = _login(db, body, response)
    return api_response(tokens, "Login successful")


@router.post("/admin/login")
async def admin_login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    tokens = _login(db, body, response, role=UserRole.ADMIN)
    return api_response(tokens, "Admin login successful")


@router.post("/student/login")
async def student_login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    tokens = _login(db, body, response, role=UserRole.STUDENT)
    return api_response(tokens, "Student login successful")


@router.post("/refresh-token")
async def refresh_token(
    response: Response,
    body: Optional[RefreshTokenRequest] = None,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    db: Session = Depends(get_db),
):
    token = (body.refresh_token if body else None) or refresh_cookie
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Refresh token not found, please login again")

    try:
        user_id = decode_token(token, REFRESH_TOKEN_SECRET, "refresh")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired refresh token")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.refresh_token != token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token has been revoked")

    tokens = _issue_tokens(db, user, response)
    return api_response(tokens, "Tokens refreshed successfully")


@router.post("/logout")
async def logout(response: Response, user: User = Depends(get_any_user), db: Session = Depends(get_db)):
    user.refresh_token = None
    db.commit()
    response.delete_cookie(REFRESH_COOKIE, httponly=True, secure=COOKIE_SECURE, samesite="strict")
    return api_response(None, "Logout successful")


# ── Profile ───────────────────────────────────────────────────────────────────

@router.get("/profile")
async def get_profile(user: User = Depends(get_any_user)):
    return api_response(UserResponse.model_validate(user), "User profile retrieved")


@router.patch("/update-profile")
async def update_profile(body: ProfileUpdate, user: User = Depends(get_any_user), db: Session = Depends(get_db)):
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    if "username" in data:
        data["username"] = data["username"].strip().lower()
    if "email" in data:
        data["email"] = str(data["email"]).strip().lower()
    if user.role != UserRole.STUDENT:
        data.pop("registration_number", None)

    _ensure_unique(
        db,
        data.get("username", user.username),
        data.get("email", user.email),
        data.get("registration_number"),
        exclude_id=user.id,
    )
    for key, value in data.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return api_response(UserResponse.model_validate(user), "User profile updated successfully")


@router.post("/change-password")
async def change_password(body: PasswordChange, user: User = Depends(get_any_user), db: Session = Depends(get_db)):
    if not verify_password(body.old_password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    user.password_hash = hash_password(body.new_password)
    # Existing sessions must log in again
    user.refresh_token = None
    db.commit()
    return api_response(None, "Password updated successfully")


@router.delete("/delete-account")
async def delete_account(user: User = Depends(get_any_user), db: Session = Depends(get_db)):
    if user.role == UserRole.ADMIN:
        admins = db.query(User).filter(User.role == UserRole.ADMIN).count()
        if admins <= 1:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="Cannot delete the last admin account")
    db.delete(user)
    db.commit()
    return api_response(None, "User account deleted successfully")


# ── Dashboards ────────────────────────────────────────────────────────────────

@router.get("/admin-dashboard")
async def admin_dashboard(admin: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    return api_response({
        "admin": UserResponse.model_validate(admin),
        "total_courses": db.query(Course).count(),
        "total_instructors": db.query(Instructor).count(),
        "total_rooms": db.query(Room).count(),
        "active_rooms": db.query(Room).filter(Room.is_active == True).count(),
        "total_timetables": db.query(Timetable).count(),
        "total_students": db.query(User).filter(User.role == UserRole.STUDENT).count(),
    }, "Admin dashboard")


@router.get("/student-dashboard")
async def student_dashboard(student: User = Depends(get_current_student), db: Session = Depends(get_db)):
    timetables = db.query(Timetable).order_by(Timetable.created_at.desc(), Timetable.id.desc()).all()
    return api_response({
        "student": UserResponse.model_validate(student),
        "timetables": [TimetableSummary.model_validate(t) for t in timetables],
    }, "Student dashboard")
