"""
JWT Auth Dependencies - Campus Timetable System

Usage:
    from campus_timetable.dependencies import get_current_admin, require_roles

    @router.post("/endpoint")
    async def my_route(admin: User = Depends(get_current_admin)):
        ...

    router = APIRouter(dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.STUDENT))])
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from campus_timetable.models.database import get_db
from campus_timetable.models.models import User, UserRole

load_dotenv()

ACCESS_TOKEN_SECRET  = os.getenv("ACCESS_TOKEN_SECRET", "change-this-secret")
REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET", "change-this-refresh-secret")
JWT_ALGORITHM        = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
REFRESH_TOKEN_EXPIRE_DAYS   = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "10"))

_bearer = HTTPBearer(auto_error=False)


def create_access_token(user: User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "role": user.role.value,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, ACCESS_TOKEN_SECRET, algorithm=JWT_ALGORITHM)


def create_refresh_token(user: User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    payload = {"sub": str(user.id), "type": "refresh", "jti": uuid.uuid4().hex, "exp": expire}
    return jwt.encode(payload, REFRESH_TOKEN_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str, secret: str, expected_type: str) -> int:
    """
    Verify a token and return the user id it was issued for.
    Raises ValueError on any failure.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError(str(exc)) from exc
    if payload.get("type") != expected_type:
        raise ValueError("Wrong token type")
    user_id = payload.get("sub")
    if not user_id:
        raise ValueError("Missing claims")
    return int(user_id)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    db: Session = Depends(get_db),
) -> User:
    """
    Verify the Bearer JWT from the Authorization header and load its user.
    Raises HTTP 401 on any failure.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Unauthorized Request: Token missing")

    try:
        user_id = decode_token(credentials.credentials, ACCESS_TOKEN_SECRET, "access")
    except ValueError:
        raise _unauthorized("Invalid or expired token.")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise _unauthorized("Invalid Access Token: User not found")
    return user


def require_roles(*roles: UserRole):
    """Build a dependency that admits only users holding one of the given roles."""
    allowed = frozenset(roles)

    def _check_role(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden: You do not have access to this resource",
            )
        return user

    return _check_role


get_current_admin = require_roles(UserRole.ADMIN)
get_current_student = require_roles(UserRole.STUDENT)
get_any_user = require_roles(UserRole.ADMIN, UserRole.STUDENT)
