"""Authentication routes.

This module handles HTTP endpoints for signup, login and student
self-registration, and provides the bearer-token dependency every protected
route uses.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import pytz
from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY
from core.dependencies import RoleManagerDep, StudentManagerDep, UserManagerDep
from core.exceptions import UnauthorizedError
from schemas.common import DataResponse
from schemas.user import (
    AuthContext,
    CurrentUserResponse,
    LoginRequest,
    LoginResponse,
    ProfileInfo,
    SignupRequest,
    StudentRegisterRequest,
)
from utils.user_manager import profile_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# Missing credentials are reported through our own error envelope
security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token.

    Args:
        data: Data to encode in the token.
        expires_delta: Optional expiration time delta.

    Returns:
        Encoded JWT token string.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(pytz.utc) + expires_delta
    else:
        expire = datetime.now(pytz.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Verify JWT token from Authorization header.

    Args:
        credentials: HTTP Bearer token credentials.

    Returns:
        Decoded token payload.

    Raises:
        UnauthorizedError: If the header is missing or the token is invalid
            or expired.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authorization header is required")
    try:
        payload = jwt.decode(
            credentials.credentials, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM]
        )
    except JWTError:
        raise UnauthorizedError()
    if payload.get("sub") is None:
        raise UnauthorizedError()
    return payload


def get_auth_context(
    user_manager: UserManagerDep,
    token_payload: dict = Depends(verify_token),
) -> AuthContext:
    """Turn a verified token into the caller's AuthContext.

    Raises:
        UnauthorizedError: If the identity no longer exists.
    """
    user = user_manager.get_user_by_id(token_payload["sub"])
    if user is None:
        raise UnauthorizedError("User not found")
    return AuthContext(user_id=user.user_id, email=user.email)


@router.post(
    "/signup",
    response_model=DataResponse[ProfileInfo],
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
def signup(req: SignupRequest, user_manager: UserManagerDep) -> dict:
    """Create an identity with no role; roles come from invitations or codes."""
    profile = user_manager.signup(req.email, req.password, req.full_name)
    return {"data": profile_to_dict(profile), "message": "User registered successfully"}


@router.post("/login", response_model=DataResponse[LoginResponse], summary="Log in")
def login(req: LoginRequest, user_manager: UserManagerDep) -> dict:
    """Exchange email and password for a bearer token.

    Raises:
        UnauthorizedError: If the credentials are wrong.
    """
    user = user_manager.authenticate(req.email, req.password)
    token = create_access_token(
        data={"sub": user.user_id},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    profile = user_manager.get_profile(user.user_id)
    logger.info("User %s logged in", user.user_id)
    return {"data": {"token": token, "profile": profile_to_dict(profile)}}


@router.get("/me", response_model=DataResponse[CurrentUserResponse], summary="Current user")
def get_current_user_info(
    user_manager: UserManagerDep,
    role_manager: RoleManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    profile = user_manager.get_profile(ctx.user_id)
    return {
        "data": {
            "profile": profile_to_dict(profile),
            "role": role_manager.describe(ctx.user_id),
        }
    }


@router.post(
    "/register-student",
    response_model=DataResponse[dict],
    status_code=status.HTTP_201_CREATED,
    summary="Sign up as a student with a school code",
)
def register_student(req: StudentRegisterRequest, student_manager: StudentManagerDep) -> dict:
    """Create a pending student account for the school owning ``school_code``.

    Raises:
        BadRequestError: If the school code is unknown or expired.
        ConflictError: If the email is already registered.
    """
    result = student_manager.register_student(
        req.email, req.password, req.full_name, req.school_code
    )
    return {"data": result, "message": "Registration submitted; awaiting approval"}
