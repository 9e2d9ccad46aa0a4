"""User and authentication schema definitions."""

from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from schemas.common import normalize_email


@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller, passed explicitly into manager calls."""

    user_id: str
    email: str


class SignupRequest(BaseModel):
    email: str
    password: str = Field(min_length=8, description="Plain text password.")
    full_name: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)


class StudentRegisterRequest(SignupRequest):
    """Signup that also joins a school through its code."""

    school_code: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ProfileInfo(BaseModel):
    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    user_type: Optional[str] = None
    school_id: Optional[str] = None


class RoleInfo(BaseModel):
    """Resolved role and the capabilities it grants."""

    role: str
    school_id: Optional[str] = None
    is_supervisor: bool = False
    capabilities: List[str] = Field(default_factory=list)


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    profile: ProfileInfo


class CurrentUserResponse(BaseModel):
    profile: ProfileInfo
    role: RoleInfo
