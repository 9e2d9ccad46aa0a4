"""School, code and membership schema definitions."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from schemas.common import normalize_email


class RegisterSchoolRequest(BaseModel):
    school_name: str = Field(min_length=1)
    admin_email: str
    admin_password: str = Field(min_length=8)
    admin_full_name: str = Field(min_length=1)

    @field_validator("admin_email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("school_name", "admin_full_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class RegisterSchoolResponse(BaseModel):
    school_id: str
    school_code: str
    admin_user_id: str


class CreateTeacherRequest(BaseModel):
    email: str
    full_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("full_name")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class CreatedTeacherInfo(BaseModel):
    user_id: str
    email: str
    school_id: str
    temporary_password: str = Field(description="Shown once; the teacher should change it.")


class SchoolCodeInfo(BaseModel):
    school_id: str
    code: str
    expires_at: Optional[str] = Field(
        default=None, description="ISO timestamp; None when the code does not expire."
    )


class TeacherInfo(BaseModel):
    id: str
    school_id: str
    is_supervisor: bool
    full_name: Optional[str] = None
    email: Optional[str] = None


class StudentInfo(BaseModel):
    id: str
    school_id: str
    status: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    create_at: str


class JoinSchoolRequest(BaseModel):
    school_code: str = Field(min_length=1)
