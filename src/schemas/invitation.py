"""Invitation schema definitions."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from schemas.common import normalize_email


class InviteTeacherRequest(BaseModel):
    school_id: str
    email: str

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)


class InviteStudentRequest(BaseModel):
    school_id: str
    method: Literal["email", "code"]
    email: Optional[str] = None

    @model_validator(mode="after")
    def _email_required_for_email_method(self):
        if self.method == "email":
            if not self.email:
                raise ValueError("email is required when method is 'email'")
            self.email = normalize_email(self.email)
        elif self.email:
            self.email = normalize_email(self.email)
        return self


class InvitationInfo(BaseModel):
    id: str
    school_id: str
    role: str
    email: Optional[str] = None
    code: Optional[str] = None
    invitation_token: str
    status: str
    created_by: str
    created_at: str
    expires_at: str
    accepted_at: Optional[str] = None


class InvitationVerification(BaseModel):
    valid: bool
    school_id: str
    school_name: str
    email: Optional[str] = None
    role: str
    status: str
    expires_at: str


class AcceptInvitationResponse(BaseModel):
    school_id: str
    role: str = Field(description="'teacher' or 'student'")
