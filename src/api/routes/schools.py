"""School routes.

Registration of new schools, school code management and the per-school
teacher, student, invitation and analytics listings.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from api.routes.auth import get_auth_context
from core.dependencies import (
    InvitationManagerDep,
    SchoolManagerDep,
    SessionLogManagerDep,
    StudentManagerDep,
)
from schemas.common import DataResponse
from schemas.invitation import InvitationInfo
from schemas.school import (
    CreatedTeacherInfo,
    CreateTeacherRequest,
    RegisterSchoolRequest,
    RegisterSchoolResponse,
    SchoolCodeInfo,
    StudentInfo,
    TeacherInfo,
)
from schemas.session_log import SchoolUsageSummary
from schemas.user import AuthContext
from utils.invitation_manager import invitation_to_dict

router = APIRouter(prefix="/api/schools", tags=["School"])


@router.post(
    "/register",
    response_model=DataResponse[RegisterSchoolResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register a school and its administrator",
)
def register_school(req: RegisterSchoolRequest, school_manager: SchoolManagerDep) -> dict:
    """Register a new school.

    Creates the school, its first join code, the administrator account and
    the administrator's supervisor teacher row in one transaction.

    Raises:
        ConflictError: If the administrator email is already registered.
    """
    result = school_manager.register_school(
        req.school_name, req.admin_email, req.admin_password, req.admin_full_name
    )
    return {"data": result, "message": "School registered successfully"}


@router.get(
    "/{school_id}/code",
    response_model=DataResponse[SchoolCodeInfo],
    summary="Current school code",
)
def get_school_code(
    school_id: str,
    school_manager: SchoolManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    return {"data": school_manager.get_school_code(ctx, school_id)}


@router.post(
    "/{school_id}/code",
    response_model=DataResponse[SchoolCodeInfo],
    status_code=status.HTTP_201_CREATED,
    summary="Generate a new school code",
)
def generate_school_code(
    school_id: str,
    school_manager: SchoolManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Replace the school code; the previous code stops working.

    Raises:
        NotFoundError: If the school does not exist.
        ForbiddenError: If the caller is not a supervisor of the school.
        RateLimitedError: If too many codes were generated recently.
        GenerationExhaustedError: If no unique code could be produced.
    """
    result = school_manager.generate_school_code(ctx, school_id)
    return {"data": result, "message": "School code generated successfully"}


@router.post(
    "/{school_id}/teachers",
    response_model=DataResponse[CreatedTeacherInfo],
    status_code=status.HTTP_201_CREATED,
    summary="Create a teacher account",
)
def create_teacher(
    school_id: str,
    req: CreateTeacherRequest,
    school_manager: SchoolManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Create a teacher of the school and return its temporary password.

    Raises:
        NotFoundError: If the school does not exist.
        ForbiddenError: If the caller is not a supervisor of the school.
        ConflictError: If the email is already registered.
    """
    result = school_manager.create_teacher(ctx, school_id, req.email, req.full_name)
    return {"data": result, "message": "Teacher account created successfully"}


@router.get(
    "/{school_id}/teachers",
    response_model=DataResponse[List[TeacherInfo]],
    summary="List teachers of a school",
)
def list_teachers(
    school_id: str,
    school_manager: SchoolManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    return {"data": school_manager.list_teachers(ctx, school_id)}


@router.get(
    "/{school_id}/students",
    response_model=DataResponse[List[StudentInfo]],
    summary="List students of a school",
)
def list_students(
    school_id: str,
    student_manager: StudentManagerDep,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """List students, optionally only ``pending`` or ``active`` ones."""
    return {"data": student_manager.list_students(ctx, school_id, status=status_filter)}


@router.get(
    "/{school_id}/invitations",
    response_model=DataResponse[List[InvitationInfo]],
    summary="List invitations of a school",
)
def list_invitations(
    school_id: str,
    invitation_manager: InvitationManagerDep,
    role: Optional[str] = None,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    invitations = invitation_manager.list_invitations(ctx, school_id, role=role)
    return {"data": [invitation_to_dict(i) for i in invitations]}


@router.get(
    "/{school_id}/analytics",
    response_model=DataResponse[SchoolUsageSummary],
    summary="Usage summary of a school",
)
def school_analytics(
    school_id: str,
    session_log_manager: SessionLogManagerDep,
    days: int = Query(default=30, ge=1, le=365),
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    return {"data": session_log_manager.school_summary(ctx, school_id, days=days)}
