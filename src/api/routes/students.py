"""Student membership routes."""

from typing import Optional

from fastapi import APIRouter, Depends, status

from api.routes.auth import get_auth_context
from core.dependencies import StudentManagerDep
from schemas.common import DataResponse
from schemas.school import JoinSchoolRequest
from schemas.user import AuthContext

router = APIRouter(prefix="/api/students", tags=["Student"])


def _student_to_dict(student) -> dict:
    return {
        "id": student.id,
        "school_id": student.school_id,
        "status": student.status,
        "create_at": student.create_at,
        "update_at": student.update_at,
    }


@router.post(
    "/join",
    response_model=DataResponse[dict],
    status_code=status.HTTP_201_CREATED,
    summary="Join a school with its code",
)
def join_school(
    req: JoinSchoolRequest,
    student_manager: StudentManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Request to join a school as a student; a teacher must approve."""
    student = student_manager.join_school(ctx, req.school_code)
    return {"data": _student_to_dict(student), "message": "Join request submitted"}


@router.post(
    "/{student_id}/approve",
    response_model=DataResponse[dict],
    summary="Approve a pending student",
)
def approve_student(
    student_id: str,
    student_manager: StudentManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    student = student_manager.approve_student(ctx, student_id)
    return {"data": _student_to_dict(student), "message": "Student approved successfully"}


@router.delete(
    "/{student_id}",
    response_model=DataResponse[Optional[dict]],
    summary="Revoke a student's access",
)
def revoke_student_access(
    student_id: str,
    student_manager: StudentManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Remove the student from their school. This deletes the student row."""
    student_manager.revoke_student_access(ctx, student_id)
    return {"data": None, "message": "Student access has been revoked"}
