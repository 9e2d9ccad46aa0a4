"""Invitation routes.

Teachers and supervisors issue invitations; invitees verify and accept them
with the token from their link or the shareable code.
"""

import logging

from fastapi import APIRouter, Depends, status

from api.routes.auth import get_auth_context
from core.dependencies import InvitationManagerDep
from schemas.common import DataResponse
from schemas.invitation import (
    AcceptInvitationResponse,
    InvitationInfo,
    InvitationVerification,
    InviteStudentRequest,
    InviteTeacherRequest,
)
from schemas.user import AuthContext
from utils.invitation_manager import invitation_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invitations", tags=["Invitation"])


@router.post(
    "/teachers",
    response_model=DataResponse[InvitationInfo],
    status_code=status.HTTP_201_CREATED,
    summary="Invite a teacher",
)
def invite_teacher(
    req: InviteTeacherRequest,
    invitation_manager: InvitationManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Invite a teacher by email. Only supervisors of the school may do this."""
    invitation = invitation_manager.invite_teacher(ctx, req.school_id, req.email)
    return {
        "data": invitation_to_dict(invitation),
        "message": "Teacher invitation sent successfully",
    }


@router.post(
    "/students",
    response_model=DataResponse[InvitationInfo],
    status_code=status.HTTP_201_CREATED,
    summary="Invite a student",
)
def invite_student(
    req: InviteStudentRequest,
    invitation_manager: InvitationManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Invite a student by email or create a shareable invitation code."""
    invitation = invitation_manager.invite_student(
        ctx, req.school_id, req.method, email=req.email
    )
    return {
        "data": invitation_to_dict(invitation),
        "message": "Student invitation created successfully",
    }


@router.get(
    "/{token}",
    response_model=DataResponse[InvitationVerification],
    summary="Verify an invitation",
)
def verify_invitation(token: str, invitation_manager: InvitationManagerDep) -> dict:
    """Check an invitation token or code without consuming it.

    No authentication is required so that invitees can see which school
    invited them before signing up.
    """
    return {"data": invitation_manager.verify_invitation(token)}


@router.post(
    "/{token}/accept",
    response_model=DataResponse[AcceptInvitationResponse],
    summary="Accept an invitation",
)
def accept_invitation(
    token: str,
    invitation_manager: InvitationManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    result = invitation_manager.accept_invitation(ctx, token)
    return {"data": result, "message": "Invitation accepted successfully"}


@router.post(
    "/{invitation_id}/resend",
    response_model=DataResponse[InvitationInfo],
    summary="Resend an invitation",
)
def resend_invitation(
    invitation_id: str,
    invitation_manager: InvitationManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    invitation = invitation_manager.resend_invitation(ctx, invitation_id)
    return {"data": invitation_to_dict(invitation), "message": "Invitation resent"}


@router.delete(
    "/{invitation_id}",
    response_model=DataResponse[InvitationInfo],
    summary="Cancel an invitation",
)
def cancel_invitation(
    invitation_id: str,
    invitation_manager: InvitationManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    invitation = invitation_manager.cancel_invitation(ctx, invitation_id)
    return {"data": invitation_to_dict(invitation), "message": "Invitation cancelled"}
