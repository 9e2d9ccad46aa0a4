"""Teacher and student invitations.

An invitation binds a random token (and, for student invitations, a short
shareable code) to a school and role. It is consumed exactly once by
``accept_invitation``; the pending -> accepted flip is a conditional UPDATE so
two concurrent accepts of the same token cannot both succeed.
"""

import logging
import uuid
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import INVITATION_EXPIRE_DAYS, SCHOOL_CODE_MAX_ATTEMPTS
from core.exceptions import (
    AlreadyAcceptedError,
    BadRequestError,
    EmailMismatchError,
    ExpiredError,
    ForbiddenError,
    GenerationExhaustedError,
    InternalError,
    NotFoundError,
)
from models.invitation import (
    INVITATION_ACCEPTED,
    INVITATION_EXPIRED,
    INVITATION_PENDING,
    InvitationModel,
)
from models.profile import ProfileModel
from models.school import SchoolModel
from models.student import STUDENT_ACTIVE, StudentModel
from models.teacher import TeacherModel
from schemas.user import AuthContext
from utils.clock import Clock, is_past, utc_now
from utils.codes import generate_invitation_token, generate_student_invite_code
from utils.notifier import InvitationNotifier
from utils.role_manager import ROLE_STUDENT, ROLE_TEACHER, RoleManager, merge_user_type

logger = logging.getLogger(__name__)

INVITE_METHOD_EMAIL = "email"
INVITE_METHOD_CODE = "code"


def invitation_to_dict(invitation: InvitationModel) -> dict:
    return {
        "id": invitation.id,
        "school_id": invitation.school_id,
        "role": invitation.role,
        "email": invitation.email,
        "code": invitation.code,
        "invitation_token": invitation.invitation_token,
        "status": invitation.status,
        "created_by": invitation.created_by,
        "created_at": invitation.created_at,
        "expires_at": invitation.expires_at,
        "accepted_at": invitation.accepted_at,
    }


class InvitationManager:
    """Issues, verifies and redeems invitations."""

    def __init__(
        self,
        db: Session,
        clock: Clock = utc_now,
        notifier: Optional[InvitationNotifier] = None,
    ):
        """Initialize InvitationManager.

        Args:
            db: SQLAlchemy Session.
            clock: Callable returning the current aware datetime.
            notifier: Delivery collaborator for email-bound invitations.
        """
        self.db = db
        self.clock = clock
        self.notifier = notifier or InvitationNotifier()
        self.roles = RoleManager(db, clock=clock)

    def _require_school(self, school_id: str) -> SchoolModel:
        school = self.db.query(SchoolModel).filter(SchoolModel.id == school_id).first()
        if school is None:
            raise NotFoundError("School", school_id)
        return school

    def _get_by_id(self, invitation_id: str) -> InvitationModel:
        invitation = (
            self.db.query(InvitationModel)
            .filter(InvitationModel.id == invitation_id)
            .first()
        )
        if invitation is None:
            raise NotFoundError("Invitation", invitation_id)
        return invitation

    def _get_by_token(self, token: str) -> InvitationModel:
        """Look up an invitation by its token or its shareable code."""
        key = token.strip()
        invitation = (
            self.db.query(InvitationModel)
            .filter(
                or_(
                    InvitationModel.invitation_token == key,
                    InvitationModel.code == key.upper(),
                )
            )
            .first()
        )
        if invitation is None:
            raise NotFoundError("Invitation")
        return invitation

    def _is_expired(self, invitation: InvitationModel) -> bool:
        return invitation.status == INVITATION_EXPIRED or is_past(
            invitation.expires_at, self.clock()
        )

    def _new_invite_code(self) -> str:
        for _ in range(SCHOOL_CODE_MAX_ATTEMPTS):
            candidate = generate_student_invite_code()
            taken = (
                self.db.query(InvitationModel.id)
                .filter(InvitationModel.code == candidate)
                .first()
            )
            if taken is None:
                return candidate
        raise GenerationExhaustedError("Failed to generate a unique invitation code")

    def _create(
        self,
        ctx: AuthContext,
        school: SchoolModel,
        role: str,
        email: Optional[str],
        code: Optional[str],
    ) -> InvitationModel:
        now = self.clock()
        invitation = InvitationModel(
            id=uuid.uuid4().hex,
            school_id=school.id,
            role=role,
            email=email,
            code=code,
            invitation_token=generate_invitation_token(),
            status=INVITATION_PENDING,
            created_by=ctx.user_id,
            created_at=now.isoformat(),
            expires_at=(now + timedelta(days=INVITATION_EXPIRE_DAYS)).isoformat(),
        )
        try:
            self.db.add(invitation)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to create invitation: %s", e)
            raise InternalError("Failed to create invitation") from e
        self.db.refresh(invitation)

        logger.info(
            "Created %s invitation %s for school %s by %s",
            role,
            invitation.id,
            school.id,
            ctx.user_id,
        )
        if invitation.email:
            self.notifier.send_invitation(invitation, school.name)
        return invitation

    def invite_teacher(self, ctx: AuthContext, school_id: str, email: str) -> InvitationModel:
        """Invite a teacher by email. Requires supervisor capability."""
        school = self._require_school(school_id)
        self.roles.require_teacher_of(ctx.user_id, school_id, supervisor=True)
        if not email or not email.strip():
            raise BadRequestError("Email is required")
        return self._create(ctx, school, ROLE_TEACHER, email.strip().lower(), None)

    def invite_student(
        self,
        ctx: AuthContext,
        school_id: str,
        method: str,
        email: Optional[str] = None,
    ) -> InvitationModel:
        """Invite a student by email or through a shareable code.

        Args:
            ctx: Authenticated caller; must teach at the school.
            school_id: Target school.
            method: ``"email"`` or ``"code"``.
            email: Invitee address, required for the email method.

        Raises:
            BadRequestError: For an unknown method or a missing email.
        """
        if method not in (INVITE_METHOD_EMAIL, INVITE_METHOD_CODE):
            raise BadRequestError(f"Invalid method: {method}. Must be 'email' or 'code'.")
        if method == INVITE_METHOD_EMAIL and not (email and email.strip()):
            raise BadRequestError("Email is required for email invitations")

        school = self._require_school(school_id)
        self.roles.require_teacher_of(ctx.user_id, school_id)

        bound_email = email.strip().lower() if email and email.strip() else None
        return self._create(ctx, school, ROLE_STUDENT, bound_email, self._new_invite_code())

    def verify_invitation(self, token: str) -> dict:
        """Check an invitation token or code without consuming it.

        Raises:
            NotFoundError: If nothing matches.
            ExpiredError: If the invitation is past its expiry or cancelled.
        """
        invitation = self._get_by_token(token)
        if self._is_expired(invitation):
            raise ExpiredError("Invitation has expired")

        school = self._require_school(invitation.school_id)
        return {
            "valid": invitation.status == INVITATION_PENDING,
            "school_id": school.id,
            "school_name": school.name,
            "email": invitation.email,
            "role": invitation.role,
            "status": invitation.status,
            "expires_at": invitation.expires_at,
        }

    def accept_invitation(self, ctx: AuthContext, token: str) -> dict:
        """Redeem an invitation for the calling identity.

        All writes happen in one transaction: the invitation is flipped to
        accepted, the teacher or student row is created unless one already
        exists, and the profile is pointed at the school.

        Returns:
            Dict with ``school_id`` and ``role``.

        Raises:
            NotFoundError: If the token matches nothing.
            AlreadyAcceptedError: If the invitation was already consumed.
            ExpiredError: If the invitation expired; nothing is written.
            EmailMismatchError: If the invitation is bound to another email.
            ConflictError: If the caller already belongs to another school;
                the invitation stays pending.
            InternalError: If any write fails; every step is rolled back.
        """
        invitation = self._get_by_token(token)
        if invitation.status == INVITATION_ACCEPTED:
            raise AlreadyAcceptedError()
        if self._is_expired(invitation):
            raise ExpiredError("Invitation has expired")
        if invitation.email and invitation.email.lower() != ctx.email.strip().lower():
            raise EmailMismatchError()
        self.roles.require_joinable(ctx.user_id, invitation.school_id)

        invitation_id = invitation.id
        school_id = invitation.school_id
        role = invitation.role
        now = self.clock().isoformat()

        try:
            claimed = (
                self.db.query(InvitationModel)
                .filter(
                    InvitationModel.id == invitation_id,
                    InvitationModel.status == INVITATION_PENDING,
                )
                .update(
                    {
                        InvitationModel.status: INVITATION_ACCEPTED,
                        InvitationModel.accepted_by: ctx.user_id,
                        InvitationModel.accepted_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if claimed == 0:
                self.db.rollback()
                raise AlreadyAcceptedError()

            if role == ROLE_TEACHER:
                if self.roles.get_teacher(ctx.user_id) is None:
                    self.db.add(
                        TeacherModel(
                            id=ctx.user_id,
                            school_id=school_id,
                            is_supervisor=False,
                            create_at=now,
                        )
                    )
            elif self.roles.get_student(ctx.user_id) is None:
                # Staff invited them, so no approval step
                self.db.add(
                    StudentModel(
                        id=ctx.user_id,
                        school_id=school_id,
                        status=STUDENT_ACTIVE,
                        create_at=now,
                        update_at=now,
                    )
                )

            profile = (
                self.db.query(ProfileModel).filter(ProfileModel.id == ctx.user_id).first()
            )
            if profile is None:
                raise InternalError("Profile not found for the accepting user")
            profile.user_type = merge_user_type(profile.user_type, role)
            profile.school_id = school_id
            profile.update_at = now
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to accept invitation %s: %s", invitation_id, e)
            raise InternalError("Failed to accept invitation") from e
        except InternalError:
            self.db.rollback()
            raise

        logger.info(
            "User %s accepted %s invitation %s for school %s",
            ctx.user_id,
            role,
            invitation_id,
            school_id,
        )
        return {"school_id": school_id, "role": role}

    def list_invitations(
        self, ctx: AuthContext, school_id: str, role: Optional[str] = None
    ) -> List[InvitationModel]:
        """List the invitations of a school, newest first."""
        self._require_school(school_id)
        self.roles.require_teacher_of(ctx.user_id, school_id)
        query = self.db.query(InvitationModel).filter(InvitationModel.school_id == school_id)
        if role:
            query = query.filter(InvitationModel.role == role)
        return query.order_by(InvitationModel.created_at.desc()).all()

    def resend_invitation(self, ctx: AuthContext, invitation_id: str) -> InvitationModel:
        """Re-issue an unaccepted invitation with a new token and expiry."""
        invitation = self._get_by_id(invitation_id)
        school = self._require_school(invitation.school_id)
        self.roles.require_teacher_of(ctx.user_id, invitation.school_id, supervisor=True)
        if invitation.status == INVITATION_ACCEPTED:
            raise AlreadyAcceptedError()

        now = self.clock()
        try:
            invitation.invitation_token = generate_invitation_token()
            invitation.expires_at = (now + timedelta(days=INVITATION_EXPIRE_DAYS)).isoformat()
            invitation.status = INVITATION_PENDING
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to resend invitation %s: %s", invitation_id, e)
            raise InternalError("Failed to resend invitation") from e
        self.db.refresh(invitation)

        logger.info("Resent invitation %s by %s", invitation_id, ctx.user_id)
        if invitation.email:
            self.notifier.send_invitation(invitation, school.name)
        return invitation

    def cancel_invitation(self, ctx: AuthContext, invitation_id: str) -> InvitationModel:
        """Expire a pending invitation.

        Supervisors may cancel any invitation of their school; other
        teachers only the ones they created.
        """
        invitation = self._get_by_id(invitation_id)
        teacher = self.roles.require_teacher_of(ctx.user_id, invitation.school_id)
        if not teacher.is_supervisor and invitation.created_by != ctx.user_id:
            raise ForbiddenError("You can only cancel invitations you created")
        if invitation.status == INVITATION_ACCEPTED:
            raise AlreadyAcceptedError()

        try:
            invitation.status = INVITATION_EXPIRED
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to cancel invitation %s: %s", invitation_id, e)
            raise InternalError("Failed to cancel invitation") from e
        self.db.refresh(invitation)
        logger.info("Cancelled invitation %s by %s", invitation_id, ctx.user_id)
        return invitation
