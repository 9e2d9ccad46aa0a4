"""Student membership management.

Students join a school either by signing up with its school code (status
``pending`` until a teacher approves them) or through an invitation.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import BadRequestError, ConflictError, InternalError, NotFoundError
from models.profile import ProfileModel
from models.student import STUDENT_ACTIVE, STUDENT_PENDING, StudentModel
from schemas.user import AuthContext
from utils.clock import Clock, utc_now
from utils.role_manager import ROLE_STUDENT, RoleManager, merge_user_type
from utils.school_manager import SchoolManager
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)

STUDENT_STATUSES = (STUDENT_PENDING, STUDENT_ACTIVE)


class StudentManager:
    """Manages student rows and their approval lifecycle."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.roles = RoleManager(db, clock=clock)
        self.schools = SchoolManager(db, clock=clock)

    def _require_student(self, student_id: str) -> StudentModel:
        student = self.roles.get_student(student_id)
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    def _school_for_code(self, school_code: str):
        school = self.schools.find_by_code(school_code or "")
        if school is None:
            raise BadRequestError("Invalid or expired school code")
        return school

    def register_student(
        self,
        email: str,
        password: str,
        full_name: str,
        school_code: str,
    ) -> dict:
        """Sign up a new identity as a pending student of the coded school.

        Raises:
            BadRequestError: If the school code is unknown or expired.
            ConflictError: If the email is already registered.
        """
        school = self._school_for_code(school_code)
        users = UserManager(self.db, clock=self.clock)
        now = self.clock().isoformat()
        try:
            profile = users.create_identity(
                email, password, full_name, user_type=ROLE_STUDENT, school_id=school.id
            )
            self.db.add(
                StudentModel(
                    id=profile.id,
                    school_id=school.id,
                    status=STUDENT_PENDING,
                    create_at=now,
                    update_at=now,
                )
            )
            self.db.commit()
        except ConflictError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Student registration failed: %s", e)
            raise InternalError("Failed to register student") from e

        logger.info("Registered pending student %s for school %s", profile.id, school.id)
        return {"user_id": profile.id, "school_id": school.id, "status": STUDENT_PENDING}

    def join_school(self, ctx: AuthContext, school_code: str) -> StudentModel:
        """Attach an existing identity to a school as a pending student.

        An identity that already has a student row at this school keeps it
        unchanged.

        Raises:
            BadRequestError: If the school code is unknown or expired.
            ConflictError: If the identity already belongs to another school.
        """
        school = self._school_for_code(school_code)
        self.roles.require_joinable(ctx.user_id, school.id)
        existing = self.roles.get_student(ctx.user_id)
        if existing is not None:
            return existing

        now = self.clock().isoformat()
        student = StudentModel(
            id=ctx.user_id,
            school_id=school.id,
            status=STUDENT_PENDING,
            create_at=now,
            update_at=now,
        )
        try:
            self.db.add(student)
            profile = self.db.query(ProfileModel).filter(ProfileModel.id == ctx.user_id).first()
            if profile is not None:
                profile.user_type = merge_user_type(profile.user_type, ROLE_STUDENT)
                profile.school_id = school.id
                profile.update_at = now
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to join school %s: %s", school.id, e)
            raise InternalError("Failed to join school") from e
        self.db.refresh(student)

        logger.info("User %s requested to join school %s", ctx.user_id, school.id)
        return student

    def approve_student(self, ctx: AuthContext, student_id: str) -> StudentModel:
        """Activate a pending student. Approving an active student is a no-op.

        Raises:
            NotFoundError: If the student row does not exist.
            ForbiddenError: If the caller does not teach at the student's school.
        """
        student = self._require_student(student_id)
        self.roles.require_teacher_of(ctx.user_id, student.school_id)
        if student.status == STUDENT_ACTIVE:
            return student

        student.status = STUDENT_ACTIVE
        student.update_at = self.clock().isoformat()
        self.db.commit()
        self.db.refresh(student)
        logger.info("Approved student %s by %s", student_id, ctx.user_id)
        return student

    def revoke_student_access(self, ctx: AuthContext, student_id: str) -> None:
        """Delete a student row and unlink the profile from the school.

        Raises:
            NotFoundError: If the student row does not exist.
            ForbiddenError: If the caller does not teach at the student's school.
        """
        student = self._require_student(student_id)
        self.roles.require_teacher_of(ctx.user_id, student.school_id)

        try:
            profile = self.db.query(ProfileModel).filter(ProfileModel.id == student_id).first()
            if profile is not None and profile.user_type in (ROLE_STUDENT, None):
                profile.user_type = None
                profile.school_id = None
                profile.update_at = self.clock().isoformat()
            self.db.delete(student)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to revoke student %s: %s", student_id, e)
            raise InternalError("Failed to revoke student access") from e

        logger.info("Revoked student %s by %s", student_id, ctx.user_id)

    def list_students(
        self, ctx: AuthContext, school_id: str, status: Optional[str] = None
    ) -> List[dict]:
        """List the students of a school, optionally filtered by status."""
        if status is not None and status not in STUDENT_STATUSES:
            raise BadRequestError(f"Invalid status: {status}. Must be 'pending' or 'active'.")
        self.schools.require_school(school_id)
        self.roles.require_teacher_of(ctx.user_id, school_id)

        query = (
            self.db.query(StudentModel, ProfileModel)
            .join(ProfileModel, ProfileModel.id == StudentModel.id)
            .filter(StudentModel.school_id == school_id)
        )
        if status:
            query = query.filter(StudentModel.status == status)
        return [
            {
                "id": student.id,
                "school_id": student.school_id,
                "status": student.status,
                "full_name": profile.full_name,
                "email": profile.email,
                "create_at": student.create_at,
            }
            for student, profile in query.order_by(StudentModel.create_at).all()
        ]
