"""School registration, teacher provisioning and school code management.

School codes are the shareable join tokens students type in at signup. A
supervisor can regenerate the code of their school, which replaces (and so
invalidates) the previous one.
"""

import logging
import uuid
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import (
    SCHOOL_CODE_EXPIRE_HOURS,
    SCHOOL_CODE_MAX_ATTEMPTS,
    SCHOOL_CODE_RATE_LIMIT,
    SCHOOL_CODE_RATE_WINDOW_HOURS,
)
from core.exceptions import (
    BadRequestError,
    ConflictError,
    GenerationExhaustedError,
    InternalError,
    NotFoundError,
    RateLimitedError,
)
from models.profile import ProfileModel
from models.school import SchoolCodeLogModel, SchoolModel
from models.teacher import TeacherModel
from schemas.user import AuthContext
from utils.clock import Clock, is_past, parse_iso, utc_now
from utils.codes import generate_school_code, generate_temporary_password
from utils.role_manager import ROLE_SCHOOL_ADMIN, ROLE_TEACHER, RoleManager
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)


class SchoolManager:
    """Manages schools and their join codes."""

    def __init__(
        self,
        db: Session,
        clock: Clock = utc_now,
        code_factory: Callable[[], str] = generate_school_code,
    ):
        """Initialize SchoolManager.

        Args:
            db: SQLAlchemy Session.
            clock: Callable returning the current aware datetime.
            code_factory: Produces candidate school codes.
        """
        self.db = db
        self.clock = clock
        self.code_factory = code_factory
        self.roles = RoleManager(db, clock=clock)

    def get_school(self, school_id: str) -> Optional[SchoolModel]:
        return self.db.query(SchoolModel).filter(SchoolModel.id == school_id).first()

    def require_school(self, school_id: str) -> SchoolModel:
        school = self.get_school(school_id)
        if school is None:
            raise NotFoundError("School", school_id)
        return school

    def find_by_code(self, code: str) -> Optional[SchoolModel]:
        """Return the school whose code is ``code`` and still active."""
        now = self.clock()
        candidates = (
            self.db.query(SchoolModel)
            .filter(SchoolModel.code == code.strip().upper())
            .all()
        )
        for school in candidates:
            if not is_past(school.code_expires_at, now):
                return school
        return None

    def _new_unique_code(self) -> str:
        for _ in range(SCHOOL_CODE_MAX_ATTEMPTS):
            candidate = self.code_factory()
            if self.find_by_code(candidate) is None:
                return candidate
            logger.debug("School code collision, retrying")
        raise GenerationExhaustedError(
            f"Failed to generate a unique school code after {SCHOOL_CODE_MAX_ATTEMPTS} attempts"
        )

    def _recent_generation_count(self, school_id: str) -> int:
        window_start = self.clock() - timedelta(hours=SCHOOL_CODE_RATE_WINDOW_HOURS)
        logs = (
            self.db.query(SchoolCodeLogModel)
            .filter(SchoolCodeLogModel.school_id == school_id)
            .all()
        )
        return sum(1 for log in logs if parse_iso(log.generated_at) >= window_start)

    def generate_school_code(self, ctx: AuthContext, school_id: str) -> Dict[str, str]:
        """Replace the code of a school with a fresh one.

        Args:
            ctx: Authenticated caller; must supervise the school.
            school_id: Target school.

        Returns:
            Dict with ``school_id``, ``code`` and ``expires_at``.

        Raises:
            NotFoundError: If the school does not exist.
            ForbiddenError: If the caller is not a supervisor of the school.
            RateLimitedError: If the school already generated its quota of
                codes within the rolling window.
            GenerationExhaustedError: If every candidate collided.
        """
        school = self.require_school(school_id)
        self.roles.require_teacher_of(ctx.user_id, school_id, supervisor=True)

        if self._recent_generation_count(school_id) >= SCHOOL_CODE_RATE_LIMIT:
            raise RateLimitedError(
                f"Rate limit exceeded: at most {SCHOOL_CODE_RATE_LIMIT} codes per "
                f"{SCHOOL_CODE_RATE_WINDOW_HOURS} hours"
            )

        code = self._new_unique_code()
        now = self.clock()
        expires_at = (now + timedelta(hours=SCHOOL_CODE_EXPIRE_HOURS)).isoformat()

        try:
            school.code = code
            school.code_expires_at = expires_at
            self.db.add(
                SchoolCodeLogModel(
                    school_id=school_id,
                    generated_by=ctx.user_id,
                    code=code,
                    generated_at=now.isoformat(),
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to store school code for %s: %s", school_id, e)
            raise InternalError("Failed to store school code") from e

        logger.info("Generated school code for school %s by %s", school_id, ctx.user_id)
        return {"school_id": school_id, "code": code, "expires_at": expires_at}

    def get_school_code(self, ctx: AuthContext, school_id: str) -> Dict[str, Optional[str]]:
        """Return the current code of a school to one of its teachers."""
        school = self.require_school(school_id)
        self.roles.require_teacher_of(ctx.user_id, school_id)
        return {
            "school_id": school.id,
            "code": school.code,
            "expires_at": school.code_expires_at,
        }

    def register_school(
        self,
        name: str,
        admin_email: str,
        admin_password: str,
        admin_full_name: str,
    ) -> Dict[str, str]:
        """Create a school together with its first administrator.

        The school, the admin identity and profile, and the supervisor
        teacher row are written in one transaction.

        Returns:
            Dict with ``school_id``, ``school_code`` and ``admin_user_id``.

        Raises:
            ConflictError: If the admin email is already registered.
            GenerationExhaustedError: If no unique code could be produced.
            InternalError: If the store rejects any of the writes.
        """
        users = UserManager(self.db, clock=self.clock)
        now = self.clock().isoformat()
        try:
            school = SchoolModel(
                id=uuid.uuid4().hex,
                name=name,
                code=self._new_unique_code(),
                code_expires_at=None,
                contact_email=admin_email,
                create_at=now,
            )
            self.db.add(school)
            self.db.flush()

            profile = users.create_identity(
                admin_email,
                admin_password,
                admin_full_name,
                user_type=ROLE_SCHOOL_ADMIN,
                school_id=school.id,
            )
            self.db.add(
                TeacherModel(
                    id=profile.id,
                    school_id=school.id,
                    is_supervisor=True,
                    create_at=now,
                )
            )
            self.db.commit()
        except (ConflictError, GenerationExhaustedError):
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("School registration failed: %s", e)
            raise InternalError("Failed to register school") from e

        logger.info("Registered school %s (%s)", school.name, school.id)
        return {
            "school_id": school.id,
            "school_code": school.code,
            "admin_user_id": profile.id,
        }

    def create_teacher(
        self,
        ctx: AuthContext,
        school_id: str,
        email: str,
        full_name: Optional[str] = None,
    ) -> Dict[str, str]:
        """Provision a teacher account with a temporary password.

        The identity, its teacher profile and a non-supervisor teacher row
        are written in one transaction. The password is returned once and
        never logged.

        Args:
            ctx: Caller; must supervise the school.
            school_id: School the teacher joins.
            email: Lower-cased email of the new teacher.
            full_name: Display name, defaults to the local part of the email.

        Returns:
            Dict with ``user_id``, ``email``, ``school_id`` and
            ``temporary_password``.

        Raises:
            BadRequestError: If no email is given.
            NotFoundError: If the school does not exist.
            ForbiddenError: If the caller is not a supervisor of the school.
            ConflictError: If the email is already registered.
            InternalError: If the store rejects any of the writes.
        """
        self.require_school(school_id)
        self.roles.require_teacher_of(ctx.user_id, school_id, supervisor=True)
        email = (email or "").strip().lower()
        if not email:
            raise BadRequestError("Email is required")

        password = generate_temporary_password()
        users = UserManager(self.db, clock=self.clock)
        try:
            profile = users.create_identity(
                email,
                password,
                full_name or email.split("@")[0],
                user_type=ROLE_TEACHER,
                school_id=school_id,
            )
            self.db.add(
                TeacherModel(
                    id=profile.id,
                    school_id=school_id,
                    is_supervisor=False,
                    create_at=self.clock().isoformat(),
                )
            )
            self.db.commit()
        except ConflictError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Teacher provisioning failed: %s", e)
            raise InternalError("Failed to create teacher account") from e

        logger.info("Created teacher %s in school %s", profile.id, school_id)
        return {
            "user_id": profile.id,
            "email": profile.email,
            "school_id": school_id,
            "temporary_password": password,
        }

    def list_teachers(self, ctx: AuthContext, school_id: str) -> List[dict]:
        """List the teachers of a school with their profile data."""
        self.require_school(school_id)
        self.roles.require_teacher_of(ctx.user_id, school_id)
        rows = (
            self.db.query(TeacherModel, ProfileModel)
            .join(ProfileModel, ProfileModel.id == TeacherModel.id)
            .filter(TeacherModel.school_id == school_id)
            .order_by(TeacherModel.create_at)
            .all()
        )
        return [
            {
                "id": teacher.id,
                "school_id": teacher.school_id,
                "is_supervisor": bool(teacher.is_supervisor),
                "full_name": profile.full_name,
                "email": profile.email,
            }
            for teacher, profile in rows
        ]
