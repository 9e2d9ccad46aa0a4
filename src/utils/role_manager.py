"""Role resolution and capability checks.

The role of an identity is looked up fresh on every call, in priority order:
admin role table, profile ``user_type``, teacher membership, student
membership. Identities matching none of these are ``unassigned`` and hold no
capabilities.
"""

import logging
from typing import Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

from core.exceptions import ConflictError, ForbiddenError, NotFoundError
from models.admin_role import AdminRoleModel
from models.profile import ProfileModel
from models.student import StudentModel
from models.teacher import TeacherModel
from models.user import UserModel
from utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

ROLE_SYSTEM_ADMIN = "system_admin"
ROLE_SCHOOL_ADMIN = "school_admin"
ROLE_TEACHER = "teacher"
ROLE_STUDENT = "student"
ROLE_UNASSIGNED = "unassigned"

ADMIN_ROLES = (ROLE_SYSTEM_ADMIN, ROLE_SCHOOL_ADMIN)

_STUDENT_CAPABILITIES = frozenset({"use_chat", "upload_documents"})
_TEACHER_CAPABILITIES = _STUDENT_CAPABILITIES | {
    "invite_student",
    "approve_students",
    "view_analytics",
}
# Granted on top of the role's own set when the identity supervises a school
SUPERVISOR_CAPABILITIES = frozenset(
    {"generate_school_code", "invite_teacher", "manage_invitations"}
)

CAPABILITIES: Dict[str, FrozenSet[str]] = {
    ROLE_SYSTEM_ADMIN: _TEACHER_CAPABILITIES | SUPERVISOR_CAPABILITIES,
    ROLE_SCHOOL_ADMIN: _TEACHER_CAPABILITIES | SUPERVISOR_CAPABILITIES,
    ROLE_TEACHER: _TEACHER_CAPABILITIES,
    ROLE_STUDENT: _STUDENT_CAPABILITIES,
    ROLE_UNASSIGNED: frozenset(),
}

# Accepting a role moves a profile user_type up this order, never down
ROLE_RANK: Dict[str, int] = {
    ROLE_STUDENT: 1,
    ROLE_TEACHER: 2,
    ROLE_SCHOOL_ADMIN: 3,
    ROLE_SYSTEM_ADMIN: 4,
}


def merge_user_type(current: Optional[str], granted: str) -> str:
    """Return the profile user_type after ``granted`` is added to ``current``."""
    if current is None or ROLE_RANK.get(granted, 0) > ROLE_RANK.get(current, 0):
        return granted
    return current


class RoleManager:
    """Resolves roles and enforces school membership checks."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def get_teacher(self, user_id: str) -> Optional[TeacherModel]:
        return self.db.query(TeacherModel).filter(TeacherModel.id == user_id).first()

    def get_student(self, user_id: str) -> Optional[StudentModel]:
        return self.db.query(StudentModel).filter(StudentModel.id == user_id).first()

    def resolve_role(self, user_id: str) -> str:
        """Return the role of an identity; first match wins.

        Args:
            user_id: Identity to resolve.

        Returns:
            One of the ``ROLE_*`` constants.
        """
        admin = (
            self.db.query(AdminRoleModel)
            .filter(AdminRoleModel.user_id == user_id)
            .first()
        )
        if admin:
            return admin.role

        profile = self.db.query(ProfileModel).filter(ProfileModel.id == user_id).first()
        if profile and profile.user_type:
            return profile.user_type

        if self.get_teacher(user_id):
            return ROLE_TEACHER
        if self.get_student(user_id):
            return ROLE_STUDENT
        return ROLE_UNASSIGNED

    def describe(self, user_id: str) -> dict:
        """Return the resolved role with school, supervisor flag and capabilities.

        Args:
            user_id: Identity to describe.

        Returns:
            Dict with ``role``, ``school_id``, ``is_supervisor`` and a sorted
            ``capabilities`` list.
        """
        role = self.resolve_role(user_id)
        teacher = self.get_teacher(user_id)
        profile = self.db.query(ProfileModel).filter(ProfileModel.id == user_id).first()

        school_id = profile.school_id if profile else None
        if school_id is None and teacher:
            school_id = teacher.school_id
        if school_id is None:
            student = self.get_student(user_id)
            if student:
                school_id = student.school_id

        is_supervisor = bool(teacher and teacher.is_supervisor)
        capabilities = set(CAPABILITIES.get(role, frozenset()))
        if is_supervisor:
            capabilities |= SUPERVISOR_CAPABILITIES

        return {
            "role": role,
            "school_id": school_id,
            "is_supervisor": is_supervisor,
            "capabilities": sorted(capabilities),
        }

    def require_teacher_of(
        self, user_id: str, school_id: str, supervisor: bool = False
    ) -> TeacherModel:
        """Return the caller's teacher row for ``school_id``.

        Args:
            user_id: Calling identity.
            school_id: School the action targets.
            supervisor: Whether supervisor capability is required.

        Raises:
            ForbiddenError: If the caller is not a (supervising) teacher there.
        """
        teacher = self.get_teacher(user_id)
        if teacher is None or teacher.school_id != school_id:
            raise ForbiddenError("You are not a teacher of this school")
        if supervisor and not teacher.is_supervisor:
            raise ForbiddenError("Supervisor permission is required for this action")
        return teacher

    def grant_admin_role(self, user_id: str, role: str = ROLE_SYSTEM_ADMIN) -> AdminRoleModel:
        """Insert or update an admin role row for an identity.

        Raises:
            NotFoundError: If the identity does not exist.
            ValueError: If ``role`` is not an admin role.
        """
        if role not in ADMIN_ROLES:
            raise ValueError(f"Invalid admin role: {role}. Must be one of {ADMIN_ROLES}.")
        if self.db.query(UserModel).filter(UserModel.user_id == user_id).first() is None:
            raise NotFoundError("User", user_id)

        row = (
            self.db.query(AdminRoleModel)
            .filter(AdminRoleModel.user_id == user_id)
            .first()
        )
        now = self.clock().isoformat()
        if row:
            row.role = role
            row.granted_at = now
        else:
            row = AdminRoleModel(user_id=user_id, role=role, granted_at=now)
            self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info("Granted admin role %s to user %s", role, user_id)
        return row

    def require_joinable(self, user_id: str, school_id: str) -> None:
        """Check that an identity belongs to no school other than ``school_id``.

        The profile, the teacher row and the student row must all agree on
        one school, so joining a second school is refused outright.

        Raises:
            ConflictError: If the identity is already bound to another school.
        """
        profile = self.db.query(ProfileModel).filter(ProfileModel.id == user_id).first()
        bound = {
            row.school_id
            for row in (profile, self.get_teacher(user_id), self.get_student(user_id))
            if row is not None and row.school_id
        }
        if bound - {school_id}:
            raise ConflictError("User already belongs to another school")
