import pytest

from conftest import add_pending_student, add_teacher, signup
from core.exceptions import ForbiddenError, NotFoundError
from models.profile import ProfileModel
from models.student import StudentModel
from models.teacher import TeacherModel
from utils.role_manager import (
    CAPABILITIES,
    ROLE_UNASSIGNED,
    SUPERVISOR_CAPABILITIES,
    RoleManager,
)


@pytest.fixture
def roles(db, clock):
    return RoleManager(db, clock=clock)


def test_new_identity_is_unassigned_with_no_capabilities(db, clock, roles):
    ctx = signup(db, clock, "nobody@example.com")
    description = roles.describe(ctx.user_id)
    assert description == {
        "role": ROLE_UNASSIGNED,
        "school_id": None,
        "is_supervisor": False,
        "capabilities": [],
    }


def test_unknown_identity_is_unassigned(roles):
    assert roles.resolve_role("no-such-user") == ROLE_UNASSIGNED


def test_admin_role_table_wins(db, clock, roles, school):
    teacher = add_teacher(db, clock, school)
    roles.grant_admin_role(teacher.user_id, "system_admin")
    assert roles.resolve_role(teacher.user_id) == "system_admin"


def test_profile_type_wins_over_membership_rows(db, clock, roles, school):
    assert roles.resolve_role(school["admin_user_id"]) == "school_admin"


def test_teacher_row_used_when_profile_is_blank(db, clock, roles, school):
    teacher = add_teacher(db, clock, school)
    profile = db.get(ProfileModel, teacher.user_id)
    profile.user_type = None
    db.commit()
    assert roles.resolve_role(teacher.user_id) == "teacher"


def test_student_row_used_when_profile_is_blank(db, clock, roles, school):
    student = add_pending_student(db, clock, school)
    profile = db.get(ProfileModel, student.user_id)
    profile.user_type = None
    profile.school_id = None
    db.commit()

    description = roles.describe(student.user_id)
    assert description["role"] == "student"
    assert description["school_id"] == school["school_id"]
    assert description["capabilities"] == sorted(CAPABILITIES["student"])


def test_teacher_rows_take_priority_over_student_rows(db, clock, roles, school):
    teacher = add_teacher(db, clock, school)
    db.add(
        StudentModel(
            id=teacher.user_id,
            school_id=school["school_id"],
            status="active",
            create_at=clock().isoformat(),
            update_at=clock().isoformat(),
        )
    )
    profile = db.get(ProfileModel, teacher.user_id)
    profile.user_type = None
    db.commit()
    assert roles.resolve_role(teacher.user_id) == "teacher"


def test_supervisor_capabilities(db, clock, roles, school):
    description = roles.describe(school["admin_user_id"])
    assert description["is_supervisor"] is True
    assert SUPERVISOR_CAPABILITIES <= set(description["capabilities"])

    teacher = add_teacher(db, clock, school)
    plain = roles.describe(teacher.user_id)
    assert "invite_student" in plain["capabilities"]
    assert not SUPERVISOR_CAPABILITIES & set(plain["capabilities"])


def test_grant_admin_role_validation(db, clock, roles):
    with pytest.raises(NotFoundError):
        roles.grant_admin_role("ghost", "system_admin")

    ctx = signup(db, clock, "ops@example.com")
    with pytest.raises(ValueError):
        roles.grant_admin_role(ctx.user_id, "overlord")

    roles.grant_admin_role(ctx.user_id, "school_admin")
    roles.grant_admin_role(ctx.user_id, "system_admin")
    assert roles.resolve_role(ctx.user_id) == "system_admin"


def test_teacher_membership_check(db, clock, roles, school, other_school):
    teacher = add_teacher(db, clock, school)
    assert roles.require_teacher_of(teacher.user_id, school["school_id"]).id == teacher.user_id
    assert db.get(TeacherModel, teacher.user_id).school_id == school["school_id"]
    with pytest.raises(ForbiddenError):
        roles.require_teacher_of(teacher.user_id, other_school["school_id"])
    with pytest.raises(ForbiddenError):
        roles.require_teacher_of(teacher.user_id, school["school_id"], supervisor=True)
