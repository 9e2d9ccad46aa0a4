import pytest
from sqlalchemy.exc import OperationalError

from config import CODE_ALPHABET
from conftest import add_teacher, signup
from core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
)
from models.profile import ProfileModel
from models.teacher import TeacherModel
from models.user import UserModel
from utils.role_manager import RoleManager
from utils.school_manager import SchoolManager
from utils.user_manager import UserManager


def test_supervisor_creates_teacher(db, clock, school):
    result = SchoolManager(db, clock=clock).create_teacher(
        school["admin"], school["school_id"], " Mo@Lincoln.edu ", "Mo Green"
    )

    assert result["email"] == "mo@lincoln.edu"
    assert result["school_id"] == school["school_id"]
    password = result["temporary_password"]
    assert len(password) == 12
    assert set(password) <= set(CODE_ALPHABET)

    user = UserManager(db, clock=clock).authenticate("mo@lincoln.edu", password)
    assert user.user_id == result["user_id"]

    profile = db.get(ProfileModel, result["user_id"])
    assert profile.user_type == "teacher"
    assert profile.school_id == school["school_id"]
    assert profile.full_name == "Mo Green"

    role = RoleManager(db).describe(result["user_id"])
    assert role["role"] == "teacher"
    assert role["school_id"] == school["school_id"]
    assert role["is_supervisor"] is False


def test_full_name_defaults_to_email_local_part(db, clock, school):
    result = SchoolManager(db, clock=clock).create_teacher(
        school["admin"], school["school_id"], "pat.lee@lincoln.edu"
    )
    assert db.get(ProfileModel, result["user_id"]).full_name == "pat.lee"


def test_each_teacher_gets_a_fresh_password(db, clock, school):
    schools = SchoolManager(db, clock=clock)
    first = schools.create_teacher(school["admin"], school["school_id"], "a@lincoln.edu")
    second = schools.create_teacher(school["admin"], school["school_id"], "b@lincoln.edu")
    assert first["temporary_password"] != second["temporary_password"]


def test_regular_teacher_cannot_create_teachers(db, clock, school, teacher):
    with pytest.raises(ForbiddenError):
        SchoolManager(db, clock=clock).create_teacher(
            teacher, school["school_id"], "mo@lincoln.edu"
        )
    assert db.query(UserModel).filter(UserModel.email == "mo@lincoln.edu").first() is None


def test_supervisor_of_another_school_is_forbidden(db, clock, school, other_school):
    with pytest.raises(ForbiddenError):
        SchoolManager(db, clock=clock).create_teacher(
            other_school["admin"], school["school_id"], "mo@lincoln.edu"
        )


def test_unknown_school_and_missing_email(db, clock, school):
    schools = SchoolManager(db, clock=clock)
    with pytest.raises(NotFoundError):
        schools.create_teacher(school["admin"], "nope", "mo@lincoln.edu")
    with pytest.raises(BadRequestError):
        schools.create_teacher(school["admin"], school["school_id"], "  ")


def test_registered_email_conflicts(db, clock, school):
    signup(db, clock, "mo@lincoln.edu")
    add_teacher(db, clock, school)
    schools = SchoolManager(db, clock=clock)

    for email in ("MO@lincoln.edu", "jane@lincoln.edu"):
        with pytest.raises(ConflictError):
            schools.create_teacher(school["admin"], school["school_id"], email)

    # The signed-up identity is left unassigned.
    mo = db.query(ProfileModel).filter(ProfileModel.email == "mo@lincoln.edu").one()
    assert mo.user_type is None
    assert db.query(TeacherModel).count() == 2


def test_failed_commit_leaves_no_identity(db, clock, school, monkeypatch):
    def broken_commit():
        raise OperationalError("INSERT INTO teachers", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(InternalError):
        SchoolManager(db, clock=clock).create_teacher(
            school["admin"], school["school_id"], "mo@lincoln.edu"
        )

    assert db.query(UserModel).filter(UserModel.email == "mo@lincoln.edu").first() is None
    assert db.query(ProfileModel).filter(ProfileModel.email == "mo@lincoln.edu").first() is None
    assert db.query(TeacherModel).count() == 1
