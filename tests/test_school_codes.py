import uuid
from datetime import timedelta

import pytest

from config import CODE_ALPHABET
from conftest import add_teacher
from core.exceptions import (
    ConflictError,
    ForbiddenError,
    GenerationExhaustedError,
    NotFoundError,
    RateLimitedError,
)
from models.profile import ProfileModel
from models.school import SchoolCodeLogModel, SchoolModel
from utils.clock import parse_iso
from utils.codes import generate_school_code, is_valid_school_code
from utils.role_manager import RoleManager
from utils.school_manager import SchoolManager


def test_code_alphabet_has_no_confusable_characters():
    assert not set(CODE_ALPHABET) & set("0O1IL")
    assert len(set(CODE_ALPHABET)) == len(CODE_ALPHABET) == 31
    assert not is_valid_school_code("SCHLLLLLL")


def test_generated_codes_avoid_confusable_characters():
    for _ in range(500):
        code = generate_school_code()
        assert is_valid_school_code(code)
        assert len(code) == 9
        assert not set(code[3:]) & set("0O1IL")
        assert all(ch in CODE_ALPHABET for ch in code[3:])


def test_register_school_creates_admin_and_supervisor(db, school):
    profile = db.query(ProfileModel).filter(ProfileModel.id == school["admin_user_id"]).one()
    assert profile.user_type == "school_admin"
    assert profile.school_id == school["school_id"]

    roles = RoleManager(db)
    teacher = roles.get_teacher(school["admin_user_id"])
    assert teacher.is_supervisor is True
    assert teacher.school_id == school["school_id"]

    row = db.query(SchoolModel).filter(SchoolModel.id == school["school_id"]).one()
    assert row.name == "Lincoln High"
    assert row.code == school["school_code"]
    assert row.code_expires_at is None
    assert is_valid_school_code(row.code)


def test_register_school_with_taken_email_writes_nothing(db, clock, school):
    with pytest.raises(ConflictError):
        SchoolManager(db, clock=clock).register_school(
            "Shadow High", "ADMIN@lincoln.edu", "whatever-pass", "Someone Else"
        )
    assert db.query(SchoolModel).count() == 1


def test_regenerating_replaces_the_old_code(db, clock, school):
    manager = SchoolManager(db, clock=clock)
    result = manager.generate_school_code(school["admin"], school["school_id"])

    assert result["code"] != school["school_code"]
    assert is_valid_school_code(result["code"])
    assert parse_iso(result["expires_at"]) == clock() + timedelta(hours=24)
    assert manager.find_by_code(school["school_code"]) is None
    assert manager.find_by_code(result["code"]).id == school["school_id"]

    log = db.query(SchoolCodeLogModel).one()
    assert log.generated_by == school["admin_user_id"]
    assert log.code == result["code"]


def test_regenerated_code_stops_working_after_a_day(db, clock, school):
    manager = SchoolManager(db, clock=clock)
    code = manager.generate_school_code(school["admin"], school["school_id"])["code"]
    clock.advance(hours=24, minutes=1)
    assert manager.find_by_code(code) is None


def test_sixth_generation_in_a_day_is_rate_limited(db, clock, school):
    manager = SchoolManager(db, clock=clock)
    for _ in range(5):
        manager.generate_school_code(school["admin"], school["school_id"])
        clock.advance(hours=1)

    with pytest.raises(RateLimitedError):
        manager.generate_school_code(school["admin"], school["school_id"])
    assert db.query(SchoolCodeLogModel).count() == 5

    # First generation falls out of the rolling window
    clock.advance(hours=19, minutes=1)
    manager.generate_school_code(school["admin"], school["school_id"])


def test_collisions_are_retried(db, clock, school, other_school):
    candidates = iter([other_school["school_code"], "SCHABCDEF"])
    manager = SchoolManager(db, clock=clock, code_factory=lambda: next(candidates))
    result = manager.generate_school_code(school["admin"], school["school_id"])
    assert result["code"] == "SCHABCDEF"


def test_generation_exhausted_when_every_candidate_collides(db, clock, school, other_school):
    manager = SchoolManager(db, clock=clock, code_factory=lambda: other_school["school_code"])
    with pytest.raises(GenerationExhaustedError):
        manager.generate_school_code(school["admin"], school["school_id"])
    assert db.query(SchoolCodeLogModel).count() == 0


def test_code_of_expired_school_can_be_reused(db, clock, school, other_school):
    taken = SchoolManager(db, clock=clock).generate_school_code(
        other_school["admin"], other_school["school_id"]
    )["code"]
    clock.advance(hours=25)

    manager = SchoolManager(db, clock=clock, code_factory=lambda: taken)
    assert manager.generate_school_code(school["admin"], school["school_id"])["code"] == taken


def test_regular_teacher_cannot_generate(db, clock, school):
    teacher = add_teacher(db, clock, school)
    with pytest.raises(ForbiddenError):
        SchoolManager(db, clock=clock).generate_school_code(teacher, school["school_id"])


def test_supervisor_of_another_school_cannot_generate(db, clock, school, other_school):
    with pytest.raises(ForbiddenError):
        SchoolManager(db, clock=clock).generate_school_code(
            other_school["admin"], school["school_id"]
        )


def test_unknown_school_is_reported_before_permissions(db, clock, school):
    with pytest.raises(NotFoundError):
        SchoolManager(db, clock=clock).generate_school_code(school["admin"], uuid.uuid4().hex)


def test_get_school_code_for_teachers(db, clock, school):
    teacher = add_teacher(db, clock, school)
    info = SchoolManager(db, clock=clock).get_school_code(teacher, school["school_id"])
    assert info == {
        "school_id": school["school_id"],
        "code": school["school_code"],
        "expires_at": None,
    }


def test_list_teachers(db, clock, school):
    add_teacher(db, clock, school, "jane@lincoln.edu")
    teachers = SchoolManager(db, clock=clock).list_teachers(school["admin"], school["school_id"])
    by_email = {t["email"]: t for t in teachers}
    assert set(by_email) == {"admin@lincoln.edu", "jane@lincoln.edu"}
    assert by_email["admin@lincoln.edu"]["is_supervisor"] is True
    assert by_email["jane@lincoln.edu"]["is_supervisor"] is False
