import pytest

from conftest import add_pending_student, signup
from core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from utils.session_log_manager import SessionLogManager
from utils.student_manager import StudentManager


@pytest.fixture
def sessions(db, clock):
    return SessionLogManager(db, clock=clock)


@pytest.fixture
def student(db, clock, school):
    return add_pending_student(db, clock, school)


def test_start_defaults_topic_and_school(sessions, student, school, clock):
    log = sessions.start_session(student)
    assert log.topic == "General Chat"
    assert log.school_id == school["school_id"]
    assert log.session_start == clock().isoformat()
    assert log.session_end is None
    assert log.num_queries == 0

    assert sessions.start_session(student, topic="  Algebra ").topic == "Algebra"


def test_start_requires_a_school(db, clock, sessions):
    loner = signup(db, clock, "loner@example.com")
    with pytest.raises(BadRequestError):
        sessions.start_session(loner)


def test_end_records_duration_once(sessions, student, clock):
    log = sessions.start_session(student, topic="Algebra")
    clock.advance(seconds=90)
    ended = sessions.end_session(student, log.id)
    assert ended.duration_seconds == 90
    assert ended.session_end == clock().isoformat()

    clock.advance(minutes=10)
    again = sessions.end_session(student, log.id)
    assert again.duration_seconds == 90


def test_queries_are_counted(sessions, student):
    log = sessions.start_session(student)
    assert sessions.increment_queries(student, log.id) == 1
    assert sessions.increment_queries(student, log.id) == 2


def test_logs_belong_to_their_owner(db, clock, sessions, student, school):
    log = sessions.start_session(student)
    classmate = add_pending_student(db, clock, school, email="lee@lincoln.edu")
    with pytest.raises(NotFoundError):
        sessions.end_session(classmate, log.id)
    with pytest.raises(NotFoundError):
        sessions.increment_queries(classmate, log.id)
    assert sessions.list_sessions(classmate) == []


def test_list_newest_first(sessions, student, clock):
    first = sessions.start_session(student, topic="Algebra")
    clock.advance(hours=1)
    second = sessions.start_session(student, topic="Biology")
    assert [log.id for log in sessions.list_sessions(student)] == [second.id, first.id]
    assert len(sessions.list_sessions(student, limit=1)) == 1


def test_school_summary(db, clock, sessions, student, school, teacher):
    StudentManager(db, clock=clock).approve_student(school["admin"], student.user_id)
    add_pending_student(db, clock, school, email="lee@lincoln.edu")

    sessions.start_session(student, topic="History")
    clock.advance(days=40)
    for topic, seconds, queries in [("Algebra", 60, 2), ("Algebra", 120, 1), ("Biology", 0, 0)]:
        log = sessions.start_session(student, topic=topic)
        for _ in range(queries):
            sessions.increment_queries(student, log.id)
        if seconds:
            clock.advance(seconds=seconds)
            sessions.end_session(student, log.id)

    summary = sessions.school_summary(teacher, school["school_id"])

    assert summary["session_count"] == 3
    assert summary["total_queries"] == 3
    assert summary["average_duration_seconds"] == 90
    assert summary["active_students"] == 1
    assert summary["pending_students"] == 1
    assert summary["teacher_count"] == 2
    assert summary["top_topics"] == [
        {"topic": "Algebra", "count": 2},
        {"topic": "Biology", "count": 1},
    ]

    wide = sessions.school_summary(teacher, school["school_id"], days=60)
    assert wide["session_count"] == 4


def test_summary_is_for_teachers_of_the_school(
    db, clock, sessions, student, school, other_school
):
    with pytest.raises(ForbiddenError):
        sessions.school_summary(student, school["school_id"])
    with pytest.raises(ForbiddenError):
        sessions.school_summary(other_school["admin"], school["school_id"])
    with pytest.raises(NotFoundError):
        sessions.school_summary(school["admin"], "no-such-school")
    with pytest.raises(BadRequestError):
        sessions.school_summary(school["admin"], school["school_id"], days=0)
