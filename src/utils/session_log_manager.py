"""Study session logs and per-school usage summaries."""

import logging
import uuid
from collections import Counter
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from config import DEFAULT_SESSION_TOPIC
from core.exceptions import BadRequestError, NotFoundError
from models.profile import ProfileModel
from models.school import SchoolModel
from models.session_log import SessionLogModel
from models.student import STUDENT_ACTIVE, STUDENT_PENDING, StudentModel
from models.teacher import TeacherModel
from schemas.user import AuthContext
from utils.clock import Clock, parse_iso, utc_now
from utils.role_manager import RoleManager

logger = logging.getLogger(__name__)

TOP_TOPICS_LIMIT = 5


def session_log_to_dict(log: SessionLogModel) -> dict:
    return {
        "id": log.id,
        "user_id": log.user_id,
        "school_id": log.school_id,
        "topic": log.topic,
        "session_start": log.session_start,
        "session_end": log.session_end,
        "duration_seconds": log.duration_seconds,
        "num_queries": log.num_queries or 0,
    }


class SessionLogManager:
    """Records study sessions and aggregates them per school."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.roles = RoleManager(db, clock=clock)

    def resolve_school_id(self, user_id: str) -> Optional[str]:
        """Return the school of an identity: profile, then student, then teacher row."""
        profile = self.db.query(ProfileModel).filter(ProfileModel.id == user_id).first()
        if profile and profile.school_id:
            return profile.school_id
        student = self.roles.get_student(user_id)
        if student:
            return student.school_id
        teacher = self.roles.get_teacher(user_id)
        if teacher:
            return teacher.school_id
        return None

    def require_own_log(self, ctx: AuthContext, log_id: str) -> SessionLogModel:
        log = (
            self.db.query(SessionLogModel)
            .filter(SessionLogModel.id == log_id, SessionLogModel.user_id == ctx.user_id)
            .first()
        )
        if log is None:
            raise NotFoundError("Session log", log_id)
        return log

    def start_session(self, ctx: AuthContext, topic: Optional[str] = None) -> SessionLogModel:
        """Open a session log for the caller.

        Raises:
            BadRequestError: If the caller belongs to no school.
        """
        school_id = self.resolve_school_id(ctx.user_id)
        if school_id is None:
            raise BadRequestError("User is not associated with a school")

        log = SessionLogModel(
            id=uuid.uuid4().hex,
            user_id=ctx.user_id,
            school_id=school_id,
            topic=(topic or "").strip() or DEFAULT_SESSION_TOPIC,
            session_start=self.clock().isoformat(),
            num_queries=0,
        )
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)
        logger.info("Started session %s for user %s", log.id, ctx.user_id)
        return log

    def end_session(self, ctx: AuthContext, log_id: str) -> SessionLogModel:
        """Close a session log. Ending an already ended session changes nothing."""
        log = self.require_own_log(ctx, log_id)
        if log.session_end:
            return log

        now = self.clock()
        log.session_end = now.isoformat()
        log.duration_seconds = max(
            0, int((now - parse_iso(log.session_start)).total_seconds())
        )
        self.db.commit()
        self.db.refresh(log)
        logger.info("Ended session %s after %ss", log.id, log.duration_seconds)
        return log

    def add_query(self, ctx: AuthContext, log_id: str) -> int:
        """Stage an atomic counter bump in the current transaction.

        The caller commits, so the bump lands together with its own writes.

        Returns:
            Number of rows updated; 0 when the log is not the caller's.
        """
        return (
            self.db.query(SessionLogModel)
            .filter(SessionLogModel.id == log_id, SessionLogModel.user_id == ctx.user_id)
            .update(
                {SessionLogModel.num_queries: SessionLogModel.num_queries + 1},
                synchronize_session=False,
            )
        )

    def increment_queries(self, ctx: AuthContext, log_id: str) -> int:
        """Atomically bump the query counter of one of the caller's sessions.

        Returns:
            The new counter value.
        """
        updated = self.add_query(ctx, log_id)
        if updated == 0:
            self.db.rollback()
            raise NotFoundError("Session log", log_id)
        self.db.commit()
        log = self.require_own_log(ctx, log_id)
        self.db.refresh(log)
        return log.num_queries

    def list_sessions(self, ctx: AuthContext, limit: int = 50):
        return (
            self.db.query(SessionLogModel)
            .filter(SessionLogModel.user_id == ctx.user_id)
            .order_by(SessionLogModel.session_start.desc())
            .limit(limit)
            .all()
        )

    def school_summary(self, ctx: AuthContext, school_id: str, days: int = 30) -> dict:
        """Aggregate session usage of a school over the last ``days`` days.

        Args:
            ctx: Authenticated caller; must teach at the school.
            school_id: School to summarize.
            days: Size of the look-back window.

        Returns:
            Dict matching ``schemas.session_log.SchoolUsageSummary``.
        """
        if days < 1:
            raise BadRequestError("days must be at least 1")
        if self.db.query(SchoolModel).filter(SchoolModel.id == school_id).first() is None:
            raise NotFoundError("School", school_id)
        self.roles.require_teacher_of(ctx.user_id, school_id)

        since = self.clock() - timedelta(days=days)
        logs = [
            log
            for log in self.db.query(SessionLogModel)
            .filter(SessionLogModel.school_id == school_id)
            .all()
            if parse_iso(log.session_start) >= since
        ]
        durations = [log.duration_seconds for log in logs if log.duration_seconds is not None]
        topics = Counter(log.topic for log in logs)

        def _count_students(status: str) -> int:
            return (
                self.db.query(StudentModel)
                .filter(StudentModel.school_id == school_id, StudentModel.status == status)
                .count()
            )

        return {
            "school_id": school_id,
            "days": days,
            "session_count": len(logs),
            "total_queries": sum(log.num_queries or 0 for log in logs),
            "average_duration_seconds": (
                sum(durations) / len(durations) if durations else None
            ),
            "active_students": _count_students(STUDENT_ACTIVE),
            "pending_students": _count_students(STUDENT_PENDING),
            "teacher_count": self.db.query(TeacherModel)
            .filter(TeacherModel.school_id == school_id)
            .count(),
            "top_topics": [
                {"topic": topic, "count": count}
                for topic, count in topics.most_common(TOP_TOPICS_LIMIT)
            ],
        }
