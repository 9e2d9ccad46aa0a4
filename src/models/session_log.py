"""Study session log database model."""

from sqlalchemy import Column, Integer, String, ForeignKey
from .base import Base


class SessionLogModel(Base):
    __tablename__ = "session_logs"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False)
    school_id = Column(String, ForeignKey("schools.id", ondelete="CASCADE"), index=True, nullable=False)
    topic = Column(String, nullable=False)
    session_start = Column(String, nullable=False)
    session_end = Column(String, nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    num_queries = Column(Integer, nullable=False, default=0)
