"""Study session log and usage summary schema definitions."""

from typing import List, Optional

from pydantic import BaseModel, Field


class StartSessionRequest(BaseModel):
    topic: Optional[str] = None


class SessionLogInfo(BaseModel):
    id: str
    user_id: str
    school_id: str
    topic: str
    session_start: str
    session_end: Optional[str] = None
    duration_seconds: Optional[int] = None
    num_queries: int


class TopicCount(BaseModel):
    topic: str
    count: int


class SchoolUsageSummary(BaseModel):
    school_id: str
    days: int
    session_count: int
    total_queries: int
    average_duration_seconds: Optional[float] = Field(
        default=None, description="Average over ended sessions only."
    )
    active_students: int
    pending_students: int
    teacher_count: int
    top_topics: List[TopicCount] = Field(default_factory=list)
