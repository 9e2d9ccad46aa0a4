"""Profile database model."""

from sqlalchemy import Column, String, ForeignKey
from .base import Base


class ProfileModel(Base):
    """One profile per identity; role and school are filled in on assignment."""

    __tablename__ = "profiles"

    id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True)
    full_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    user_type = Column(String, nullable=True)  # 'student', 'teacher', 'school_admin'
    school_id = Column(String, ForeignKey("schools.id"), nullable=True, index=True)
    create_at = Column(String, nullable=False)
    update_at = Column(String, nullable=False)
