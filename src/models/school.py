"""School and school code log database models."""

from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base


class SchoolModel(Base):
    __tablename__ = "schools"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    code = Column(String, index=True, nullable=False)  # unique among active schools
    code_expires_at = Column(String, nullable=True)  # None: valid until regenerated
    contact_email = Column(String, nullable=True)
    create_at = Column(String, nullable=False)

    teachers = relationship(
        "TeacherModel",
        back_populates="school",
        cascade="all, delete-orphan",
    )
    students = relationship(
        "StudentModel",
        back_populates="school",
        cascade="all, delete-orphan",
    )


class SchoolCodeLogModel(Base):
    """One row per code generation, used for rate limiting."""

    __tablename__ = "school_code_logs"

    id = Column(Integer, primary_key=True, index=True)
    school_id = Column(String, ForeignKey("schools.id", ondelete="CASCADE"), index=True)
    generated_by = Column(String, nullable=False)
    code = Column(String, nullable=False)
    generated_at = Column(String, nullable=False, index=True)
