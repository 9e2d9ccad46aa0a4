from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base

STUDENT_PENDING = "pending"
STUDENT_ACTIVE = "active"


class StudentModel(Base):
    __tablename__ = "students"

    id = Column(String, ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    school_id = Column(String, ForeignKey("schools.id", ondelete="CASCADE"), index=True, nullable=False)
    status = Column(String, nullable=False, default=STUDENT_PENDING)
    create_at = Column(String, nullable=False)
    update_at = Column(String, nullable=False)

    school = relationship("SchoolModel", back_populates="students")
