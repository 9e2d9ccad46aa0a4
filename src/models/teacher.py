from sqlalchemy import Boolean, Column, String, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base


class TeacherModel(Base):
    __tablename__ = "teachers"

    id = Column(String, ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    school_id = Column(String, ForeignKey("schools.id", ondelete="CASCADE"), index=True, nullable=False)
    is_supervisor = Column(Boolean, nullable=False, default=False)
    create_at = Column(String, nullable=False)

    school = relationship("SchoolModel", back_populates="teachers")
