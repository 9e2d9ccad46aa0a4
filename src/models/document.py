from sqlalchemy import Column, Integer, String, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base

PROCESSING_COMPLETED = "completed"
PROCESSING_FAILED = "failed"


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String, ForeignKey("users.user_id"), nullable=False, index=True)
    school_id = Column(String, nullable=True, index=True)

    filename = Column(String, nullable=False)  # original upload name
    content_type = Column(String, nullable=True)
    size = Column(Integer, nullable=False, default=0)
    storage_path = Column(String)  # Relative to DOCUMENTS_DIR, contains user_id
    content_text = Column(Text, nullable=True)
    processing_status = Column(String, nullable=False, default=PROCESSING_COMPLETED)
    meta_info = Column(JSON, default=dict)
    upload_time = Column(String, nullable=False)

    owner = relationship("UserModel", backref="documents")
