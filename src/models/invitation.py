"""Invitation database model.

Teacher and student invitations share one table. Email-bound invitations have
``email`` set; shareable student invitations carry a ``code``.
"""

from sqlalchemy import Column, String, ForeignKey
from .base import Base

INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_EXPIRED = "expired"


class InvitationModel(Base):
    """Invitation database model."""

    __tablename__ = "invitations"

    id = Column(String, primary_key=True, index=True)
    school_id = Column(String, ForeignKey("schools.id", ondelete="CASCADE"), index=True, nullable=False)
    role = Column(String, nullable=False)  # 'teacher' or 'student'
    email = Column(String, nullable=True, index=True)
    code = Column(String, nullable=True, unique=True, index=True)
    invitation_token = Column(String, nullable=False, unique=True, index=True)
    status = Column(String, nullable=False, default=INVITATION_PENDING)
    created_by = Column(String, nullable=False)  # user_id
    created_at = Column(String, nullable=False)  # ISO format string
    expires_at = Column(String, nullable=False)  # ISO format string
    accepted_by = Column(String, nullable=True)
    accepted_at = Column(String, nullable=True)
