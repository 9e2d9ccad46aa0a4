from sqlalchemy import Column, String, ForeignKey
from .base import Base


class AdminRoleModel(Base):
    __tablename__ = "admin_roles"

    user_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True)
    role = Column(String, nullable=False)
    granted_at = Column(String, nullable=False)
