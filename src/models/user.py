"""User database model.

This module defines the identity (login credentials) model using SQLAlchemy.
The profile, role and school links live in ``models.profile``.
"""

from sqlalchemy import Column, String
from .base import Base


class UserModel(Base):
    """Identity database model."""

    __tablename__ = "users"

    user_id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)  # lower-cased
    password_hash = Column(String, nullable=False)
    create_at = Column(String, nullable=False)  # ISO format string
