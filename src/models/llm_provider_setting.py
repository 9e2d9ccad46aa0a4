"""LLM provider settings model.

This module defines per-provider API key storage.
"""

from sqlalchemy import Column, String, ForeignKey

from .base import Base


class LLMProviderSetting(Base):
    """Per-user, per-provider API key and model override."""

    __tablename__ = "llm_provider_settings"

    user_id = Column(String, ForeignKey("users.user_id"), primary_key=True)
    provider = Column(String, primary_key=True)
    api_key = Column(String, nullable=False)
    model = Column(String, nullable=True)
