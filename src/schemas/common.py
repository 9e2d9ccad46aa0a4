"""Response envelope shared by all routes.

Successful handlers answer ``{"data": ..., "message": ...}``; failures are
rendered as ``{"error": ..., "message": ...}`` by the exception handlers in
``app.py``.
"""

import re
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class DataResponse(BaseModel, Generic[T]):
    data: T
    message: Optional[str] = Field(default=None, description="Optional human-readable note.")


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None


def normalize_email(value: str) -> str:
    """Strip and lower-case an email address, rejecting malformed input."""
    email = (value or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValueError("Invalid email address")
    return email
