"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes.
Every manager is built around the request-scoped DB session; tests swap in
a fake clock or chat model through ``app.dependency_overrides``.
"""

from typing import Annotated, Optional

from fastapi import Depends
from langchain_core.language_models.chat_models import BaseChatModel
from sqlalchemy.orm import Session

from core.database import get_db
from utils import chat_manager
from utils import document_manager
from utils import invitation_manager
from utils import llm_manager
from utils import role_manager
from utils import school_manager
from utils import session_log_manager
from utils import student_manager
from utils import user_manager
from utils.clock import Clock, utc_now
from utils.notifier import InvitationNotifier

_notifier = InvitationNotifier()


def get_clock() -> Clock:
    """Return the wall clock used by managers."""
    return utc_now


def get_chat_model() -> Optional[BaseChatModel]:
    """Return a fixed chat model, or None to resolve one per user."""
    return None


def get_notifier() -> InvitationNotifier:
    return _notifier


def get_user_manager(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.
        clock: Current-time source.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db, clock=clock)


def get_role_manager(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> role_manager.RoleManager:
    return role_manager.RoleManager(db, clock=clock)


def get_school_manager(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> school_manager.SchoolManager:
    return school_manager.SchoolManager(db, clock=clock)


def get_invitation_manager(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: InvitationNotifier = Depends(get_notifier),
) -> invitation_manager.InvitationManager:
    return invitation_manager.InvitationManager(db, clock=clock, notifier=notifier)


def get_student_manager(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> student_manager.StudentManager:
    return student_manager.StudentManager(db, clock=clock)


def get_llm_manager(
    db: Session = Depends(get_db),
    chat_model: Optional[BaseChatModel] = Depends(get_chat_model),
) -> llm_manager.LLMManager:
    """Get LLMManager instance with request-scoped DB session."""
    return llm_manager.LLMManager(db, chat_model=chat_model)


def get_chat_manager(
    db: Session = Depends(get_db),
    llm: llm_manager.LLMManager = Depends(get_llm_manager),
    clock: Clock = Depends(get_clock),
) -> chat_manager.ChatManager:
    return chat_manager.ChatManager(db, llm_manager=llm, clock=clock)


def get_document_manager(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> document_manager.DocumentManager:
    """Get DocumentManager instance with request-scoped DB session."""
    return document_manager.DocumentManager(db, clock=clock)


def get_session_log_manager(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> session_log_manager.SessionLogManager:
    return session_log_manager.SessionLogManager(db, clock=clock)


# Type aliases for dependency injection
UserManagerDep = Annotated[user_manager.UserManager, Depends(get_user_manager)]
RoleManagerDep = Annotated[role_manager.RoleManager, Depends(get_role_manager)]
SchoolManagerDep = Annotated[school_manager.SchoolManager, Depends(get_school_manager)]
InvitationManagerDep = Annotated[
    invitation_manager.InvitationManager, Depends(get_invitation_manager)
]
StudentManagerDep = Annotated[student_manager.StudentManager, Depends(get_student_manager)]
LLMManagerDep = Annotated[llm_manager.LLMManager, Depends(get_llm_manager)]
ChatManagerDep = Annotated[chat_manager.ChatManager, Depends(get_chat_manager)]
DocumentManagerDep = Annotated[
    document_manager.DocumentManager, Depends(get_document_manager)
]
SessionLogManagerDep = Annotated[
    session_log_manager.SessionLogManager, Depends(get_session_log_manager)
]
