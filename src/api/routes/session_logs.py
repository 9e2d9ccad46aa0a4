"""Study session log routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, status

from api.routes.auth import get_auth_context
from core.dependencies import SessionLogManagerDep
from schemas.common import DataResponse
from schemas.session_log import SessionLogInfo, StartSessionRequest
from schemas.user import AuthContext
from utils.session_log_manager import session_log_to_dict

router = APIRouter(prefix="/api/session-logs", tags=["Session Log"])


@router.post(
    "",
    response_model=DataResponse[SessionLogInfo],
    status_code=status.HTTP_201_CREATED,
    summary="Start a study session",
)
def start_session(
    session_log_manager: SessionLogManagerDep,
    req: Optional[StartSessionRequest] = None,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    log = session_log_manager.start_session(ctx, topic=req.topic if req else None)
    return {"data": session_log_to_dict(log)}


@router.get("", response_model=DataResponse[List[SessionLogInfo]], summary="List my sessions")
def list_sessions(
    session_log_manager: SessionLogManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    return {"data": [session_log_to_dict(log) for log in session_log_manager.list_sessions(ctx)]}


@router.post(
    "/{log_id}/end",
    response_model=DataResponse[SessionLogInfo],
    summary="End a study session",
)
def end_session(
    log_id: str,
    session_log_manager: SessionLogManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Close the session and record its duration. Ending twice is harmless."""
    return {"data": session_log_to_dict(session_log_manager.end_session(ctx, log_id))}


@router.post(
    "/{log_id}/queries",
    response_model=DataResponse[dict],
    summary="Count a query against a session",
)
def increment_queries(
    log_id: str,
    session_log_manager: SessionLogManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    count = session_log_manager.increment_queries(ctx, log_id)
    return {"data": {"id": log_id, "num_queries": count}}
