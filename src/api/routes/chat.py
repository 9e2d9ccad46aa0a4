"""Chat routes.

Conversation history and the AI tutor endpoint.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from api.routes.auth import get_auth_context
from core.dependencies import ChatManagerDep
from schemas.chat import (
    AskRequest,
    AskResponse,
    ConversationInfo,
    MessageInfo,
    SaveMessageRequest,
)
from schemas.common import DataResponse
from schemas.user import AuthContext
from utils.chat_manager import conversation_to_dict, message_to_dict

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.post(
    "/messages",
    response_model=DataResponse[MessageInfo],
    status_code=status.HTTP_201_CREATED,
    summary="Save a chat message",
)
def save_message(
    req: SaveMessageRequest,
    chat_manager: ChatManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Append a message; a new conversation is opened when none is given."""
    message = chat_manager.save_message(
        ctx,
        req.sender,
        req.content,
        conversation_id=req.conversation_id,
        session_log_id=req.session_log_id,
    )
    return {"data": message_to_dict(message)}


@router.get(
    "/conversations",
    response_model=DataResponse[List[ConversationInfo]],
    summary="List conversations",
)
def list_conversations(
    chat_manager: ChatManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    return {"data": [conversation_to_dict(c) for c in chat_manager.list_conversations(ctx)]}


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=DataResponse[List[MessageInfo]],
    summary="Conversation history",
)
def get_history(
    conversation_id: str,
    chat_manager: ChatManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    return {"data": [message_to_dict(m) for m in chat_manager.get_history(ctx, conversation_id)]}


@router.post("/ask", response_model=DataResponse[AskResponse], summary="Ask the AI tutor")
def ask(
    req: AskRequest,
    chat_manager: ChatManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Answer a question using the caller's documents and conversation so far.

    Both the question and the answer are stored in the conversation.
    """
    result = chat_manager.ask(
        ctx,
        req.question,
        topic=req.topic,
        document_id=req.document_id,
        conversation_id=req.conversation_id,
        session_log_id=req.session_log_id,
        use_documents=req.use_documents,
    )
    return {"data": result}
