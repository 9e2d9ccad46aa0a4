"""Chat schema definitions."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class SaveMessageRequest(BaseModel):
    sender: Literal["user", "assistant"]
    content: str = Field(min_length=1)
    conversation_id: Optional[str] = None
    session_log_id: Optional[str] = None


class MessageInfo(BaseModel):
    id: int
    conversation_id: str
    sender: str
    content: str
    timestamp: str


class ConversationInfo(BaseModel):
    id: str
    title: str
    create_at: str
    last_message_at: str


class AskRequest(BaseModel):
    question: str = Field(min_length=1)
    topic: Optional[str] = None
    document_id: Optional[int] = None
    conversation_id: Optional[str] = None
    session_log_id: Optional[str] = None
    use_documents: bool = True


class SourceCitation(BaseModel):
    document_id: int
    filename: str
    relevance_score: float
    excerpt: Optional[str] = None


class AskResponse(BaseModel):
    answer: str
    conversation_id: str
    sources: List[SourceCitation] = Field(default_factory=list)
