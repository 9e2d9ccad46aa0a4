"""Conversations, messages and the AI tutor prompt.

The assistant answers from a system prompt assembled out of the topic, the
most relevant excerpts of the caller's own documents and the recent turns of
the conversation. Relevance is a plain keyword overlap score.
"""

import logging
import re
import uuid
from typing import List, Optional, Sequence, Tuple

from langchain_core.messages import HumanMessage, SystemMessage
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import CHAT_DOCUMENT_CHAR_LIMIT, CHAT_HISTORY_LIMIT, CHAT_MAX_SOURCES
from core.exceptions import (
    BadRequestError,
    InternalError,
    LearnAbleError,
    LLMError,
    NotFoundError,
)
from models.conversation import ConversationModel, MessageModel
from models.document import PROCESSING_COMPLETED, Document
from schemas.user import AuthContext
from utils.clock import Clock, utc_now
from utils.llm_manager import LLMManager
from utils.session_log_manager import SessionLogManager

logger = logging.getLogger(__name__)

SENDER_USER = "user"
SENDER_ASSISTANT = "assistant"

QUESTION_STOPWORDS = frozenset(
    {"what", "when", "where", "which", "how", "why", "who", "that", "this", "these", "those"}
)

BASE_PROMPT = "You are an educational AI assistant helping students learn."
CLOSING_PROMPT = (
    "Be helpful, accurate, and educational in your responses. For math problems, "
    "show your work. For factual questions, provide reliable information. If unsure "
    "about something, acknowledge the uncertainty rather than providing incorrect "
    "information."
)


def extract_keywords(question: str) -> List[str]:
    """Return the words of a question worth matching against documents."""
    words = re.sub(r"[^\w\s]", "", question.lower()).split()
    return [w for w in words if len(w) > 3 and w not in QUESTION_STOPWORDS]


def score_document(text: str, keywords: Sequence[str]) -> Tuple[float, str]:
    """Score a document by the share of keywords it contains.

    Returns:
        ``(score, excerpt)``; the excerpt is the sentence around the first
        matching keyword, empty when nothing matched.
    """
    if not keywords or not text:
        return 0.0, ""
    lower = text.lower()
    matched = [kw for kw in keywords if kw in lower]
    if not matched:
        return 0.0, ""

    index = lower.find(matched[0])
    start = lower.rfind(".", 0, index) + 1
    end = lower.find(".", index + 100)
    end = len(lower) if end == -1 else end + 1
    return len(matched) / len(keywords), text[start:end].strip()


def _truncate(text: str, limit: int = CHAT_DOCUMENT_CHAR_LIMIT) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def build_system_prompt(
    topic: Optional[str],
    documents: Sequence[str],
    history: Sequence[MessageModel],
) -> str:
    """Assemble the tutor system prompt.

    Args:
        topic: Optional study topic.
        documents: Document texts, most relevant first.
        history: Earlier messages of the conversation, oldest first.
    """
    parts = [BASE_PROMPT]
    if topic:
        parts.append(f"The current topic is: {topic}.")
    if documents:
        context = "Here is relevant information from the user's documents:\n\n"
        for i, text in enumerate(documents, start=1):
            context += f"Document {i}: {_truncate(text)}\n\n"
        parts.append(context)
    if history:
        turns = "\n\n".join(
            f"{'Student' if m.sender == SENDER_USER else 'AI'}: {m.content}" for m in history
        )
        parts.append("Here is the conversation history to provide context:\n\n" + turns)
    parts.append(CLOSING_PROMPT)
    return " ".join(parts)


def message_to_dict(message: MessageModel) -> dict:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender": message.sender,
        "content": message.content,
        "timestamp": message.timestamp,
    }


def conversation_to_dict(conversation: ConversationModel) -> dict:
    return {
        "id": conversation.id,
        "title": conversation.title,
        "create_at": conversation.create_at,
        "last_message_at": conversation.last_message_at,
    }


class ChatManager:
    """Stores chat history and answers questions through the LLM."""

    def __init__(
        self,
        db: Session,
        llm_manager: Optional[LLMManager] = None,
        clock: Clock = utc_now,
    ):
        """Initialize ChatManager.

        Args:
            db: SQLAlchemy Session.
            llm_manager: Resolves the chat model; defaults to one on ``db``.
            clock: Callable returning the current aware datetime.
        """
        self.db = db
        self.llm_manager = llm_manager or LLMManager(db)
        self.clock = clock
        self.sessions = SessionLogManager(db, clock=clock)

    def _require_conversation(self, ctx: AuthContext, conversation_id: str) -> ConversationModel:
        conversation = (
            self.db.query(ConversationModel)
            .filter(
                ConversationModel.id == conversation_id,
                ConversationModel.user_id == ctx.user_id,
            )
            .first()
        )
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    def _record(
        self,
        ctx: AuthContext,
        conversation_id: Optional[str],
        session_log_id: Optional[str],
        messages: Sequence[Tuple[str, str]],
    ) -> List[MessageModel]:
        """Write ``(sender, content)`` pairs and the query count in one commit.

        A missing ``conversation_id`` opens a new conversation.
        """
        now = self.clock()
        try:
            if conversation_id:
                conversation = self._require_conversation(ctx, conversation_id)
                conversation.last_message_at = now.isoformat()
            else:
                conversation = ConversationModel(
                    id=uuid.uuid4().hex,
                    user_id=ctx.user_id,
                    school_id=self.sessions.resolve_school_id(ctx.user_id),
                    title=f"New conversation on {now.strftime('%Y-%m-%d')}",
                    create_at=now.isoformat(),
                    last_message_at=now.isoformat(),
                )
                self.db.add(conversation)
                self.db.flush()

            rows = [
                MessageModel(
                    conversation_id=conversation.id,
                    sender=sender,
                    content=content,
                    timestamp=now.isoformat(),
                )
                for sender, content in messages
            ]
            self.db.add_all(rows)
            if session_log_id and self.sessions.add_query(ctx, session_log_id) == 0:
                raise NotFoundError("Session log", session_log_id)
            self.db.commit()
        except NotFoundError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to save messages for user %s: %s", ctx.user_id, e)
            raise InternalError("Failed to save chat messages") from e

        for row in rows:
            self.db.refresh(row)
        return rows

    def save_message(
        self,
        ctx: AuthContext,
        sender: str,
        content: str,
        conversation_id: Optional[str] = None,
        session_log_id: Optional[str] = None,
    ) -> MessageModel:
        """Append a message, opening a new conversation when none is given.

        Raises:
            BadRequestError: For an unknown sender or empty content.
            NotFoundError: If the conversation or session log is not the caller's;
                nothing is written.
        """
        if sender not in (SENDER_USER, SENDER_ASSISTANT):
            raise BadRequestError(f"Invalid sender: {sender}. Must be 'user' or 'assistant'.")
        if not content or not content.strip():
            raise BadRequestError("Message content is required")
        if session_log_id:
            self.sessions.require_own_log(ctx, session_log_id)

        return self._record(ctx, conversation_id, session_log_id, [(sender, content)])[0]

    def list_conversations(self, ctx: AuthContext) -> List[ConversationModel]:
        """Return the caller's conversations, most recently active first."""
        return (
            self.db.query(ConversationModel)
            .filter(ConversationModel.user_id == ctx.user_id)
            .order_by(ConversationModel.last_message_at.desc())
            .all()
        )

    def get_history(self, ctx: AuthContext, conversation_id: str) -> List[MessageModel]:
        """Return every message of one of the caller's conversations, oldest first."""
        conversation = self._require_conversation(ctx, conversation_id)
        return list(conversation.messages)

    def _recent_messages(self, conversation_id: str) -> List[MessageModel]:
        rows = (
            self.db.query(MessageModel)
            .filter(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.id.desc())
            .limit(CHAT_HISTORY_LIMIT)
            .all()
        )
        return list(reversed(rows))

    def _relevant_documents(
        self, ctx: AuthContext, question: str, document_id: Optional[int]
    ) -> List[dict]:
        if document_id is not None:
            doc = (
                self.db.query(Document)
                .filter(Document.id == document_id, Document.owner_id == ctx.user_id)
                .first()
            )
            if doc is None:
                raise NotFoundError("Document", document_id)
            return [
                {
                    "document_id": doc.id,
                    "filename": doc.filename,
                    "relevance_score": 1.0,
                    "content": doc.content_text or "",
                    "excerpt": None,
                }
            ]

        keywords = extract_keywords(question)
        if not keywords:
            return []
        docs = (
            self.db.query(Document)
            .filter(
                Document.owner_id == ctx.user_id,
                Document.processing_status == PROCESSING_COMPLETED,
            )
            .all()
        )
        scored = []
        for doc in docs:
            score, excerpt = score_document(doc.content_text or "", keywords)
            if score > 0:
                scored.append(
                    {
                        "document_id": doc.id,
                        "filename": doc.filename,
                        "relevance_score": score,
                        "content": doc.content_text,
                        "excerpt": excerpt,
                    }
                )
        scored.sort(key=lambda d: d["relevance_score"], reverse=True)
        return scored[:CHAT_MAX_SOURCES]

    def ask(
        self,
        ctx: AuthContext,
        question: str,
        topic: Optional[str] = None,
        document_id: Optional[int] = None,
        conversation_id: Optional[str] = None,
        session_log_id: Optional[str] = None,
        use_documents: bool = True,
    ) -> dict:
        """Answer a question and record both sides of the exchange.

        Returns:
            Dict with ``answer``, ``conversation_id`` and ``sources``.

        Raises:
            BadRequestError: If the question is empty or no model is configured.
            NotFoundError: For a conversation, document or session log that is
                not the caller's.
            LLMError: If the provider call fails.
        """
        if not question or not question.strip():
            raise BadRequestError("Question is required")

        history: List[MessageModel] = []
        if conversation_id:
            self._require_conversation(ctx, conversation_id)
            history = self._recent_messages(conversation_id)
        if session_log_id:
            self.sessions.require_own_log(ctx, session_log_id)

        sources = (
            self._relevant_documents(ctx, question, document_id) if use_documents else []
        )
        system_prompt = build_system_prompt(
            topic, [s["content"] for s in sources if s["content"]], history
        )

        llm = self.llm_manager.get_llm(ctx.user_id)
        try:
            response = llm.invoke(
                [SystemMessage(content=system_prompt), HumanMessage(content=question)]
            )
        except LearnAbleError:
            raise
        except Exception as e:
            logger.error("LLM call failed for user %s: %s", ctx.user_id, e)
            raise LLMError("Error getting response from AI") from e
        answer = response.content if isinstance(response.content, str) else str(response.content)

        question_msg, _ = self._record(
            ctx,
            conversation_id,
            session_log_id,
            [(SENDER_USER, question), (SENDER_ASSISTANT, answer)],
        )

        return {
            "answer": answer,
            "conversation_id": question_msg.conversation_id,
            "sources": [
                {
                    "document_id": s["document_id"],
                    "filename": s["filename"],
                    "relevance_score": s["relevance_score"],
                    "excerpt": s["excerpt"],
                }
                for s in sources
            ],
        }
