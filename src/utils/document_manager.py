import io
import logging
import uuid
from pathlib import Path
from typing import List, Optional

import pdfplumber
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import DOCUMENTS_DIR, MAX_UPLOAD_BYTES, get_user_doc_dir
from core.exceptions import BadRequestError, InternalError, NotFoundError
from models.document import PROCESSING_COMPLETED, PROCESSING_FAILED, Document
from schemas.user import AuthContext
from utils.clock import Clock, utc_now
from utils.session_log_manager import SessionLogManager

logger = logging.getLogger(__name__)

TEXT_CONTENT_TYPES = ("text/plain", "text/markdown", "text/csv")
TEXT_SUFFIXES = (".txt", ".md", ".markdown", ".csv")


def document_to_dict(doc: Document) -> dict:
    return {
        "id": doc.id,
        "owner_id": doc.owner_id,
        "school_id": doc.school_id,
        "filename": doc.filename,
        "content_type": doc.content_type,
        "size": doc.size,
        "processing_status": doc.processing_status,
        "meta_info": doc.meta_info or {},
        "upload_time": doc.upload_time,
    }


def extract_text(filename: str, content_type: Optional[str], data: bytes) -> Optional[str]:
    """Extract plain text from an upload, or None for unsupported types."""
    suffix = Path(filename).suffix.lower()
    if suffix == ".pdf" or content_type == "application/pdf":
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
        return "\n\n".join(pages)
    if suffix in TEXT_SUFFIXES or (content_type or "").startswith(TEXT_CONTENT_TYPES):
        return data.decode("utf-8")
    return None


class DocumentManager:
    """Manages Document operations."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def upload(
        self,
        ctx: AuthContext,
        filename: str,
        content_type: Optional[str],
        data: bytes,
    ) -> Document:
        """Store an upload on disk and record its extracted text.

        A file whose text cannot be extracted is still stored, with
        ``processing_status`` set to failed.

        Raises:
            BadRequestError: If the file is empty, unnamed or too large.
            InternalError: If the document row cannot be written; the stored
                file is removed again.
        """
        safe_name = Path(filename or "").name
        if not safe_name:
            raise BadRequestError("Filename is required")
        if not data:
            raise BadRequestError("Uploaded file is empty")
        if len(data) > MAX_UPLOAD_BYTES:
            raise BadRequestError(
                f"File exceeds the maximum upload size of {MAX_UPLOAD_BYTES} bytes"
            )

        user_dir = get_user_doc_dir(ctx.user_id)
        user_dir.mkdir(parents=True, exist_ok=True)
        stored_name = f"{uuid.uuid4().hex}_{safe_name}"
        stored_path = user_dir / stored_name
        stored_path.write_bytes(data)

        meta_info = {}
        try:
            text = extract_text(safe_name, content_type, data)
        except Exception as e:  # pdfplumber raises several unrelated types
            logger.warning("Text extraction failed for %s: %s", safe_name, e)
            text = None
            meta_info["error"] = str(e)
        if text is None and "error" not in meta_info:
            meta_info["error"] = "Unsupported file type"
        if text is not None:
            meta_info["characters"] = len(text)

        doc = Document(
            owner_id=ctx.user_id,
            school_id=SessionLogManager(self.db).resolve_school_id(ctx.user_id),
            filename=safe_name,
            content_type=content_type,
            size=len(data),
            storage_path=str(Path(ctx.user_id) / stored_name),
            content_text=text,
            processing_status=PROCESSING_COMPLETED if text is not None else PROCESSING_FAILED,
            meta_info=meta_info,
            upload_time=self.clock().isoformat(),
        )
        try:
            self.db.add(doc)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            stored_path.unlink(missing_ok=True)
            logger.error("Failed to record document %s: %s", safe_name, e)
            raise InternalError("Failed to store document") from e
        self.db.refresh(doc)
        logger.info(
            "Created document: %s (id=%s, owner=%s)", safe_name, doc.id, ctx.user_id
        )
        return doc

    def list_documents(self, ctx: AuthContext) -> List[Document]:
        """List all documents owned by the caller, newest first."""
        return (
            self.db.query(Document)
            .filter(Document.owner_id == ctx.user_id)
            .order_by(Document.upload_time.desc())
            .all()
        )

    def get_document(self, ctx: AuthContext, doc_id: int) -> Document:
        doc = (
            self.db.query(Document)
            .filter(Document.id == doc_id, Document.owner_id == ctx.user_id)
            .first()
        )
        if doc is None:
            raise NotFoundError("Document", doc_id)
        return doc

    def delete_document(self, ctx: AuthContext, doc_id: int) -> None:
        """Delete a document row and its stored file."""
        doc = self.get_document(ctx, doc_id)
        if doc.storage_path:
            path = DOCUMENTS_DIR / doc.storage_path
            path.unlink(missing_ok=True)
        self.db.delete(doc)
        self.db.commit()
        logger.info("Deleted document: %s (owner=%s)", doc.filename, ctx.user_id)
