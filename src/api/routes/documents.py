"""Document routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status

from api.routes.auth import get_auth_context
from core.dependencies import DocumentManagerDep
from schemas.common import DataResponse
from schemas.document import DocumentInfo
from schemas.user import AuthContext
from utils.document_manager import document_to_dict

router = APIRouter(prefix="/api/documents", tags=["Document"])


@router.post(
    "",
    response_model=DataResponse[DocumentInfo],
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document",
)
async def upload_document(
    document_manager: DocumentManagerDep,
    file: UploadFile = File(...),
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Upload a PDF or text file; its text becomes available to the tutor."""
    data = await file.read()
    doc = document_manager.upload(ctx, file.filename, file.content_type, data)
    return {"data": document_to_dict(doc), "message": "Document uploaded successfully"}


@router.get("", response_model=DataResponse[List[DocumentInfo]], summary="List documents")
def list_documents(
    document_manager: DocumentManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    return {"data": [document_to_dict(d) for d in document_manager.list_documents(ctx)]}


@router.get("/{doc_id}", response_model=DataResponse[DocumentInfo], summary="Get a document")
def get_document(
    doc_id: int,
    document_manager: DocumentManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    return {"data": document_to_dict(document_manager.get_document(ctx, doc_id))}


@router.delete(
    "/{doc_id}",
    response_model=DataResponse[Optional[dict]],
    summary="Delete a document",
)
def delete_document(
    doc_id: int,
    document_manager: DocumentManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    document_manager.delete_document(ctx, doc_id)
    return {"data": None, "message": "Document deleted"}
