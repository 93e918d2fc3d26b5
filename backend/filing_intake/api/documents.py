from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File, Form
import logging

from filing_intake.api.dependencies import get_pipeline
from filing_intake.api.upload import read_validated_upload
from filing_intake.errors import InputError, PersistenceError, ReaggregationError
from filing_intake.models.database import Document
from filing_intake.models.schemas import (
    DeleteDocumentResponse,
    DocumentDetailResponse,
    DocumentListResponse,
    DocumentResponse,
    ReplaceDocumentResponse,
)
from filing_intake.services.document_pipeline import DocumentPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


def _detail(document: Document) -> DocumentDetailResponse:
    base = DocumentResponse.model_validate(document).model_dump()
    extracted = document.extracted_data.data if document.extracted_data is not None else None
    return DocumentDetailResponse(**base, extracted_data=extracted)


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    user_id: str = Query(..., description="Owner of the documents"),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """List a user's documents, newest first."""
    try:
        documents = await pipeline.list_documents(user_id)
    except PersistenceError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(d) for d in documents],
        total=len(documents)
    )


@router.get("/documents/{document_id}", response_model=DocumentDetailResponse)
async def get_document(
    document_id: int,
    user_id: str = Query(..., description="Owner of the document"),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """Get a specific document with its extracted data."""
    try:
        document = await pipeline.get_document(document_id, user_id)
    except PersistenceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return _detail(document)


@router.delete("/documents/{document_id}", response_model=DeleteDocumentResponse)
async def delete_document(
    document_id: int,
    user_id: str = Query(..., description="Owner of the document"),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """Delete a document and rebuild the user's form data from what remains."""
    try:
        report = await pipeline.delete_document(document_id, user_id)
    except (PersistenceError, ReaggregationError) as e:
        logger.error(f"Failed to delete document {document_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if report is None:
        raise HTTPException(status_code=404, detail="Document not found")

    return DeleteDocumentResponse(deleted=True, document_id=document_id, reaggregation=report)


@router.put("/documents/{document_id}", response_model=ReplaceDocumentResponse)
async def replace_document(
    document_id: int,
    file: UploadFile = File(..., description="Replacement file"),
    user_id: str = Form(..., description="Owner of the document"),
    use_llm: bool = Form(False, description="Try LLM extraction before regex"),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """Replace a document with a new file of the same type."""
    content, safe_filename = await read_validated_upload(file)

    try:
        outcome = await pipeline.replace_document(
            document_id, user_id, content, file.content_type, safe_filename, use_llm=use_llm
        )
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (PersistenceError, ReaggregationError) as e:
        logger.error(f"Failed to replace document {document_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if outcome is None:
        raise HTTPException(status_code=404, detail="Document not found")

    result, report = outcome
    return ReplaceDocumentResponse(replaced=result.success, document_id=document_id, result=result, reaggregation=report)
