from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
import re
import logging
from typing import Optional

from filing_intake.api.dependencies import get_pipeline
from filing_intake.config import settings
from filing_intake.errors import InputError, PersistenceError
from filing_intake.models.database import DocumentTypeEnum
from filing_intake.models.schemas import ProcessedDocument
from filing_intake.services.document_pipeline import DocumentPipeline
from filing_intake.services.text_extractor import media_kind_for

logger = logging.getLogger(__name__)

router = APIRouter()


MAX_FILENAME_CHARS = 120


def clean_filename(filename: Optional[str]) -> str:
    """Basename of a client-supplied filename, restricted to a safe character set."""
    name = re.split(r"[/\\]", (filename or "").replace("\x00", ""))[-1]
    name = re.sub(r"[^A-Za-z0-9._\- ()]+", "_", name).strip(" .")
    if not name:
        return "upload"
    if len(name) <= MAX_FILENAME_CHARS:
        return name
    stem, dot, ext = name.rpartition(".")
    if dot and len(ext) <= 8:
        return f"{stem[:MAX_FILENAME_CHARS - len(ext) - 1]}.{ext}"
    return name[:MAX_FILENAME_CHARS]


async def read_validated_upload(file: UploadFile) -> tuple[bytes, str]:
    """Check media type and size; returns (content, safe filename)."""
    safe_filename = clean_filename(file.filename)

    if media_kind_for(file.content_type, safe_filename) is None:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {file.content_type}. Allowed: PDF and images"
        )

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)}MB"
        )
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")

    return content, safe_filename


@router.post("/upload", response_model=ProcessedDocument)
async def upload_document(
    file: UploadFile = File(..., description="Document file to upload"),
    document_type: str = Form(..., description="Declared document type"),
    user_id: str = Form(..., description="Owner of the document"),
    use_llm: bool = Form(False, description="Try LLM extraction before regex"),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """Upload a document and run the extraction pipeline."""
    logger.info(f"Upload request: user_id={user_id}, type={document_type}, filename={file.filename}, content_type={file.content_type}")

    if document_type not in {t.value for t in DocumentTypeEnum}:
        raise HTTPException(status_code=400, detail=f"Unsupported document type: {document_type}")
    if not user_id.strip():
        raise HTTPException(status_code=400, detail="user_id is required")

    content, safe_filename = await read_validated_upload(file)

    try:
        return await pipeline.process_upload(
            content,
            file.content_type,
            safe_filename,
            document_type,
            user_id,
            use_llm=use_llm,
        )
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Upload failed to persist: {e}")
        raise HTTPException(status_code=500, detail=str(e))
