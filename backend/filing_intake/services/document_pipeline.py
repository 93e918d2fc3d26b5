"""
Document Pipeline.

Upload flow: text extraction, field extraction (regex, or LLM with regex
fallback), durable storage of the extracted record, then incremental
migration into the canonical tables. Delete and replace end in a full
re-aggregation of the user's canonical state.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from filing_intake.config import settings
from filing_intake.errors import InputError, IntakeError, PersistenceError
from filing_intake.models.database import Document, DocumentStatusEnum, DocumentTypeEnum, ExtractedData
from filing_intake.models.schemas import ProcessedDocument, ReaggregationReport
from filing_intake.services.field_extraction import parse_document_text
from filing_intake.services.field_schemas import missing_critical_fields
from filing_intake.services.form_data_store import validate_user_id
from filing_intake.services.llm_client import LLMClientError
from filing_intake.services.llm_extraction import LLMExtractor, supported_document_types
from filing_intake.services.merge_engine import MergeEngine
from filing_intake.services.text_extractor import ProgressCallback, TextExtractor, media_kind_for

logger = logging.getLogger(__name__)

# Share of the progress range given to text extraction.
TEXT_PROGRESS_SHARE = 0.8


def parse_document_type(document_type: Any) -> DocumentTypeEnum:
    if isinstance(document_type, DocumentTypeEnum):
        return document_type
    try:
        return DocumentTypeEnum(document_type)
    except ValueError:
        raise InputError(f"Unsupported document type: {document_type}")


def _report(progress_callback: ProgressCallback, value: float) -> None:
    TextExtractor._report(progress_callback, value)


class DocumentPipeline:
    def __init__(
        self,
        db: AsyncSession,
        text_extractor: Optional[TextExtractor] = None,
        llm_extractor: Optional[LLMExtractor] = None,
        merge_engine: Optional[MergeEngine] = None,
    ):
        self.db = db
        self.text_extractor = text_extractor or TextExtractor()
        self.llm_extractor = llm_extractor
        self.merge_engine = merge_engine or MergeEngine(db)

    async def process_upload(
        self,
        file_bytes: bytes,
        mime_type: Optional[str],
        filename: str,
        document_type: Any,
        user_id: str,
        use_llm: bool = False,
        progress_callback: ProgressCallback = None,
    ) -> ProcessedDocument:
        """Run one upload end to end.

        Text extraction failures return ``success=False`` without creating a
        record. Once text exists the extracted record is committed before any
        canonical write; a failing canonical category only adds a warning.
        """
        doc_type = parse_document_type(document_type)
        user_id = validate_user_id(user_id)

        def scaled(value: float) -> None:
            _report(progress_callback, value * TEXT_PROGRESS_SHARE)

        logger.info(f"Processing {doc_type.value} upload '{filename}' for user {user_id} ({len(file_bytes)} bytes)")
        text_result = await self.text_extractor.extract(
            file_bytes, media_kind_for(mime_type, filename), scaled if progress_callback else None
        )
        if not text_result.success:
            logger.warning(f"Text extraction failed for '{filename}': {text_result.error}")
            return ProcessedDocument(success=False, document_type=doc_type, error=text_result.error)

        text = text_result.text
        try:
            data, method = await self._extract_fields(text, doc_type, use_llm)
        except IntakeError as e:
            return ProcessedDocument(success=False, document_type=doc_type, raw_text=text, error=str(e))
        _report(progress_callback, 0.9)

        data.pop("rawText", None)
        missing = missing_critical_fields(doc_type.value, data)
        if missing:
            logger.info(f"{doc_type.value} '{filename}' is missing critical fields: {missing}")

        document = await self._store_document(
            user_id=user_id,
            doc_type=doc_type,
            filename=filename,
            mime_type=mime_type,
            size_bytes=len(file_bytes),
            method=method,
            missing=missing,
            data=data,
            raw_text=text,
        )

        report = await self.merge_engine.migrate(user_id, data, doc_type.value, commit=True)
        warning = None
        if not report.complete:
            warning = f"Some form fields could not be updated: {', '.join(sorted(report.failed))}"

        _report(progress_callback, 1.0)
        return ProcessedDocument(
            success=True,
            document_id=document.id,
            document_type=doc_type,
            extracted_data=data,
            raw_text=text,
            extraction_method=method,
            missing_critical_fields=missing,
            needs_review=bool(missing),
            normalization_complete=report.complete,
            warning=warning,
        )

    async def _extract_fields(self, text: str, doc_type: DocumentTypeEnum, use_llm: bool) -> tuple[dict[str, Any], str]:
        if use_llm and self.llm_extractor is not None and doc_type.value in supported_document_types():
            try:
                data = await self.llm_extractor.extract(text, doc_type.value)
                return data, "llm"
            except (LLMClientError, IntakeError) as e:
                if not settings.llm_fallback_to_regex:
                    logger.error(f"LLM extraction failed for {doc_type.value}: {e}")
                    raise IntakeError(f"LLM extraction failed: {e}") from e
                logger.warning(f"LLM extraction failed for {doc_type.value}, falling back to regex: {e}")
        elif use_llm:
            logger.info(f"LLM extraction not available for {doc_type.value}, using regex")

        return parse_document_text(text, doc_type.value), "regex"

    async def _store_document(
        self,
        user_id: str,
        doc_type: DocumentTypeEnum,
        filename: str,
        mime_type: Optional[str],
        size_bytes: int,
        method: str,
        missing: list[str],
        data: dict[str, Any],
        raw_text: str,
    ) -> Document:
        document = Document(
            user_id=user_id,
            document_type=doc_type,
            original_filename=filename,
            mime_type=mime_type,
            size_bytes=size_bytes,
            status=DocumentStatusEnum.processed,
            extraction_method=method,
            needs_review=bool(missing),
            missing_critical_fields=missing,
        )
        document.extracted_data = ExtractedData(data=data, raw_text=raw_text)
        try:
            self.db.add(document)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to store document '{filename}': {e}")
            raise PersistenceError(f"Failed to store document: {e}") from e

        logger.info(f"Stored document {document.id} ({doc_type.value}, method={method})")
        return document

    async def get_document(self, document_id: int, user_id: str) -> Optional[Document]:
        """Load a document with its extracted data, or None when it is not the user's."""
        user_id = validate_user_id(user_id)
        result = await self.db.execute(
            select(Document)
            .options(selectinload(Document.extracted_data))
            .where(Document.id == document_id, Document.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_documents(self, user_id: str) -> list[Document]:
        user_id = validate_user_id(user_id)
        result = await self.db.execute(
            select(Document)
            .where(Document.user_id == user_id)
            .order_by(Document.uploaded_at.desc(), Document.id.desc())
        )
        return list(result.scalars().all())

    async def delete_document(self, document_id: int, user_id: str) -> Optional[ReaggregationReport]:
        """Delete a document and rebuild canonical state; the two commit together."""
        document = await self.get_document(document_id, user_id)
        if document is None:
            return None

        try:
            await self.db.delete(document)
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Failed to delete document {document_id}: {e}") from e

        logger.info(f"Deleted document {document_id} for user {user_id}")
        return await self.merge_engine.reaggregate(user_id)

    async def replace_document(
        self,
        document_id: int,
        user_id: str,
        file_bytes: bytes,
        mime_type: Optional[str],
        filename: str,
        use_llm: bool = False,
        progress_callback: ProgressCallback = None,
    ) -> Optional[tuple[ProcessedDocument, Optional[ReaggregationReport]]]:
        """Process a new file of the same type, then drop the old document and re-aggregate.

        The old document stays untouched when the new file cannot be processed.
        """
        existing = await self.get_document(document_id, user_id)
        if existing is None:
            return None

        result = await self.process_upload(
            file_bytes, mime_type, filename, existing.document_type, user_id, use_llm, progress_callback
        )
        if not result.success:
            return result, None

        reaggregation = await self.delete_document(document_id, user_id)
        return result, reaggregation
