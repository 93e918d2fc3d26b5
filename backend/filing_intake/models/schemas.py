from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime

from filing_intake.models.database import DocumentStatusEnum, DocumentTypeEnum


# Text extraction
class TextExtractionResult(BaseModel):
    success: bool
    text: str = ""
    error: Optional[str] = None
    ocr_used: bool = False
    page_count: int = 0


# Pipeline results
class ProcessedDocument(BaseModel):
    """Outcome of one upload as reported back to the upload collaborator."""
    success: bool
    document_id: Optional[int] = None
    document_type: Optional[DocumentTypeEnum] = None
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    raw_text: str = ""
    error: Optional[str] = None
    extraction_method: Optional[Literal["regex", "llm"]] = None
    missing_critical_fields: List[str] = Field(default_factory=list)
    needs_review: bool = False
    normalization_complete: bool = False
    warning: Optional[str] = None


class MigrationReport(BaseModel):
    applied: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failed


class ReaggregationReport(BaseModel):
    user_id: str
    documents_replayed: int
    failed_categories: Dict[str, Dict[str, str]] = Field(default_factory=dict)


# Document schemas
class DocumentResponse(BaseModel):
    id: int
    user_id: str
    document_type: DocumentTypeEnum
    original_filename: str
    mime_type: Optional[str]
    size_bytes: Optional[int]
    status: DocumentStatusEnum
    extraction_method: Optional[str]
    needs_review: bool
    missing_critical_fields: Optional[List[str]]
    error_message: Optional[str]
    uploaded_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DocumentDetailResponse(DocumentResponse):
    extracted_data: Optional[Dict[str, Any]] = None


class DocumentListResponse(BaseModel):
    documents: List[DocumentResponse]
    total: int


class DeleteDocumentResponse(BaseModel):
    deleted: bool
    document_id: int
    reaggregation: ReaggregationReport


class ReplaceDocumentResponse(BaseModel):
    replaced: bool
    document_id: int
    result: ProcessedDocument
    reaggregation: Optional[ReaggregationReport] = None


# Form data
class FormDataResponse(BaseModel):
    personal_info: Dict[str, Any]
    financial_info: Dict[str, Any]
    marriage_info: Dict[str, Any]
    court_info: Dict[str, Any]


# LLM usage
class LLMUsageEntry(BaseModel):
    timestamp: datetime
    document_type: str
    model: str
    input_chars: int
    output_chars: int
    input_tokens: int
    output_tokens: int
    estimated_cost: float


class LLMUsageStats(BaseModel):
    total_calls: int
    total_cost: float
    by_document_type: Dict[str, Dict[str, float]]


# Health check
class LLMHealth(BaseModel):
    """LLM provider health status."""
    provider: str  # "ollama" or "vllm"
    enabled: bool
    reachable: bool
    base_url: str
    model: str


class HealthResponse(BaseModel):
    ok: bool
    database: bool
    llm: LLMHealth
