import pytest
from unittest.mock import AsyncMock, patch

from filing_intake.config import settings
from filing_intake.errors import InputError
from filing_intake.models.database import DocumentStatusEnum, DocumentTypeEnum
from filing_intake.services.document_pipeline import DocumentPipeline, parse_document_type
from filing_intake.services.llm_client import LLMClientError


USER = "user-1"


class TestParseDocumentType:
    def test_known_type(self):
        assert parse_document_type("payStub") is DocumentTypeEnum.pay_stub
        assert parse_document_type(DocumentTypeEnum.tax_return) is DocumentTypeEnum.tax_return

    def test_unknown_type(self):
        with pytest.raises(InputError):
            parse_document_type("recipe")


class TestProcessUpload:
    @pytest.mark.asyncio
    async def test_pay_stub_end_to_end(self, pipeline, pay_stub_text):
        progress = []

        result = await pipeline.process_upload(
            pay_stub_text.encode(), "application/pdf", "stub.pdf", "payStub", USER,
            progress_callback=progress.append,
        )

        assert result.success is True
        assert result.document_id is not None
        assert result.extraction_method == "regex"
        assert result.extracted_data["employerName"] == "Acme Corp"
        assert result.missing_critical_fields == []
        assert result.needs_review is False
        assert result.warning is None
        assert progress[-1] == 1.0

        document = await pipeline.get_document(result.document_id, USER)
        assert document.status == DocumentStatusEnum.processed
        assert document.extraction_method == "regex"
        assert document.extracted_data.data["grossPay"] == 4000.0
        assert "Acme Corp" in document.extracted_data.raw_text

    @pytest.mark.asyncio
    async def test_text_failure_creates_no_record(self, pipeline):
        result = await pipeline.process_upload(b"   ", "image/png", "blank.png", "payStub", USER)

        assert result.success is False
        assert result.error == "OCR returned no text."
        assert result.document_id is None
        assert await pipeline.list_documents(USER) == []

    @pytest.mark.asyncio
    async def test_invalid_document_type(self, pipeline, pay_stub_text):
        with pytest.raises(InputError):
            await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "x.pdf", "recipe", USER)

    @pytest.mark.asyncio
    async def test_missing_critical_fields_flag_review(self, pipeline):
        result = await pipeline.process_upload(b"Gross Pay: $4,000.00\n", "application/pdf", "x.pdf", "payStub", USER)

        assert result.success is True
        assert result.needs_review is True
        assert "employeeFullName" in result.missing_critical_fields

        document = await pipeline.get_document(result.document_id, USER)
        assert document.needs_review is True

    @pytest.mark.asyncio
    async def test_llm_extraction(self, db_session, stub_text_extractor, pay_stub_text):
        llm_extractor = AsyncMock()
        llm_extractor.extract.return_value = {
            "employeeFullName": "Jane Q Public",
            "employerName": "Acme Corp",
            "grossIncomeCurrent": 4000.0,
            "netIncomeCurrent": 3000.0,
            "rawText": "dropped",
        }
        pipeline = DocumentPipeline(db_session, text_extractor=stub_text_extractor, llm_extractor=llm_extractor)

        result = await pipeline.process_upload(
            pay_stub_text.encode(), "application/pdf", "x.pdf", "payStub", USER, use_llm=True
        )

        assert result.success is True
        assert result.extraction_method == "llm"
        assert "rawText" not in result.extracted_data
        llm_extractor.extract.assert_awaited_once_with(pay_stub_text, "payStub")

    @pytest.mark.asyncio
    async def test_llm_not_used_for_unsupported_type(self, db_session, stub_text_extractor):
        llm_extractor = AsyncMock()
        pipeline = DocumentPipeline(db_session, text_extractor=stub_text_extractor, llm_extractor=llm_extractor)

        result = await pipeline.process_upload(
            b"DL NO: D1234567\n", "image/png", "dl.png", "driversLicense", USER, use_llm=True
        )

        assert result.extraction_method == "regex"
        llm_extractor.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back_to_regex(self, db_session, stub_text_extractor, pay_stub_text):
        llm_extractor = AsyncMock()
        llm_extractor.extract.side_effect = LLMClientError("LLM request timed out")
        pipeline = DocumentPipeline(db_session, text_extractor=stub_text_extractor, llm_extractor=llm_extractor)

        result = await pipeline.process_upload(
            pay_stub_text.encode(), "application/pdf", "x.pdf", "payStub", USER, use_llm=True
        )

        assert result.success is True
        assert result.extraction_method == "regex"
        assert result.extracted_data["employerName"] == "Acme Corp"

    @pytest.mark.asyncio
    async def test_llm_failure_without_fallback(self, db_session, stub_text_extractor, pay_stub_text):
        llm_extractor = AsyncMock()
        llm_extractor.extract.side_effect = LLMClientError("LLM request timed out")
        pipeline = DocumentPipeline(db_session, text_extractor=stub_text_extractor, llm_extractor=llm_extractor)

        with patch.object(settings, "llm_fallback_to_regex", False):
            result = await pipeline.process_upload(
                pay_stub_text.encode(), "application/pdf", "x.pdf", "payStub", USER, use_llm=True
            )

        assert result.success is False
        assert "LLM extraction failed" in result.error
        assert await pipeline.list_documents(USER) == []


class TestDocumentAccess:
    @pytest.mark.asyncio
    async def test_other_users_cannot_see_documents(self, pipeline, pay_stub_text):
        result = await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "x.pdf", "payStub", USER)

        assert await pipeline.get_document(result.document_id, "someone-else") is None
        assert await pipeline.delete_document(result.document_id, "someone-else") is None
        assert await pipeline.list_documents("someone-else") == []

    @pytest.mark.asyncio
    async def test_list_newest_first(self, pipeline, pay_stub_text, bank_statement_text):
        first = await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "a.pdf", "payStub", USER)
        second = await pipeline.process_upload(bank_statement_text.encode(), "application/pdf", "b.pdf", "bankStatement", USER)

        documents = await pipeline.list_documents(USER)

        assert [d.id for d in documents] == [second.document_id, first.document_id]

    @pytest.mark.asyncio
    async def test_delete_document(self, pipeline, pay_stub_text):
        result = await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "x.pdf", "payStub", USER)

        report = await pipeline.delete_document(result.document_id, USER)

        assert report.user_id == USER
        assert await pipeline.get_document(result.document_id, USER) is None
        assert await pipeline.delete_document(result.document_id, USER) is None


class TestReplaceDocument:
    @pytest.mark.asyncio
    async def test_replace(self, pipeline, pay_stub_text):
        original = await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "x.pdf", "payStub", USER)
        updated_text = pay_stub_text.replace("Gross Pay: $4,000.00", "Gross Pay: $5,000.00")

        outcome = await pipeline.replace_document(
            original.document_id, USER, updated_text.encode(), "application/pdf", "y.pdf"
        )

        result, report = outcome
        assert result.success is True
        assert result.document_type == DocumentTypeEnum.pay_stub
        assert report.documents_replayed == 1

        documents = await pipeline.list_documents(USER)
        assert [d.id for d in documents] == [result.document_id]
        income = (await pipeline.merge_engine.store.get_form_data(USER))["income"]
        assert income[0]["wage_income"] == 5000.0

    @pytest.mark.asyncio
    async def test_failed_replace_keeps_original(self, pipeline, pay_stub_text):
        original = await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "x.pdf", "payStub", USER)

        result, report = await pipeline.replace_document(original.document_id, USER, b"  ", "image/png", "y.png")

        assert result.success is False
        assert report is None
        assert await pipeline.get_document(original.document_id, USER) is not None

    @pytest.mark.asyncio
    async def test_replace_unknown_document(self, pipeline, pay_stub_text):
        outcome = await pipeline.replace_document(999, USER, pay_stub_text.encode(), "application/pdf", "y.pdf")

        assert outcome is None
