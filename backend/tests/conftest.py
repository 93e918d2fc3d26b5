import pytest
from unittest.mock import AsyncMock
from sqlalchemy.pool import StaticPool

from filing_intake.database import create_engine, create_session_maker
from filing_intake.models.database import Base
from filing_intake.models.schemas import TextExtractionResult
from filing_intake.services.document_pipeline import DocumentPipeline
from filing_intake.services.llm_client import LLMClient


class StubTextExtractor:
    """Treats the uploaded bytes as the document text."""

    async def extract(self, file_bytes, media_kind, progress_callback=None):
        text = file_bytes.decode("utf-8")
        if not text.strip():
            return TextExtractionResult(success=False, error="OCR returned no text.")
        return TextExtractionResult(success=True, text=text, ocr_used=media_kind == "image", page_count=1)


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database per test."""
    engine = create_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    """Create test database session."""
    async_session = create_session_maker(test_engine)

    async with async_session() as session:
        yield session


@pytest.fixture
def stub_text_extractor():
    return StubTextExtractor()


@pytest.fixture
def pipeline(db_session, stub_text_extractor):
    return DocumentPipeline(db_session, text_extractor=stub_text_extractor)


@pytest.fixture
def mock_llm_client():
    """Mock LLM client for testing."""
    client = AsyncMock(spec=LLMClient)
    client.provider = "ollama"
    client.base_url = "http://localhost:11434"
    client.model = "test-model"
    client.check_health.return_value = True
    return client


@pytest.fixture
def pay_stub_text():
    return (
        "ACME CORP PAYROLL\n"
        "Employer: Acme Corp\n"
        "Employee Name: Jane Q Public\n"
        "Pay Period: 01/01/2024 - 01/14/2024\n"
        "Pay Date: 01/19/2024\n"
        "Gross Pay: $4,000.00\n"
        "Federal Income Tax: 400.00\n"
        "Social Security: 248.00\n"
        "Medicare: 58.00\n"
        "Health Insurance: 150.00\n"
        "Net Pay: $3,000.00\n"
    )


@pytest.fixture
def bank_statement_text():
    return (
        "First National Bank\n"
        "Account Statement\n"
        "Account Holder: Jane Public\n"
        "Account Number: XXXX-XXXX-4321\n"
        "Statement Period: 01/01/2024 to 01/31/2024\n"
        "Beginning Balance: $1,200.00\n"
        "Ending Balance: $2,450.75\n"
        "Payroll $2,000.00\n"
        "Payroll $2,000.00\n"
        "Rent 1,500.00\n"
        "Electric 120.00\n"
    )


@pytest.fixture
def tax_return_text():
    return (
        "Form 1040 U.S. Individual Income Tax Return 2023\n"
        "Filing Status: Married filing jointly\n"
        "Your first name and middle initial  John A   Last name  Smith\n"
        "Your social security number 123-45-6789\n"
        "Spouse's first name and middle initial  Mary   Last name  Smith\n"
        "Home address (number and street) 42 Oak Lane\n"
        "Dependent: Emily Smith DOB: 04/12/2015\n"
        "Dependent: Noah Smith DOB: 09/30/2018\n"
        "1 Wages, salaries, tips, etc. Attach Form(s) W-2  1  85,000.00\n"
        "2b Taxable interest  2b  1,200.00\n"
        "9 This is your total income  9  90,000.00\n"
        "11 This is your adjusted gross income  11  88,000.00\n"
    )
