from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from filing_intake.config import settings
from filing_intake.services.document_pipeline import DocumentPipeline
from filing_intake.services.llm_client import LLMClient
from filing_intake.services.llm_extraction import LLMExtractor, LLMUsageTracker
from filing_intake.services.merge_engine import MergeEngine
from filing_intake.services.text_extractor import TextExtractor


async def get_db():
    """Get database session."""
    import filing_intake.main as app_main
    async with app_main.async_session_maker() as session:
        yield session


def get_llm_client(request: Request) -> LLMClient:
    return request.app.state.llm_client


def get_usage_tracker(request: Request) -> LLMUsageTracker:
    return request.app.state.usage_tracker


def get_pipeline(
    db: AsyncSession = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
    usage_tracker: LLMUsageTracker = Depends(get_usage_tracker),
) -> DocumentPipeline:
    llm_extractor = LLMExtractor(llm_client, usage_tracker) if settings.llm_enabled else None
    return DocumentPipeline(
        db,
        text_extractor=TextExtractor(),
        llm_extractor=llm_extractor,
        merge_engine=MergeEngine(db),
    )


def get_merge_engine(db: AsyncSession = Depends(get_db)) -> MergeEngine:
    return MergeEngine(db)
