from fastapi import APIRouter, Depends

from filing_intake.api.dependencies import get_usage_tracker
from filing_intake.models.schemas import LLMUsageStats
from filing_intake.services.llm_extraction import LLMUsageTracker

router = APIRouter()


@router.get("/llm/usage", response_model=LLMUsageStats)
async def get_llm_usage(usage_tracker: LLMUsageTracker = Depends(get_usage_tracker)):
    """LLM call counts and estimated cost, per document type."""
    return usage_tracker.stats()
