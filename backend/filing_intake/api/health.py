from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from filing_intake.api.dependencies import get_db, get_llm_client
from filing_intake.config import settings
from filing_intake.models.schemas import HealthResponse, LLMHealth
from filing_intake.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
):
    """Health check endpoint that verifies database and LLM provider connectivity."""
    try:
        await db.execute(text("SELECT 1"))
        database_ok = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_ok = False

    llm_reachable = await llm_client.check_health() if settings.llm_enabled else False

    return HealthResponse(
        ok=database_ok,
        database=database_ok,
        llm=LLMHealth(
            provider=llm_client.provider,
            enabled=settings.llm_enabled,
            reachable=llm_reachable,
            base_url=llm_client.base_url,
            model=llm_client.model
        )
    )
