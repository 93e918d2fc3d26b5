"""API endpoints for the canonical form data."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict
import logging

from filing_intake.api.dependencies import get_db, get_merge_engine
from filing_intake.errors import PersistenceError, ReaggregationError
from filing_intake.models.schemas import FormDataResponse, ReaggregationReport
from filing_intake.services.form_data_store import FormDataStore, flatten_form_data
from filing_intake.services.merge_engine import MergeEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/form-data", response_model=FormDataResponse)
async def get_form_data(
    user_id: str = Query(..., description="Owner of the form data"),
    db: AsyncSession = Depends(get_db),
):
    """Get the flattened form view for a user."""
    try:
        snapshot = await FormDataStore(db).get_form_data(user_id)
    except PersistenceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return FormDataResponse(**flatten_form_data(snapshot))


@router.get("/form-data/raw", response_model=Dict[str, Any])
async def get_raw_form_data(
    user_id: str = Query(..., description="Owner of the form data"),
    db: AsyncSession = Depends(get_db),
):
    """Get the canonical rows for a user, table by table."""
    try:
        return await FormDataStore(db).get_form_data(user_id)
    except PersistenceError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/form-data/reaggregate", response_model=ReaggregationReport)
async def reaggregate_form_data(
    user_id: str = Query(..., description="Owner of the form data"),
    merge_engine: MergeEngine = Depends(get_merge_engine),
):
    """Rebuild a user's form data from their processed documents."""
    if not user_id.strip():
        raise HTTPException(status_code=400, detail="user_id is required")
    try:
        return await merge_engine.reaggregate(user_id)
    except ReaggregationError as e:
        logger.error(f"Manual re-aggregation failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
