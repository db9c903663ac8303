"""FastAPI routes for running and summarizing crop analyses."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from controllers.analysis_controller import (
    analysis_analytics,
    analyze_image,
    batch_analyze,
    crop_suggestions,
    list_models,
)
from models.errors import AgriAssistError
from utils.auth import Identity, get_current_user

router = APIRouter(prefix="/api/ai", tags=["ai"])


class BatchPayload(BaseModel):
    analysis_ids: List[str]


@router.post("/analyze/{analysis_id}")
async def analyze_route(request: Request, analysis_id: str, identity: Identity = Depends(get_current_user)):
    """Classify an uploaded image. Already completed analyses are returned as-is."""
    try:
        return await analyze_image(request, identity, analysis_id)
    except (HTTPException, AgriAssistError):
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/batch-analyze")
async def batch_route(request: Request, payload: BatchPayload, identity: Identity = Depends(get_current_user)):
    return await batch_analyze(request, identity, payload.analysis_ids)


@router.get("/analytics")
async def analytics_route(request: Request, period: str = "30d", identity: Identity = Depends(get_current_user)):
    return await analysis_analytics(request, identity, period)


@router.get("/models")
async def models_route(identity: Identity = Depends(get_current_user)):
    return list_models()


@router.get("/crop-suggestions")
async def crop_suggestions_route(
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    soil_type: Optional[str] = None,
    season: Optional[str] = None,
    identity: Identity = Depends(get_current_user),
):
    return crop_suggestions()
