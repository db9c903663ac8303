"""FastAPI routes for crop image uploads and analysis records."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from pydantic import BaseModel

from controllers.analysis_controller import (
    analysis_stats,
    delete_analysis,
    get_analysis,
    list_analyses,
    nearby_analyses,
    share_analysis,
    submit_feedback,
    upload_image,
)
from models.errors import AgriAssistError
from utils.auth import Identity, get_current_user

router = APIRouter(prefix="/api/images", tags=["images"])


class FeedbackPayload(BaseModel):
    rating: int
    comments: Optional[str] = None
    corrected_analysis: Optional[Dict[str, Any]] = None


class SharePayload(BaseModel):
    user_ids: List[str] = []
    make_public: bool = False


@router.post("/upload", summary="Upload a crop image for analysis")
async def upload_route(
    request: Request,
    image: Optional[UploadFile] = File(None),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
    location: Optional[str] = Form(None),
    use_profile_location: bool = Form(True),
    identity: Identity = Depends(get_current_user),
):
    """Store the image and create a `pending` analysis record.

    Explicit coordinates win over the profile default location; without
    either the record has no location.
    """
    try:
        return await upload_image(
            request, identity, image, latitude, longitude, location, use_profile_location
        )
    except (HTTPException, AgriAssistError):
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail="Failed to process image.") from exc


@router.get("/analyses")
async def list_route(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    identity: Identity = Depends(get_current_user),
):
    return await list_analyses(request, identity, status, page, limit)


@router.get("/analyses/{analysis_id}")
async def get_route(request: Request, analysis_id: str, identity: Identity = Depends(get_current_user)):
    """Return a record owned by, shared with, or made public to the caller."""
    return await get_analysis(request, identity, analysis_id)


@router.delete("/analyses/{analysis_id}")
async def delete_route(request: Request, analysis_id: str, identity: Identity = Depends(get_current_user)):
    try:
        return await delete_analysis(request, identity, analysis_id)
    except (HTTPException, AgriAssistError):
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/analyses/{analysis_id}/feedback")
async def feedback_route(
    request: Request,
    analysis_id: str,
    payload: FeedbackPayload,
    identity: Identity = Depends(get_current_user),
):
    return await submit_feedback(
        request, identity, analysis_id, payload.rating, payload.comments, payload.corrected_analysis
    )


@router.post("/analyses/{analysis_id}/share")
async def share_route(
    request: Request,
    analysis_id: str,
    payload: SharePayload,
    identity: Identity = Depends(get_current_user),
):
    return await share_analysis(request, identity, analysis_id, payload.user_ids, payload.make_public)


@router.get("/nearby")
async def nearby_route(
    request: Request,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius: float = Query(10_000, gt=0),
    limit: int = Query(20, ge=1, le=100),
    identity: Identity = Depends(get_current_user),
):
    """Public analyses within `radius` metres of a point."""
    return await nearby_analyses(request, latitude, longitude, radius, limit)


@router.get("/stats")
async def stats_route(request: Request, identity: Identity = Depends(get_current_user)):
    return await analysis_stats(request, identity)
