"""Controllers for image upload, analysis and sharing."""

from typing import Any, Dict, List, Optional

from fastapi import Request, UploadFile

from controllers.common import get_lifecycle, parse_period, serialize_analysis
from models.analysis_record import GeoLocation, LOCATION_NOT_AVAILABLE
from models.errors import ValidationError
from services.classifier.catalog import AVAILABLE_MODELS, CROP_SUGGESTIONS
from utils.auth import Identity


async def upload_image(
    request: Request,
    identity: Identity,
    image: Optional[UploadFile],
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    address: Optional[str] = None,
    use_profile_location: bool = True,
) -> Dict[str, Any]:
    """Store an uploaded image as a new `pending` analysis.

    Args:
        request: FastAPI Request (used to reach the shared services).
        identity: Authenticated uploader.
        image: Uploaded image file, or None when the form had no file.
        latitude: Optional explicit latitude; only used together with `longitude`.
        longitude: Optional explicit longitude.
        address: Optional address for the explicit location.
        use_profile_location: Fall back to the profile default location.

    Returns:
        Envelope with the created record and the location source used.
    """
    data = await image.read() if image is not None else None

    hint = None
    if latitude is not None and longitude is not None:
        hint = GeoLocation(latitude=latitude, longitude=longitude, address=address or None)

    record = await get_lifecycle(request).submit(
        identity.user_id,
        data,
        image.content_type if image is not None else None,
        image.filename if image is not None else None,
        location_hint=hint,
        use_profile_location=use_profile_location,
        device_info={"user_agent": request.headers.get("user-agent")},
    )
    return {
        "success": True,
        "message": "Image uploaded successfully",
        "data": {
            "analysis": serialize_analysis(record),
            "analysis_id": record.id,
            "image_url": record.original_image.url,
            "status": record.status,
            "location_used": "not_available" if record.location_source == LOCATION_NOT_AVAILABLE else "provided",
            "location_source": record.location_source,
        },
    }


async def analyze_image(request: Request, identity: Identity, analysis_id: str) -> Dict[str, Any]:
    record = await get_lifecycle(request).analyze(identity.user_id, analysis_id)
    return {"success": True, "data": {"analysis": serialize_analysis(record)}}


async def batch_analyze(request: Request, identity: Identity, analysis_ids: List[str]) -> Dict[str, Any]:
    summary = await get_lifecycle(request).batch_analyze(identity.user_id, analysis_ids)
    return {"success": True, "data": summary}


async def list_analyses(
    request: Request, identity: Identity, status: Optional[str], page: int, limit: int
) -> Dict[str, Any]:
    result = await get_lifecycle(request).query_by_owner(identity.user_id, status=status, page=page, limit=limit)
    return {"success": True, "data": result.to_dict(serialize_analysis, key="analyses")}


async def get_analysis(request: Request, identity: Identity, analysis_id: str) -> Dict[str, Any]:
    record = await get_lifecycle(request).get(identity.user_id, analysis_id)
    return {"success": True, "data": {"analysis": serialize_analysis(record)}}


async def delete_analysis(request: Request, identity: Identity, analysis_id: str) -> Dict[str, Any]:
    await get_lifecycle(request).delete(identity.user_id, analysis_id)
    return {"success": True, "message": "Analysis deleted successfully"}


async def submit_feedback(
    request: Request,
    identity: Identity,
    analysis_id: str,
    rating: int,
    comments: Optional[str],
    corrected_analysis: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    await get_lifecycle(request).add_feedback(identity.user_id, analysis_id, rating, comments, corrected_analysis)
    return {"success": True, "message": "Feedback submitted successfully"}


async def share_analysis(
    request: Request, identity: Identity, analysis_id: str, user_ids: List[str], make_public: bool
) -> Dict[str, Any]:
    record = await get_lifecycle(request).share(identity.user_id, analysis_id, user_ids, make_public)
    return {
        "success": True,
        "message": "Analysis shared successfully",
        "data": {"visibility": record.visibility, "shared_with": record.shared_with},
    }


async def nearby_analyses(
    request: Request,
    latitude: Optional[float],
    longitude: Optional[float],
    radius: float,
    limit: int,
) -> Dict[str, Any]:
    if latitude is None or longitude is None:
        raise ValidationError("Latitude and longitude are required")
    matches = await get_lifecycle(request).query_public_near(latitude, longitude, radius, limit)
    analyses = []
    for record, distance in matches:
        item = serialize_analysis(record)
        item["distance_m"] = round(distance, 1)
        analyses.append(item)
    return {"success": True, "data": {"analyses": analyses}}


async def analysis_stats(request: Request, identity: Identity) -> Dict[str, Any]:
    stats = await get_lifecycle(request).stats(identity.user_id)
    return {"success": True, "data": stats}


async def analysis_analytics(request: Request, identity: Identity, period: str) -> Dict[str, Any]:
    analytics = await get_lifecycle(request).analytics(identity.user_id, parse_period(period))
    return {"success": True, "data": analytics}


def list_models() -> Dict[str, Any]:
    return {"success": True, "data": {"models": AVAILABLE_MODELS}}


def crop_suggestions() -> Dict[str, Any]:
    return {"success": True, "data": {"suggestions": CROP_SUGGESTIONS}}
