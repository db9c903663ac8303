"""Profile controllers."""

from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from dal.user_dal import UserDAL
from models.analysis_record import GeoLocation
from services.analysis_lifecycle import validate_coordinates
from utils.auth import Identity


def _get_user_dal(request: Request) -> UserDAL:
    users = getattr(request.app.state, "users", None)
    if users is None:
        raise HTTPException(status_code=500, detail="Profile store not initialized.")
    return users


async def get_profile(request: Request, identity: Identity) -> Dict[str, Any]:
    profile = await _get_user_dal(request).get(identity.user_id)
    location = asdict(profile.default_location) if profile and profile.default_location else None
    return {"success": True, "data": {"id": identity.user_id, "name": identity.name, "default_location": location}}


async def update_default_location(
    request: Request, identity: Identity, latitude: float, longitude: float, address: Optional[str]
) -> Dict[str, Any]:
    """Set the location used for uploads that carry no coordinates."""
    validate_coordinates(latitude, longitude)
    location = GeoLocation(latitude=latitude, longitude=longitude, address=address)
    profile = await _get_user_dal(request).set_default_location(identity.user_id, location)
    return {"success": True, "data": {"default_location": asdict(profile.default_location)}}
