from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from controllers.profile_controller import get_profile, update_default_location
from utils.auth import Identity, get_current_user

router = APIRouter(prefix="/api/profile", tags=["profile"])


class LocationPayload(BaseModel):
    latitude: float
    longitude: float
    address: Optional[str] = None


@router.get("")
async def profile_route(request: Request, identity: Identity = Depends(get_current_user)):
    return await get_profile(request, identity)


@router.put("/location")
async def location_route(request: Request, payload: LocationPayload, identity: Identity = Depends(get_current_user)):
    return await update_default_location(request, identity, payload.latitude, payload.longitude, payload.address)
