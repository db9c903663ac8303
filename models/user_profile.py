from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from models.analysis_record import GeoLocation


@dataclass
class UserProfile:
    """Per-user settings. `id` is the authenticated identity."""

    id: str
    default_location: Optional[GeoLocation] = None
    created_at: Optional[float] = None
    updated_at: Optional[float] = None
