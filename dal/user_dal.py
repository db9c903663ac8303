"""Data access for user profiles."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Mapping, Optional

from dal.record_store import RecordStore
from models.analysis_record import GeoLocation
from models.user_profile import UserProfile

COLLECTION = "user_profiles"


class UserDAL:
    """Profiles are keyed by identity, so `id` and `owner` are the same value."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def get(self, user_id: str) -> Optional[UserProfile]:
        doc = await self._store.find_by_id(COLLECTION, user_id)
        return self._document_to_profile(doc) if doc else None

    async def set_default_location(self, user_id: str, location: GeoLocation) -> UserProfile:
        """Create or update the profile's default location."""
        patch = {"default_location": asdict(location)}
        doc = await self._store.update_by_id(COLLECTION, user_id, patch)
        if doc is None:
            doc = await self._store.create(COLLECTION, user_id, patch, doc_id=user_id)
        return self._document_to_profile(doc)

    @staticmethod
    def _document_to_profile(doc: Mapping[str, Any]) -> UserProfile:
        location = doc.get("default_location")
        return UserProfile(
            id=doc["id"],
            default_location=GeoLocation(**location) if location else None,
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )
