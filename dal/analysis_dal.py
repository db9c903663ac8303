"""Data access for image analysis records.

Wraps `dal.record_store.RecordStore` and converts between stored documents
and `ImageAnalysisRecord` dataclasses.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Mapping, Optional

from dal.query_builder import RollupQuery
from dal.record_store import RecordStore
from models.analysis_record import (
    AnalysisFeedback,
    GeoLocation,
    ImageAnalysisRecord,
    StoredArtifact,
)

COLLECTION = "image_analyses"


class AnalysisDAL:
    """Data access layer for ImageAnalysisRecord documents."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def create(self, record: ImageAnalysisRecord) -> ImageAnalysisRecord:
        """Insert `record` (whose `id` is None) and return the stored copy."""
        doc = await self._store.create(COLLECTION, record.owner, self._to_document(record))
        return self._document_to_record(doc)

    async def get(self, record_id: str) -> Optional[ImageAnalysisRecord]:
        doc = await self._store.find_by_id(COLLECTION, record_id)
        return self._document_to_record(doc) if doc else None

    async def get_owned(self, owner: str, record_id: str) -> Optional[ImageAnalysisRecord]:
        doc = await self._store.find_one(COLLECTION, {"id": record_id, "owner": owner})
        return self._document_to_record(doc) if doc else None

    async def list(
        self,
        filters: Mapping[str, Any],
        *,
        skip: int = 0,
        limit: int = 10,
    ) -> List[ImageAnalysisRecord]:
        """List records newest first."""
        docs = await self._store.find_many(COLLECTION, filters, sort="-created_at", skip=skip, limit=limit)
        return [self._document_to_record(d) for d in docs]

    async def count(self, filters: Mapping[str, Any]) -> int:
        return await self._store.count(COLLECTION, filters)

    async def update(
        self,
        record_id: str,
        patch: Mapping[str, Any],
        *,
        expected_revision: Optional[int] = None,
    ) -> Optional[ImageAnalysisRecord]:
        """Apply `patch`; returns None if the record is gone or the revision moved on."""
        doc = await self._store.update_by_id(COLLECTION, record_id, patch, expected_revision=expected_revision)
        return self._document_to_record(doc) if doc else None

    async def delete(self, record_id: str) -> bool:
        return await self._store.delete_by_id(COLLECTION, record_id)

    async def rollup(self, query: RollupQuery) -> Dict[str, Any]:
        return await self._store.aggregate(query)

    @staticmethod
    def _to_document(record: ImageAnalysisRecord) -> Dict[str, Any]:
        doc = asdict(record)
        for key in ("id", "owner", "created_at", "updated_at", "revision"):
            doc.pop(key, None)
        return doc

    @staticmethod
    def _document_to_record(doc: Mapping[str, Any]) -> ImageAnalysisRecord:
        """Convert a stored document into an ImageAnalysisRecord."""
        location = doc.get("location")
        feedback = doc.get("feedback")
        return ImageAnalysisRecord(
            id=doc["id"],
            owner=doc["owner"],
            original_image=StoredArtifact(**doc["original_image"]),
            status=doc.get("status", "pending"),
            result=doc.get("result"),
            error_detail=doc.get("error_detail"),
            processing_duration_seconds=doc.get("processing_duration_seconds"),
            visibility=doc.get("visibility", "private"),
            shared_with=list(doc.get("shared_with") or []),
            feedback=AnalysisFeedback(**feedback) if feedback else None,
            location=GeoLocation(**location) if location else None,
            location_source=doc.get("location_source", "not_available"),
            device_info=doc.get("device_info"),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
            revision=doc.get("revision", 0),
        )
