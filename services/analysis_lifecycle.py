"""Lifecycle of uploaded crop images.

A record moves `pending -> processing -> completed | failed`. Terminal states
are never left. Every status write after the initial claim is guarded by the
record's revision, so a stale worker cannot overwrite a newer outcome.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dal.analysis_dal import COLLECTION, AnalysisDAL
from dal.query_builder import RollupQuery
from dal.user_dal import UserDAL
from models.analysis_record import (
    ANALYSIS_STATUSES,
    LOCATION_NOT_AVAILABLE,
    LOCATION_PROFILE,
    LOCATION_PROVIDED,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    VISIBILITY_PUBLIC,
    AnalysisFeedback,
    CropAssessment,
    GeoLocation,
    ImageAnalysisRecord,
)
from models.errors import AgriAssistError, CapabilityError, NotFoundError, StorageError, ValidationError
from models.page import Page, page_window
from services.binary_store import BinaryStore
from services.classifier.lazy_capability import LazyCapability
from services.ownership import ACTION_ANNOTATE, ACTION_MODIFY, ACTION_VIEW, OwnershipGuard
from utils.media_validation import validate_image_upload

EARTH_RADIUS_M = 6_371_000.0
SECONDS_PER_DAY = 86_400
NEARBY_SCAN_BATCH = 200


def haversine_m(a: GeoLocation, b: GeoLocation) -> float:
    """Great-circle distance between two points in metres."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def validate_coordinates(latitude: float, longitude: float) -> None:
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValidationError("Latitude must be within [-90, 90] and longitude within [-180, 180]")


class AnalysisLifecycleManager:
    """Upload, analyze, share and query image analysis records.

    Args:
        analyses: Record persistence.
        users: Profile lookup for the default upload location.
        binaries: Storage for the uploaded image bytes.
        classifier: Lazily loaded object exposing `async classify(path) -> CropAssessment`.
        guard: Access policy for non-owner reads and feedback.
        classify_timeout: Seconds allowed for loading the classifier plus one
            classification.
        max_upload_bytes: Largest accepted upload.
    """

    def __init__(
        self,
        analyses: AnalysisDAL,
        users: UserDAL,
        binaries: BinaryStore,
        classifier: LazyCapability,
        *,
        guard: Optional[OwnershipGuard] = None,
        classify_timeout: float = 30.0,
        max_upload_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self.analyses = analyses
        self.users = users
        self.binaries = binaries
        self.classifier = classifier
        self.guard = guard or OwnershipGuard()
        self.classify_timeout = classify_timeout
        self.max_upload_bytes = max_upload_bytes

    async def submit(
        self,
        owner: str,
        data: Optional[bytes],
        content_type: Optional[str],
        filename: Optional[str],
        *,
        location_hint: Optional[GeoLocation] = None,
        use_profile_location: bool = True,
        device_info: Optional[Dict[str, Any]] = None,
    ) -> ImageAnalysisRecord:
        """Store an uploaded image and create its `pending` record.

        Raises:
            ValidationError: If the upload is missing or not an accepted image.
            StorageError: If the image or its record cannot be persisted. No
                file is left behind without a record.
        """
        normalized_type = validate_image_upload(data, content_type, filename, self.max_upload_bytes)
        location, location_source = await self._resolve_location(owner, location_hint, use_profile_location)

        artifact = await self.binaries.save(data, normalized_type, filename or "")
        record = ImageAnalysisRecord(
            id=None,
            owner=owner,
            original_image=artifact,
            location=location,
            location_source=location_source,
            device_info=device_info,
        )
        try:
            created = await self.analyses.create(record)
        except Exception as exc:
            logging.error("Failed to create analysis record for %s: %s", artifact.filename, exc)
            await self._discard_binary(artifact.path)
            raise StorageError("Failed to record uploaded image.") from exc

        logging.info("Image %s uploaded by %s (location: %s)", created.id, owner, location_source)
        return created

    async def analyze(self, owner: str, record_id: str) -> ImageAnalysisRecord:
        """Run the classifier on a record and store the outcome.

        A completed record is returned unchanged without calling the
        classifier. A record another request is still processing is returned
        as-is unless that request looks abandoned.

        Raises:
            NotFoundError: If `owner` has no record with this id.
            CapabilityError: If classification fails now or failed before.
                The record is left in `failed` with its `error_detail`.
        """
        record = await self.analyses.get_owned(owner, record_id)
        if record is None:
            raise NotFoundError("Image analysis not found")
        if record.status == STATUS_COMPLETED:
            return record
        if record.status == STATUS_FAILED:
            raise CapabilityError(record.error_detail or "Analysis failed")
        if record.status == STATUS_PROCESSING and not self._is_abandoned(record):
            return record

        claimed = await self.analyses.update(
            record.id, {"status": STATUS_PROCESSING}, expected_revision=record.revision
        )
        if claimed is None:
            logging.warning("Analysis %s was claimed concurrently; returning stored state", record_id)
            return await self._reload(owner, record_id)

        start = time.monotonic()
        try:
            assessment = await asyncio.wait_for(
                self._classify(claimed.original_image.path), timeout=self.classify_timeout
            )
        except asyncio.TimeoutError:
            detail = f"Classifier timed out after {self.classify_timeout:g}s"
        except Exception as exc:
            detail = str(exc) or exc.__class__.__name__
        else:
            duration = time.monotonic() - start
            completed = await self.analyses.update(
                claimed.id,
                {
                    "status": STATUS_COMPLETED,
                    "result": assessment.to_dict(),
                    "error_detail": None,
                    "processing_duration_seconds": round(duration, 3),
                },
                expected_revision=claimed.revision,
            )
            if completed is None:
                logging.warning("Analysis %s changed while processing; result discarded", record_id)
                return await self._reload(owner, record_id)
            logging.info("Analysis %s completed in %.3fs", record_id, duration)
            return completed

        logging.error("Analysis %s failed: %s", record_id, detail)
        failed = await self.analyses.update(
            claimed.id,
            {"status": STATUS_FAILED, "error_detail": detail, "result": None},
            expected_revision=claimed.revision,
        )
        if failed is None:
            logging.warning("Analysis %s changed while processing; failure not recorded", record_id)
        raise CapabilityError(detail)

    async def batch_analyze(self, owner: str, record_ids: Sequence[str]) -> Dict[str, Any]:
        """Analyze several records concurrently and summarize the outcomes."""
        if not record_ids:
            raise ValidationError("Analysis IDs array is required")

        async def run(record_id: str) -> Dict[str, Any]:
            try:
                record = await self.analyze(owner, record_id)
            except AgriAssistError as exc:
                return {"id": record_id, "success": False, "error": exc.message}
            return {"id": record_id, "success": True, "status": record.status}

        results = await asyncio.gather(*(run(str(rid)) for rid in record_ids))
        successful = sum(1 for r in results if r["success"])
        return {"successful": successful, "failed": len(results) - successful, "results": list(results)}

    async def get(self, identity: str, record_id: str) -> ImageAnalysisRecord:
        """Return a record visible to `identity`."""
        record = await self.analyses.get(record_id)
        if not self.guard.verify(identity, record, ACTION_VIEW):
            raise NotFoundError("Analysis not found")
        return record

    async def delete(self, owner: str, record_id: str) -> None:
        """Delete a record and its stored image."""
        record = await self.analyses.get(record_id)
        if not self.guard.verify(owner, record, ACTION_MODIFY):
            raise NotFoundError("Analysis not found")

        removed = await self.binaries.delete(record.original_image.path)
        if not removed:
            logging.warning("Image file for analysis %s was already missing", record_id)
        await self.analyses.delete(record.id)
        logging.info("Analysis %s deleted by %s", record_id, owner)

    async def add_feedback(
        self,
        identity: str,
        record_id: str,
        rating: int,
        comments: Optional[str] = None,
        corrected_analysis: Optional[Dict[str, Any]] = None,
    ) -> ImageAnalysisRecord:
        """Attach user feedback. Does not touch `status`."""
        if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer between 1 and 5")

        record = await self.analyses.get(record_id)
        if not self.guard.verify(identity, record, ACTION_ANNOTATE):
            raise NotFoundError("Analysis not found")

        feedback = AnalysisFeedback(
            rating=rating,
            comments=comments,
            corrected_analysis=corrected_analysis,
            submitted_by=identity,
            submitted_at=time.time(),
        )
        return await self._patch(record, {"feedback": asdict(feedback)})

    async def share(
        self,
        owner: str,
        record_id: str,
        user_ids: Optional[Sequence[str]] = None,
        make_public: bool = False,
    ) -> ImageAnalysisRecord:
        """Grant viewers and/or make the record public. Does not touch `status`."""
        record = await self.analyses.get(record_id)
        if not self.guard.verify(owner, record, ACTION_MODIFY):
            raise NotFoundError("Analysis not found")

        patch: Dict[str, Any] = {}
        if make_public:
            patch["visibility"] = VISIBILITY_PUBLIC
        if user_ids:
            shared = list(record.shared_with)
            for user_id in user_ids:
                if user_id and user_id != owner and user_id not in shared:
                    shared.append(user_id)
            patch["shared_with"] = shared
        if not patch:
            return record
        return await self._patch(record, patch)

    async def query_by_owner(
        self,
        owner: str,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page[ImageAnalysisRecord]:
        skip = page_window(page, limit)
        filters: Dict[str, Any] = {"owner": owner}
        if status:
            if status not in ANALYSIS_STATUSES:
                raise ValidationError(f"Unknown status '{status}'")
            filters["status"] = status

        items = await self.analyses.list(filters, skip=skip, limit=limit)
        total = await self.analyses.count(filters)
        return Page(items=items, page=page, limit=limit, total=total)

    async def query_public_near(
        self,
        latitude: float,
        longitude: float,
        radius_m: float = 10_000,
        limit: int = 20,
    ) -> List[Tuple[ImageAnalysisRecord, float]]:
        """Public records within `radius_m` of a point, nearest first."""
        validate_coordinates(latitude, longitude)
        if radius_m <= 0:
            raise ValidationError("radius must be positive")
        page_window(1, limit)

        origin = GeoLocation(latitude=latitude, longitude=longitude)
        matches: List[Tuple[ImageAnalysisRecord, float]] = []
        skip = 0
        while True:
            batch = await self.analyses.list({"visibility": VISIBILITY_PUBLIC}, skip=skip, limit=NEARBY_SCAN_BATCH)
            for record in batch:
                if record.location is None:
                    continue
                distance = haversine_m(origin, record.location)
                if distance <= radius_m:
                    matches.append((record, distance))
            if len(batch) < NEARBY_SCAN_BATCH:
                break
            skip += NEARBY_SCAN_BATCH

        matches.sort(key=lambda item: item[1])
        return matches[:limit]

    async def stats(self, owner: str) -> Dict[str, Any]:
        """All-time totals plus the last twelve months of uploads."""
        rollup = await self.analyses.rollup(
            RollupQuery(
                collection=COLLECTION,
                owner=owner,
                count_status=STATUS_COMPLETED,
                average_of="result.health_score",
                distinct_of=("result.detected_crop",),
                newest_first=True,
                month_limit=12,
            )
        )
        summary = rollup["summary"]
        return {
            "overall": {
                "total_analyses": int(summary.get("total") or 0),
                "completed_analyses": int(summary.get("status_count") or 0),
                "average_health_score": round(summary.get("average") or 0, 2),
                "crops": rollup["distinct"]["result.detected_crop"],
            },
            "monthly": [
                {"year": row["year"], "month": row["month"], "count": row["count"]} for row in rollup["monthly"]
            ],
        }

    async def analytics(self, owner: str, period_days: int = 30) -> Dict[str, Any]:
        """Completed analyses within the last `period_days` days."""
        if period_days < 1:
            raise ValidationError("period must be at least one day")
        now = time.time()
        rollup = await self.analyses.rollup(
            RollupQuery(
                collection=COLLECTION,
                owner=owner,
                since=now - period_days * SECONDS_PER_DAY,
                until=now,
                status=STATUS_COMPLETED,
                average_of="result.health_score",
                distinct_of=("result.detected_crop", "result.issues"),
            )
        )
        summary = rollup["summary"]
        return {
            "summary": {
                "total_analyses": int(summary.get("total") or 0),
                "average_health_score": round(summary.get("average") or 0, 2),
                "common_crops": rollup["distinct"]["result.detected_crop"],
                "common_issues": rollup["distinct"]["result.issues"],
            },
            "monthly": [
                {
                    "year": row["year"],
                    "month": row["month"],
                    "analyses": row["count"],
                    "average_health_score": round(row.get("average") or 0, 2),
                }
                for row in rollup["monthly"]
            ],
        }

    async def _classify(self, image_path: str) -> CropAssessment:
        classifier = await self.classifier.get()
        return await classifier.classify(image_path)

    async def _resolve_location(
        self,
        owner: str,
        hint: Optional[GeoLocation],
        use_profile_location: bool,
    ) -> Tuple[Optional[GeoLocation], str]:
        if hint is not None:
            validate_coordinates(hint.latitude, hint.longitude)
            return hint, LOCATION_PROVIDED
        if use_profile_location:
            profile = await self.users.get(owner)
            if profile and profile.default_location and not profile.default_location.is_zero():
                return profile.default_location, LOCATION_PROFILE
        return None, LOCATION_NOT_AVAILABLE

    def _is_abandoned(self, record: ImageAnalysisRecord) -> bool:
        """True when a `processing` record has outlived any in-flight attempt."""
        if record.updated_at is None:
            return False
        return time.time() - record.updated_at > 2 * self.classify_timeout

    async def _patch(self, record: ImageAnalysisRecord, patch: Dict[str, Any]) -> ImageAnalysisRecord:
        updated = await self.analyses.update(record.id, patch)
        if updated is None:
            raise NotFoundError("Analysis not found")
        return updated

    async def _reload(self, owner: str, record_id: str) -> ImageAnalysisRecord:
        record = await self.analyses.get_owned(owner, record_id)
        if record is None:
            raise NotFoundError("Image analysis not found")
        return record

    async def _discard_binary(self, path: str) -> None:
        try:
            await self.binaries.delete(path)
        except StorageError as exc:
            logging.error("Failed to remove orphaned upload %s: %s", path, exc)
