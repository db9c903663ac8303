import asyncio
import os

import pytest

from dal.user_dal import UserDAL
from models.analysis_record import (
    LOCATION_NOT_AVAILABLE,
    LOCATION_PROFILE,
    LOCATION_PROVIDED,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    GeoLocation,
)
from models.errors import CapabilityError, NotFoundError, StorageError, ValidationError

from conftest import CountingClassifier, png_bytes


async def upload(lifecycle, owner="alice", **kwargs):
    return await lifecycle.submit(owner, png_bytes(), "image/png", "leaf.png", **kwargs)


async def test_submit_creates_pending_record_and_file(lifecycle):
    record = await upload(lifecycle)

    assert record.status == STATUS_PENDING
    assert record.result is None
    assert record.error_detail is None
    assert record.original_image.url.startswith("/uploads/images/image-")
    assert os.path.exists(record.original_image.path)


@pytest.mark.parametrize(
    "data,content_type,filename",
    [
        (None, None, None),
        (b"", "image/png", "leaf.png"),
        (b"%PDF-1.4", "application/pdf", "report.pdf"),
        (b"abc", "image/png", "leaf.txt"),
    ],
)
async def test_submit_rejects_invalid_uploads(lifecycle, upload_dir, data, content_type, filename):
    with pytest.raises(ValidationError):
        await lifecycle.submit("alice", data, content_type, filename)
    assert not upload_dir.exists() or not any(upload_dir.iterdir())


async def test_submit_rejects_oversized_upload(make_lifecycle, classifier):
    lifecycle = make_lifecycle(classifier, max_upload_bytes=10)
    with pytest.raises(ValidationError):
        await upload(lifecycle)


async def test_failed_record_creation_removes_the_file(lifecycle, upload_dir, monkeypatch):
    async def broken_create(record):
        raise RuntimeError("disk full")

    monkeypatch.setattr(lifecycle.analyses, "create", broken_create)

    with pytest.raises(StorageError):
        await upload(lifecycle)
    assert not any(upload_dir.iterdir())


async def test_analyze_completes_and_is_idempotent(lifecycle, classifier):
    record = await upload(lifecycle)

    first = await lifecycle.analyze("alice", record.id)
    second = await lifecycle.analyze("alice", record.id)

    assert first.status == STATUS_COMPLETED
    assert first.result["health_score"] == 88
    assert first.processing_duration_seconds is not None
    assert second.result == first.result
    assert classifier.calls == 1


async def test_concurrent_analyze_classifies_once(make_lifecycle):
    classifier = CountingClassifier(delay=0.05)
    lifecycle = make_lifecycle(classifier)
    record = await upload(lifecycle)

    await asyncio.gather(*(lifecycle.analyze("alice", record.id) for _ in range(3)))

    stored = await lifecycle.get("alice", record.id)
    assert stored.status == STATUS_COMPLETED
    assert classifier.calls == 1


async def test_classifier_failure_is_recorded_and_not_retried(make_lifecycle):
    classifier = CountingClassifier(error=RuntimeError("model exploded"))
    lifecycle = make_lifecycle(classifier)
    record = await upload(lifecycle)

    with pytest.raises(CapabilityError):
        await lifecycle.analyze("alice", record.id)
    stored = await lifecycle.get("alice", record.id)
    assert stored.status == STATUS_FAILED
    assert "model exploded" in stored.error_detail
    assert stored.result is None

    with pytest.raises(CapabilityError):
        await lifecycle.analyze("alice", record.id)
    assert classifier.calls == 1


async def test_classifier_timeout_marks_record_failed(make_lifecycle):
    lifecycle = make_lifecycle(CountingClassifier(delay=1.0), timeout=0.05)
    record = await upload(lifecycle)

    with pytest.raises(CapabilityError):
        await lifecycle.analyze("alice", record.id)

    stored = await lifecycle.get("alice", record.id)
    assert stored.status == STATUS_FAILED
    assert "timed out" in stored.error_detail


async def test_analyze_requires_ownership(lifecycle):
    record = await upload(lifecycle)
    with pytest.raises(NotFoundError):
        await lifecycle.analyze("bob", record.id)
    with pytest.raises(NotFoundError):
        await lifecycle.analyze("alice", "missing")


async def test_batch_analyze_reports_each_outcome(lifecycle):
    record = await upload(lifecycle)

    summary = await lifecycle.batch_analyze("alice", [record.id, "missing"])

    assert summary["successful"] == 1
    assert summary["failed"] == 1
    assert summary["results"][1] == {"id": "missing", "success": False, "error": "Image analysis not found"}
    with pytest.raises(ValidationError):
        await lifecycle.batch_analyze("alice", [])


async def test_delete_removes_file_and_record(lifecycle):
    record = await upload(lifecycle)

    with pytest.raises(NotFoundError):
        await lifecycle.delete("bob", record.id)
    await lifecycle.delete("alice", record.id)

    assert not os.path.exists(record.original_image.path)
    with pytest.raises(NotFoundError):
        await lifecycle.get("alice", record.id)


async def test_delete_tolerates_missing_file(lifecycle):
    record = await upload(lifecycle)
    os.remove(record.original_image.path)

    await lifecycle.delete("alice", record.id)

    with pytest.raises(NotFoundError):
        await lifecycle.get("alice", record.id)


async def test_private_record_is_hidden_until_shared(lifecycle):
    record = await upload(lifecycle)

    with pytest.raises(NotFoundError):
        await lifecycle.get("bob", record.id)

    await lifecycle.share("alice", record.id, user_ids=["bob"])
    assert (await lifecycle.get("bob", record.id)).id == record.id
    with pytest.raises(NotFoundError):
        await lifecycle.get("carol", record.id)

    await lifecycle.share("alice", record.id, make_public=True)
    assert (await lifecycle.get("carol", record.id)).is_public


async def test_only_owner_can_share(lifecycle):
    record = await upload(lifecycle)
    await lifecycle.share("alice", record.id, user_ids=["bob"])
    with pytest.raises(NotFoundError):
        await lifecycle.share("bob", record.id, make_public=True)


async def test_feedback_does_not_change_status(lifecycle):
    record = await upload(lifecycle)
    await lifecycle.analyze("alice", record.id)

    updated = await lifecycle.add_feedback("alice", record.id, 4, comments="Looks right")

    assert updated.status == STATUS_COMPLETED
    assert updated.feedback.rating == 4
    assert updated.feedback.submitted_by == "alice"


@pytest.mark.parametrize("rating", [0, 6, 2.5, "5", True])
async def test_feedback_rating_must_be_one_to_five(lifecycle, rating):
    record = await upload(lifecycle)
    with pytest.raises(ValidationError):
        await lifecycle.add_feedback("alice", record.id, rating)


async def test_location_prefers_explicit_coordinates(lifecycle, store):
    await UserDAL(store).set_default_location("alice", GeoLocation(12.9, 77.6, "Farm"))

    explicit = await upload(lifecycle, location_hint=GeoLocation(10.0, 20.0))
    from_profile = await upload(lifecycle)
    skipped = await upload(lifecycle, use_profile_location=False)

    assert explicit.location_source == LOCATION_PROVIDED
    assert explicit.location.latitude == 10.0
    assert from_profile.location_source == LOCATION_PROFILE
    assert from_profile.location.address == "Farm"
    assert skipped.location_source == LOCATION_NOT_AVAILABLE
    assert skipped.location is None


async def test_zero_profile_location_is_ignored(lifecycle, store):
    await UserDAL(store).set_default_location("alice", GeoLocation(0.0, 0.0))
    record = await upload(lifecycle)
    assert record.location_source == LOCATION_NOT_AVAILABLE


async def test_out_of_range_coordinates_are_rejected(lifecycle):
    with pytest.raises(ValidationError):
        await upload(lifecycle, location_hint=GeoLocation(95.0, 0.0))


async def test_query_by_owner_paginates_and_filters(lifecycle):
    for _ in range(3):
        await upload(lifecycle)
    await upload(lifecycle, owner="bob")
    first = (await lifecycle.query_by_owner("alice", limit=2)).items[0]
    await lifecycle.analyze("alice", first.id)

    page = await lifecycle.query_by_owner("alice", page=2, limit=2)
    completed = await lifecycle.query_by_owner("alice", status=STATUS_COMPLETED)

    assert page.total == 3
    assert page.pages == 2
    assert len(page.items) == 1
    assert [r.id for r in completed.items] == [first.id]
    with pytest.raises(ValidationError):
        await lifecycle.query_by_owner("alice", status="archived")


async def test_query_public_near_returns_nearest_public_records(lifecycle):
    near = await upload(lifecycle, location_hint=GeoLocation(12.9716, 77.5946))
    far = await upload(lifecycle, location_hint=GeoLocation(28.6139, 77.2090))
    hidden = await upload(lifecycle, location_hint=GeoLocation(12.9720, 77.5950))
    for record in (near, far):
        await lifecycle.share("alice", record.id, make_public=True)

    matches = await lifecycle.query_public_near(12.9716, 77.5946, radius_m=5_000)

    assert [r.id for r, _ in matches] == [near.id]
    assert hidden.id not in [r.id for r, _ in matches]
    assert matches[0][1] < 1


async def test_stats_and_analytics(lifecycle):
    record = await upload(lifecycle)
    await upload(lifecycle)
    await lifecycle.analyze("alice", record.id)

    stats = await lifecycle.stats("alice")
    analytics = await lifecycle.analytics("alice", 30)

    assert stats["overall"]["total_analyses"] == 2
    assert stats["overall"]["completed_analyses"] == 1
    assert stats["overall"]["average_health_score"] == 88
    assert stats["overall"]["crops"] == ["Maize"]
    assert analytics["summary"]["total_analyses"] == 1
    assert analytics["summary"]["common_issues"] == ["Leaf spots"]
    assert analytics["monthly"][0]["analyses"] == 1
