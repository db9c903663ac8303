from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

ANALYSIS_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED)

VISIBILITY_PRIVATE = "private"
VISIBILITY_PUBLIC = "public"

LOCATION_PROVIDED = "provided"
LOCATION_PROFILE = "profile"
LOCATION_NOT_AVAILABLE = "not_available"


@dataclass
class GeoLocation:
    """A latitude/longitude pair with an optional human-readable address."""

    latitude: float
    longitude: float
    address: Optional[str] = None

    def is_zero(self) -> bool:
        return self.latitude == 0 and self.longitude == 0


@dataclass
class StoredArtifact:
    """Reference to an uploaded binary held by the binary store.

    Attributes:
        filename: Generated on-disk filename.
        path: Absolute filesystem path of the binary.
        url: Public URL under the uploads mount.
        size: Size in bytes.
        content_type: MIME type reported at upload.
    """

    filename: str
    path: str
    url: str
    size: int
    content_type: str


@dataclass
class CropAssessment:
    """Structured classifier output stored as an analysis result."""

    condition: str
    health_score: int
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    detected_crop: str = "Unknown Crop"
    confidence: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AnalysisFeedback:
    rating: int
    comments: Optional[str] = None
    corrected_analysis: Optional[Dict[str, Any]] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[float] = None


@dataclass
class ImageAnalysisRecord:
    """Tracked record of an uploaded crop image and its analysis.

    `result` is only set once `status` is `completed`; `error_detail` only
    once it is `failed`. `owner` never changes after creation.
    """

    id: Optional[str]
    owner: str
    original_image: StoredArtifact
    status: str = STATUS_PENDING
    result: Optional[Dict[str, Any]] = None
    error_detail: Optional[str] = None
    processing_duration_seconds: Optional[float] = None
    visibility: str = VISIBILITY_PRIVATE
    shared_with: List[str] = field(default_factory=list)
    feedback: Optional[AnalysisFeedback] = None
    location: Optional[GeoLocation] = None
    location_source: str = LOCATION_NOT_AVAILABLE
    device_info: Optional[Dict[str, Any]] = None
    created_at: Optional[float] = None
    updated_at: Optional[float] = None
    revision: int = 0

    @property
    def is_public(self) -> bool:
        return self.visibility == VISIBILITY_PUBLIC

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
