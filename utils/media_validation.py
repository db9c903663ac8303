"""Validation helpers for uploaded crop images."""

from pathlib import Path
from typing import Optional

from models.errors import ValidationError

ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
}

ALLOWED_IMAGE_EXTENSIONS = (".jpeg", ".jpg", ".png", ".gif", ".webp")


def normalize_content_type(content_type: Optional[str]) -> str:
    """Lower-case a MIME type and strip any parameters."""
    return (content_type or "").lower().split(";", 1)[0].strip()


def validate_image_upload(
    data: Optional[bytes],
    content_type: Optional[str],
    filename: Optional[str],
    max_bytes: int,
) -> str:
    """Check an uploaded image and return its normalized content type.

    Both the MIME type and the filename extension must name an accepted
    image format.

    Raises:
        ValidationError: If the payload is missing, empty, too large, or not
            an accepted image type.
    """
    if data is None:
        raise ValidationError("No image file provided")
    if not data:
        raise ValidationError("Uploaded image is empty.")
    if len(data) > max_bytes:
        raise ValidationError(f"Image exceeds the maximum upload size of {max_bytes} bytes.")

    normalized = normalize_content_type(content_type)
    extension = Path(filename or "").suffix.lower()
    if normalized not in ALLOWED_IMAGE_TYPES or extension not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValidationError("Only image files are allowed (jpeg, jpg, png, gif, webp)")
    return normalized
