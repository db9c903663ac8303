"""Disk-backed storage for uploaded image binaries.

Files are written with aiofiles under a single base directory and exposed
under a URL prefix that `main.create_app` mounts as static files.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path

import aiofiles

from models.analysis_record import StoredArtifact
from models.errors import StorageError

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class BinaryStore:
    """Save, read and delete binaries under `base_dir`.

    Args:
        base_dir: Directory that holds every stored file.
        url_prefix: Public URL prefix for stored files.
    """

    def __init__(self, base_dir: Path | str, url_prefix: str = "/uploads/images") -> None:
        self.base_dir = Path(base_dir).expanduser().resolve()
        self.url_prefix = url_prefix.rstrip("/")

    async def save(self, data: bytes, content_type: str, original_filename: str = "") -> StoredArtifact:
        """Write `data` to a new file and describe it.

        Raises:
            StorageError: If the file cannot be written.
        """
        ext = _EXTENSIONS.get(content_type)
        if ext is None:
            ext = Path(original_filename).suffix.lstrip(".").lower() or "bin"
        filename = f"image-{uuid.uuid4().hex}.{ext}"
        path = self.base_dir / filename

        try:
            await asyncio.to_thread(self.base_dir.mkdir, parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as exc:
            logging.error("Failed to store upload %s: %s", filename, exc)
            # A partial write must not outlive the failed save.
            await self._remove_quietly(path)
            raise StorageError("Failed to store uploaded image.") from exc

        return StoredArtifact(
            filename=filename,
            path=str(path),
            url=f"{self.url_prefix}/{filename}",
            size=len(data),
            content_type=content_type,
        )

    async def read(self, path: str) -> bytes:
        """Return the bytes stored at `path`."""
        safe_path = self._resolve(path)
        try:
            async with aiofiles.open(safe_path, "rb") as f:
                return await f.read()
        except OSError as exc:
            raise StorageError(f"Stored image is not readable: {safe_path.name}") from exc

    async def delete(self, path: str) -> bool:
        """Delete the file at `path`. Returns False if it was already gone.

        Raises:
            StorageError: If the path is outside the store or cannot be removed.
        """
        safe_path = self._resolve(path)
        try:
            await asyncio.to_thread(os.remove, safe_path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Failed to delete stored image {safe_path.name}.") from exc
        return True

    def _resolve(self, path: str) -> Path:
        resolved = Path(path).expanduser().resolve()
        if resolved.parent != self.base_dir:
            raise StorageError("Refusing to touch a file outside the upload directory.")
        return resolved

    async def _remove_quietly(self, path: Path) -> None:
        try:
            await asyncio.to_thread(os.remove, path)
        except OSError:
            pass
