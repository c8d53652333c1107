from __future__ import annotations

import logging
import uuid
from pathlib import Path

from fastapi import UploadFile

from workcafe.core.config import settings

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}
MAX_PHOTO_BYTES = 10 * 1024 * 1024


class PhotoStorageError(Exception):
    pass


class LocalPhotoStorage:
    """Stores uploaded photos under `root` and serves them from `base_url`."""

    def __init__(self, root: str | Path, base_url: str) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def save(self, upload: UploadFile, *, folder: str) -> str:
        ext = IMAGE_EXTENSIONS.get((upload.content_type or "").lower())
        if ext is None:
            raise PhotoStorageError(f"Only image files are allowed, got {upload.content_type!r}")

        data = upload.file.read(MAX_PHOTO_BYTES + 1)
        if not data:
            raise PhotoStorageError("Empty file")
        if len(data) > MAX_PHOTO_BYTES:
            raise PhotoStorageError("File is larger than 10 MB")

        target_dir = self.root / folder
        name = f"{uuid.uuid4().hex}{ext}"
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            (target_dir / name).write_bytes(data)
        except OSError as exc:
            raise PhotoStorageError(f"Could not write file: {exc.strerror or exc}") from exc

        logger.debug("Stored %s (%d bytes) as %s/%s", upload.filename, len(data), folder, name)
        return f"{self.base_url}/{folder}/{name}"


def get_photo_storage() -> LocalPhotoStorage:
    return LocalPhotoStorage(settings.media_dir, settings.media_url)
