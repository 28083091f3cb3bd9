"""
Upload Storage

Writes uploaded images to the upload directory under a generated filename and
hands back the relative path the owning record stores. Only jpeg/jpg/png/gif
files are accepted, checked on both the extension and the declared content type.

Usage:
    from food_ordering.services.storage import get_upload_storage

    storage = get_upload_storage()
    path = await storage.save(upload)      # "uploads/1718031234567-1f2e3d4c.png"
    storage.discard(path)                  # compensating delete
"""

import logging
import os
import re
import time
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from food_ordering.core.config import get_settings
from food_ordering.core.errors import ValidationError

logger = logging.getLogger(__name__)

IMAGE_TYPES = re.compile(r"jpeg|jpg|png|gif")


class UploadStorage:
    """
    Image store backed by a local directory.

    Attributes:
        directory: Where files are written
        max_bytes: Upload size limit
    """

    def __init__(self, directory: str, max_bytes: int):
        self.directory = Path(directory)
        self.max_bytes = max_bytes

    def ensure_directory(self) -> None:
        """Create the upload directory if needed."""
        if not self.directory.exists():
            self.directory.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created upload directory: {self.directory}")

    def _generate_filename(self, original: str) -> str:
        ext = os.path.splitext(original)[1].lower()
        return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{ext}"

    @staticmethod
    def is_image(filename: Optional[str], content_type: Optional[str]) -> bool:
        """Both the extension and the mimetype must name an image type."""
        ext = os.path.splitext(filename or "")[1].lower()
        return bool(IMAGE_TYPES.search(ext)) and bool(IMAGE_TYPES.search(content_type or ""))

    async def save(self, upload: UploadFile) -> str:
        """
        Persist an uploaded image.

        Args:
            upload: File received in a multipart form

        Returns:
            str: Path of the stored file, relative to the working directory

        Raises:
            ValidationError: Not an image, empty, or over the size limit
        """
        if not self.is_image(upload.filename, upload.content_type):
            raise ValidationError("Error: Images Only!")

        content = await upload.read()
        if not content:
            raise ValidationError("Uploaded file is empty")
        if len(content) > self.max_bytes:
            raise ValidationError(f"File exceeds {self.max_bytes} bytes")

        self.ensure_directory()
        target = self.directory / self._generate_filename(upload.filename)
        await run_in_threadpool(target.write_bytes, content)

        logger.info(f"Stored upload {upload.filename!r} as {target}")
        return target.as_posix()

    def discard(self, path: Optional[str]) -> None:
        """Delete a stored file; missing files are ignored."""
        if not path:
            return
        try:
            Path(path).unlink()
            logger.info(f"Discarded upload {path}")
        except FileNotFoundError:
            pass


@lru_cache()
def get_upload_storage() -> UploadStorage:
    """Get the process-wide upload storage."""
    settings = get_settings()
    return UploadStorage(settings.upload_directory, settings.max_upload_bytes)
