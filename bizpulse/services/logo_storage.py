"""
Logo storage for business profile images
"""
import logging
import os
import uuid

from fastapi import UploadFile

from bizpulse.core.exceptions import ValidationException

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}


class LocalLogoStorage:
    """Stores uploaded logos on disk under ``directory`` and returns their public URL"""

    def __init__(self, directory: str, url_prefix: str = "/uploads", max_file_size: int = 5 * 1024 * 1024):
        self.directory = directory
        self.url_prefix = url_prefix.rstrip("/")
        self.max_file_size = max_file_size
        os.makedirs(os.path.join(self.directory, "logos"), exist_ok=True)

    async def save(self, upload: UploadFile) -> str:
        extension = ALLOWED_CONTENT_TYPES.get(upload.content_type or "")
        if extension is None:
            raise ValidationException("Logo must be a PNG, JPEG, GIF, WEBP or SVG image", field="logo")

        content = await upload.read(self.max_file_size + 1)
        if len(content) > self.max_file_size:
            raise ValidationException(
                f"Logo exceeds the maximum size of {self.max_file_size} bytes", field="logo"
            )
        if not content:
            raise ValidationException("Logo file is empty", field="logo")

        filename = f"{uuid.uuid4().hex}{extension}"
        with open(os.path.join(self.directory, "logos", filename), "wb") as fh:
            fh.write(content)

        logger.info(f"Stored logo {filename} ({len(content)} bytes)")
        return f"{self.url_prefix}/logos/{filename}"

    def discard(self, url: str):
        """Remove a stored logo, e.g. when the request that uploaded it fails"""
        filename = os.path.basename(url)
        path = os.path.join(self.directory, "logos", filename)
        if url.startswith(f"{self.url_prefix}/logos/") and os.path.isfile(path):
            os.remove(path)
            logger.info(f"Discarded logo {filename}")
