"""
Cloudinary image hosting.
Profile images are pushed with an unsigned multipart upload and the hosted
URL is stored back on the user document.
"""

import httpx
import logging
from pathlib import Path
from typing import Optional

from config import settings

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
ALLOWED_MIME_TYPES = {"image/png", "image/jpeg", "image/jpg", "image/gif", "image/webp"}
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB


class UploadError(Exception):
    """Raised when the image CDN rejects an upload or cannot be reached"""


class InvalidImageError(ValueError):
    """Raised when an uploaded file is not an acceptable image"""


def validate_image(filename: Optional[str], content_type: Optional[str], size: int) -> None:
    """Validate extension, MIME type and size of an uploaded image"""
    file_ext = Path(filename or "").suffix.lower()
    if file_ext not in ALLOWED_EXTENSIONS:
        raise InvalidImageError(f"Invalid file type. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

    if content_type not in ALLOWED_MIME_TYPES:
        raise InvalidImageError("Invalid content type. Must be an image.")

    if size > MAX_FILE_SIZE:
        raise InvalidImageError(f"File too large. Maximum size: {MAX_FILE_SIZE / (1024*1024):.1f}MB")


class CloudinaryService:
    """Service for Cloudinary upload operations"""

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        upload_preset: Optional[str] = None,
        folder: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.cloud_name = cloud_name if cloud_name is not None else settings.CLOUDINARY_CLOUD_NAME
        self.upload_preset = upload_preset or settings.CLOUDINARY_UPLOAD_PRESET
        self.folder = folder or settings.CLOUDINARY_FOLDER
        self.base_url = "https://api.cloudinary.com/v1_1"
        self.transport = transport

    def is_configured(self) -> bool:
        return bool(self.cloud_name)

    async def upload_image(self, content: bytes, filename: str, content_type: str) -> str:
        """
        Upload an image and return its hosted https URL.

        Raises:
            UploadError: CDN not configured, unreachable, or rejected the file
        """
        if not self.is_configured():
            raise UploadError("Cloudinary is not configured")

        url = f"{self.base_url}/{self.cloud_name}/image/upload"
        data = {"upload_preset": self.upload_preset, "folder": self.folder}
        files = {"file": (filename, content, content_type)}

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=30.0) as client:
                response = await client.post(url, data=data, files=files)
        except httpx.TimeoutException as e:
            logger.error("Cloudinary upload timed out")
            raise UploadError("Upload timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Cloudinary upload failed: {e}")
            raise UploadError("Upload failed") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            logger.error(f"Cloudinary Error Response: {payload}")
            message = (payload.get("error") or {}).get("message") or "Upload failed"
            raise UploadError(message)

        secure_url = payload.get("secure_url")
        if not secure_url:
            raise UploadError("Upload response did not include a URL")

        logger.info(f"Uploaded image {filename} to Cloudinary")
        return secure_url


def get_cloudinary_service() -> CloudinaryService:
    """FastAPI dependency, overridable in tests"""
    return CloudinaryService()
