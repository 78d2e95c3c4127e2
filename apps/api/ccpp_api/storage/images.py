"""Object storage for document images.

Uses MinIO (S3-compatible). Documents keep only the object key.
"""

import logging
import re
import uuid
from io import BytesIO
from typing import Optional

from minio import Minio
from minio.error import S3Error

from ccpp_api.errors import PersistenceError
from ccpp_api.settings import get_settings

logger = logging.getLogger(__name__)

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/gif": "gif",
}

_SAFE_ID = re.compile(r"[^A-Za-z0-9._-]")


class ImageStore:
    """Stores captured equipment photos in a bucket."""

    def __init__(self, client: Optional[Minio] = None, bucket: Optional[str] = None):
        """Initialize image store with a MinIO client."""
        settings = get_settings()
        self.bucket = bucket or settings.minio_bucket
        if client is not None:
            self.client = client
            return
        try:
            self.client = Minio(
                settings.minio_endpoint,
                access_key=settings.minio_access_key,
                secret_key=settings.minio_secret_key,
                secure=settings.minio_use_ssl,
            )
            # Ensure bucket exists
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info(f"Created bucket: {self.bucket}")
        except Exception as e:
            logger.error(f"Failed to initialize MinIO client: {e}")
            self.client = None

    def put_image(self, object_key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """
        Upload an image.

        Returns:
            Object key

        Raises:
            PersistenceError: If storage is unavailable or the upload fails
        """
        if not self.client:
            raise PersistenceError("Image storage client not available")

        try:
            self.client.put_object(
                self.bucket,
                object_key,
                BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
            logger.debug(f"Uploaded image: {object_key} ({len(data)} bytes)")
            return object_key
        except S3Error as e:
            logger.error(f"Failed to upload image {object_key}: {e}")
            raise PersistenceError(f"Image upload failed: {e}") from e

    def get_image(self, object_key: str) -> bytes:
        """
        Download an image.

        Raises:
            FileNotFoundError: If the object does not exist
            PersistenceError: If storage is unavailable
        """
        if not self.client:
            raise PersistenceError("Image storage client not available")

        try:
            response = self.client.get_object(self.bucket, object_key)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()
        except S3Error as e:
            if e.code == "NoSuchKey":
                raise FileNotFoundError(f"Image not found: {object_key}")
            logger.error(f"Failed to retrieve image {object_key}: {e}")
            raise PersistenceError(f"Image download failed: {e}") from e

    def delete_image(self, object_key: str) -> None:
        """Remove an image; failures are logged, not raised."""
        if not self.client:
            return
        try:
            self.client.remove_object(self.bucket, object_key)
            logger.debug(f"Removed image: {object_key}")
        except S3Error as e:
            logger.error(f"Failed to remove image {object_key}: {e}")

    @staticmethod
    def build_object_key(equipment_id: str, content_type: Optional[str] = None) -> str:
        """
        Build object key for an equipment photo.

        Format: documents/{equipment_id}/{uuid}.{ext}
        """
        safe_id = _SAFE_ID.sub("_", equipment_id) or "unknown"
        extension = CONTENT_TYPE_EXTENSIONS.get(content_type or "", "bin")
        return f"documents/{safe_id}/{uuid.uuid4().hex}.{extension}"


# Global instance
_image_store: Optional[ImageStore] = None


def get_image_store() -> ImageStore:
    """Get or create image store instance."""
    global _image_store
    if _image_store is None:
        _image_store = ImageStore()
    return _image_store
