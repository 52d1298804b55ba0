"""Object storage service for rendered lease documents.

Uses MinIO (S3-compatible) for durable blob storage. Objects are addressed by
keys built from validated identifiers, never by filesystem paths.
"""

import logging
import re
from datetime import timedelta
from io import BytesIO
from typing import Optional

import urllib3
from minio import Minio
from minio.error import S3Error

from leasedoc_api.documents.errors import SignedUrlError, StorageReadError, StorageUploadError
from leasedoc_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_KEY_SEGMENT = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class StorageService:
    """Object storage service for rendered documents."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[Minio] = None):
        """Initialize storage service with a MinIO client."""
        settings = settings or get_settings()
        self.bucket = settings.minio_bucket
        if client is not None:
            self.client = client
            return
        try:
            http_client = urllib3.PoolManager(
                timeout=urllib3.Timeout(
                    connect=min(settings.storage_timeout_seconds, 10.0),
                    read=settings.storage_timeout_seconds,
                ),
                retries=urllib3.Retry(total=3, backoff_factor=0.2, status_forcelist=[500, 502, 503, 504]),
            )
            self.client = Minio(
                settings.minio_endpoint,
                access_key=settings.minio_access_key,
                secret_key=settings.minio_secret_key,
                secure=settings.minio_use_ssl,
                http_client=http_client,
            )
            # Ensure bucket exists
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info(f"Created bucket: {self.bucket}")
        except (S3Error, urllib3.exceptions.HTTPError, ValueError) as e:
            logger.error(f"Failed to initialize MinIO client: {e}")
            self.client = None

    def upload(
        self,
        object_key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
        overwrite: bool = True,
    ) -> str:
        """
        Upload object to storage.

        Returns only once MinIO acknowledged the write.

        Args:
            object_key: Object key (e.g., "leases/{lease_id}/lease-document-{fingerprint}.pdf")
            data: Object data as bytes
            content_type: MIME type
            cache_control: Cache-Control header served with the object
            overwrite: When False, refuse to replace an existing object

        Returns:
            Object key (for consistency)

        Raises:
            StorageUploadError: If the client is unavailable or the write fails
        """
        if not self.client:
            raise StorageUploadError("Storage client not available")

        if not overwrite and self.object_exists(object_key):
            raise StorageUploadError(f"Object already exists: {object_key}")

        metadata = {"Cache-Control": cache_control} if cache_control else None
        try:
            self.client.put_object(
                self.bucket,
                object_key,
                BytesIO(data),
                length=len(data),
                content_type=content_type,
                metadata=metadata,
            )
        except (S3Error, urllib3.exceptions.HTTPError) as e:
            logger.error(f"Failed to upload object {object_key}: {e}")
            raise StorageUploadError() from e

        logger.debug(f"Uploaded object: {object_key} ({len(data)} bytes)")
        return object_key

    def get_object(self, object_key: str) -> bytes:
        """
        Retrieve object from storage.

        Raises:
            FileNotFoundError: If object does not exist
            StorageReadError: If the client is unavailable or the read fails
        """
        if not self.client:
            raise StorageReadError("Storage client not available")

        try:
            response = self.client.get_object(self.bucket, object_key)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()
        except S3Error as e:
            if e.code == "NoSuchKey":
                raise FileNotFoundError(f"Object not found: {object_key}")
            logger.error(f"Failed to retrieve object {object_key}: {e}")
            raise StorageReadError() from e
        except urllib3.exceptions.HTTPError as e:
            logger.error(f"Failed to retrieve object {object_key}: {e}")
            raise StorageReadError() from e

    def signed_url(self, object_key: str, ttl_seconds: int = 3600) -> str:
        """
        Generate presigned URL for object access.

        Raises:
            SignedUrlError: If the client is unavailable or signing fails
        """
        if not self.client:
            raise SignedUrlError("Storage client not available")

        try:
            return self.client.presigned_get_object(
                self.bucket,
                object_key,
                expires=timedelta(seconds=ttl_seconds),
            )
        except (S3Error, urllib3.exceptions.HTTPError, ValueError) as e:
            logger.error(f"Failed to generate signed URL for {object_key}: {e}")
            raise SignedUrlError() from e

    def object_exists(self, object_key: str) -> bool:
        """Check if object exists in storage."""
        if not self.client:
            return False

        try:
            self.client.stat_object(self.bucket, object_key)
            return True
        except S3Error:
            return False

    def is_available(self) -> bool:
        """Check connectivity and bucket existence."""
        if not self.client:
            return False
        try:
            return self.client.bucket_exists(self.bucket)
        except (S3Error, urllib3.exceptions.HTTPError) as e:
            logger.error(f"Object storage check failed: {e}")
            return False

    @staticmethod
    def build_object_key(lease_id: str, kind: str, fingerprint: str, extension: str = "pdf") -> str:
        """
        Build object key for a rendered document.

        Format: leases/{lease_id}/{kind}-{fingerprint}.{extension}

        The fingerprint is part of the key, so a new version never overwrites
        the blob an older index row may still point to.
        """
        allowed_extensions = {"pdf", "html"}
        if extension not in allowed_extensions:
            raise ValueError(f"Invalid extension: {extension}. Allowed: {allowed_extensions}")

        for segment in (lease_id, kind, fingerprint):
            if not segment or not _KEY_SEGMENT.match(segment):
                raise ValueError(f"Invalid object key segment: {segment!r}")

        return f"leases/{lease_id}/{kind}-{fingerprint}.{extension}"


# Global instance
_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    """Get or create storage service instance."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
