# MinIO Storage Service for Campaign Content Media
# Influencer submissions are stored under content/{campaign_id}/ in one bucket.

import boto3
import logging
import os
import uuid
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

MINIO_ENDPOINT = os.getenv("MINIO_ENDPOINT", "http://minio:9000")
# Public endpoint is what the browser will reach. In Docker dev the backend
# talks to http://minio:9000 but stored URLs must use the published host.
MINIO_PUBLIC_ENDPOINT = os.getenv("MINIO_PUBLIC_ENDPOINT", MINIO_ENDPOINT)
MINIO_ACCESS_KEY = os.getenv("MINIO_ACCESS_KEY", "")
MINIO_SECRET_KEY = os.getenv("MINIO_SECRET_KEY", "")
MINIO_BUCKET = os.getenv("MINIO_BUCKET", "collabmart-content")
MINIO_REGION = os.getenv("MINIO_REGION", "us-east-1")


class UploadError(Exception):
    """Raised when a file could not be stored."""


@dataclass
class MediaFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def media_type(self) -> str:
        return "video" if (self.content_type or "").startswith("video/") else "image"


class MediaStorage:
    """S3-compatible storage for content media."""

    def __init__(self, bucket: str = MINIO_BUCKET, endpoint: str = MINIO_ENDPOINT, public_endpoint: str = MINIO_PUBLIC_ENDPOINT):
        self.bucket = bucket
        self.endpoint = endpoint
        self.public_endpoint = public_endpoint.rstrip("/")
        self._client = None
        self._bucket_checked = False

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint,
                aws_access_key_id=MINIO_ACCESS_KEY,
                aws_secret_access_key=MINIO_SECRET_KEY,
                config=Config(signature_version="s3v4"),
                region_name=MINIO_REGION,
            )
        return self._client

    def ensure_bucket_exists(self):
        """Create the bucket if it doesn't already exist."""
        if self._bucket_checked:
            return
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code in ("404", "NoSuchBucket"):
                self.client.create_bucket(Bucket=self.bucket)
                logger.info(f"MinIO bucket '{self.bucket}' created")
            else:
                raise
        self._bucket_checked = True

    def public_url(self, object_key: str) -> str:
        return f"{self.public_endpoint}/{self.bucket}/{object_key}"

    def object_key_from_url(self, url: str) -> Optional[str]:
        prefix = f"{self.public_endpoint}/{self.bucket}/"
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None

    def upload(self, file: MediaFile, folder: str) -> str:
        """
        Upload a media file under `folder` and return its public URL.

        Raises:
            UploadError: if the object could not be written
        """
        safe_name = (file.filename or "upload").replace(" ", "_")
        unique_id = str(uuid.uuid4())[:8]
        timestamp = datetime.utcnow().strftime("%Y%m%d")
        object_key = f"{folder.strip('/')}/{timestamp}-{unique_id}-{safe_name}"

        try:
            self.ensure_bucket_exists()
            self.client.put_object(
                Bucket=self.bucket,
                Key=object_key,
                Body=file.data,
                ContentType=file.content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Upload of {safe_name} to {folder} failed: {e}")
            raise UploadError(f"Could not upload {file.filename}") from e

        return self.public_url(object_key)

    def delete(self, url: str) -> bool:
        """Delete an uploaded object by its public URL. Returns False if it could not be removed."""
        object_key = self.object_key_from_url(url)
        if not object_key:
            return False
        try:
            self.client.delete_object(Bucket=self.bucket, Key=object_key)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete {object_key}: {e}")
            return False


_storage: Optional[MediaStorage] = None


def get_media_storage() -> MediaStorage:
    """FastAPI dependency returning the shared storage client."""
    global _storage
    if _storage is None:
        _storage = MediaStorage()
    return _storage
