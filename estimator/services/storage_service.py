"""
Object Storage Service for product images (MinIO, AWS S3, DigitalOcean Spaces).

Architecture:
- Uses boto3 (AWS SDK for Python)
- Products store the object key; public URLs are derived on read
- Deleting an object is best-effort: failures are logged, never raised
"""
import json
import logging
import mimetypes
import time
from io import BytesIO
from typing import Optional, Union, BinaryIO

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app
from werkzeug.utils import secure_filename

from estimator.exceptions import ValidationError, TransientIOError

logger = logging.getLogger(__name__)


class StorageService:
    """
    S3-compatible object storage service.

    Usage:
        storage = StorageService()
        key = storage.upload(data, 'image.jpg', 'image/jpeg', owner_id='u1')
        storage.delete(key)
    """

    def __init__(self, client=None, ensure_bucket: bool = True):
        """Initialize S3 client from Flask config (or use the given client)."""
        self.endpoint = current_app.config['S3_ENDPOINT']
        self.bucket = current_app.config['S3_BUCKET']
        self.region = current_app.config['S3_REGION']
        self.public_url = current_app.config['S3_PUBLIC_URL']
        self.max_size = current_app.config.get('MAX_UPLOAD_SIZE', 2 * 1024 * 1024)
        self.allowed_types = current_app.config.get('ALLOWED_MIME_TYPES', set())

        self.client = client or boto3.client(
            's3',
            endpoint_url=self.endpoint,
            aws_access_key_id=current_app.config['S3_ACCESS_KEY'],
            aws_secret_access_key=current_app.config['S3_SECRET_KEY'],
            region_name=self.region,
            config=BotoConfig(signature_version='s3v4')
        )

        if ensure_bucket:
            self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        """Create bucket if it doesn't exist."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
            logger.info(f"[STORAGE] Bucket '{self.bucket}' exists")
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code != '404':
                logger.error(f"[STORAGE] Failed to check bucket: {e}")
                raise

            self.client.create_bucket(Bucket=self.bucket)
            logger.info(f"[STORAGE] Bucket '{self.bucket}' created")

            # Product images are served publicly
            policy = {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": {"AWS": "*"},
                        "Action": "s3:GetObject",
                        "Resource": f"arn:aws:s3:::{self.bucket}/*"
                    }
                ]
            }
            self.client.put_bucket_policy(Bucket=self.bucket, Policy=json.dumps(policy))
            logger.info(f"[STORAGE] Bucket '{self.bucket}' policy set to public-read")

    def build_object_name(self, filename: str, owner_id: str) -> str:
        """Object key for a product image, e.g. 'products/u1/1700000000_photo.jpg'."""
        safe_name = secure_filename(filename or '') or 'image'
        return f"products/{secure_filename(str(owner_id)) or 'anonymous'}/{int(time.time() * 1000)}_{safe_name}"

    def upload(
        self,
        data: Union[bytes, BinaryIO],
        filename: str,
        content_type: Optional[str] = None,
        owner_id: str = 'anonymous'
    ) -> str:
        """
        Upload a binary asset.

        Args:
            data: raw bytes or a readable binary stream
            filename: original file name (sanitized into the object key)
            content_type: MIME type (guessed from filename if None)
            owner_id: owner used to namespace the key

        Returns:
            Object key of the stored asset

        Raises:
            ValidationError: if the file is empty, too large or of a disallowed type
            TransientIOError: if the upload fails
        """
        stream = BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        content_type = content_type or mimetypes.guess_type(filename or '')[0] or 'application/octet-stream'
        self._validate(stream, content_type)

        object_name = self.build_object_name(filename, owner_id)
        try:
            logger.info(f"[STORAGE] Uploading '{object_name}' to bucket '{self.bucket}'...")
            self.client.upload_fileobj(
                stream,
                self.bucket,
                object_name,
                ExtraArgs={'ContentType': content_type, 'ACL': 'public-read'}
            )
            logger.info(f"[STORAGE] File uploaded: {object_name}")
            return object_name
        except (ClientError, BotoCoreError) as e:
            logger.exception(f"[STORAGE] Upload failed: {e}")
            raise TransientIOError('Failed to upload image. Please try again later.') from e

    def delete(self, object_ref: Optional[str]) -> bool:
        """
        Delete an asset, best-effort.

        Args:
            object_ref: object key, or a legacy full public URL

        Returns:
            True if deleted, False if there was nothing to delete or it failed
        """
        if not object_ref:
            return False

        object_name = self.object_name_from_ref(object_ref)
        try:
            logger.info(f"[STORAGE] Deleting '{object_name}' from bucket '{self.bucket}'...")
            self.client.delete_object(Bucket=self.bucket, Key=object_name)
            logger.info(f"[STORAGE] File deleted: {object_name}")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"[STORAGE] Delete failed for '{object_name}': {e}")
            return False

    def object_name_from_ref(self, object_ref: str) -> str:
        """
        Extract the object key from a reference.

        URL format: http://localhost:9000/uploads/products/u1/123_image.jpg
        Object key: products/u1/123_image.jpg
        """
        marker = f"/{self.bucket}/"
        if object_ref.startswith(('http://', 'https://')) and marker in object_ref:
            return object_ref.split(marker, 1)[1]
        return object_ref.lstrip('/')

    def get_public_url(self, object_name: str) -> str:
        """Public URL for an object key."""
        return f"{self.public_url.rstrip('/')}/{self.bucket}/{object_name.lstrip('/')}"

    def _validate(self, stream: BinaryIO, content_type: str):
        """Validate size and MIME type of an upload."""
        stream.seek(0, 2)  # Seek to end
        size = stream.tell()
        stream.seek(0)

        if size == 0:
            raise ValidationError("No file was provided.")

        if size > self.max_size:
            max_mb = self.max_size / (1024 * 1024)
            raise ValidationError(f"File is too large. Maximum {max_mb:.1f}MB.")

        if self.allowed_types and content_type not in self.allowed_types:
            raise ValidationError(
                f"File type not allowed: {content_type}. Allowed: {', '.join(sorted(self.allowed_types))}"
            )


# Singleton instance
_storage_service = None


def get_storage_service() -> StorageService:
    """
    Get or create StorageService singleton.

    Returns:
        StorageService instance
    """
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service


def set_storage_service(service: Optional[StorageService]) -> None:
    """Replace the singleton (tests, alternative backends); None resets it."""
    global _storage_service
    _storage_service = service
