import boto3
from botocore.exceptions import ClientError
from typing import Optional
import os
import re
import time
from invoice_intake.config import settings
from invoice_intake.exceptions import UnsupportedMediaType, PayloadTooLarge, StorageError
import logging

logger = logging.getLogger(__name__)

# Extension is chosen from the declared content type, never from the filename
ALLOWED_CONTENT_TYPES = {
    'application/pdf': '.pdf',
    'image/jpeg': '.jpg',
    'image/jpg': '.jpg',
    'image/png': '.png',
    'image/gif': '.gif',
}

MEDIA_TYPES_BY_EXTENSION = {
    '.pdf': 'application/pdf',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.json': 'application/json',
}

STORAGE_PREFIX = "invoices"
MAX_FILENAME_LENGTH = 100


def sanitize_filename(filename: str) -> str:
    """Drop the extension and replace anything outside [A-Za-z0-9_-] with '_'"""
    stem = os.path.splitext(os.path.basename(filename))[0]
    return re.sub(r'[^A-Za-z0-9_-]', '_', stem)[:MAX_FILENAME_LENGTH]


def media_type_for(storage_path: str) -> str:
    """Determine media type from a stored file's extension"""
    ext = os.path.splitext(storage_path)[1].lower()
    return MEDIA_TYPES_BY_EXTENSION.get(ext, 'application/octet-stream')


class StorageService:
    """Service for storing uploaded invoice files (S3-compatible or local disk)"""

    def __init__(self, local_storage_dir: Optional[str] = None, max_upload_bytes: Optional[int] = None):
        self.bucket_name = settings.storage_bucket_name
        self.max_upload_bytes = max_upload_bytes or settings.max_upload_bytes

        # Require both access key and secret key to use S3
        if settings.storage_access_key_id and settings.storage_secret_access_key:
            s3_config = {
                'aws_access_key_id': settings.storage_access_key_id,
                'aws_secret_access_key': settings.storage_secret_access_key,
            }
            if settings.storage_endpoint_url:
                s3_config['endpoint_url'] = settings.storage_endpoint_url
            if settings.storage_region:
                s3_config['region_name'] = settings.storage_region
            self.s3_client = boto3.client('s3', **s3_config)
            logger.info(f"S3 storage initialized for bucket {self.bucket_name}")
        else:
            logger.info("No S3 credentials found, using local filesystem storage")
            self.s3_client = None

        self.local_storage_dir = os.path.abspath(local_storage_dir or settings.local_storage_dir)

    def build_storage_key(self, filename: str, content_type: str) -> str:
        """Build "invoices/<microsecond timestamp>_<sanitized name><ext>" """
        timestamp = time.time_ns() // 1000
        extension = ALLOWED_CONTENT_TYPES[content_type.lower()]
        return f"{STORAGE_PREFIX}/{timestamp}_{sanitize_filename(filename)}{extension}"

    def validate_upload(self, content_type: str, size: int) -> None:
        if content_type.lower() not in ALLOWED_CONTENT_TYPES:
            raise UnsupportedMediaType(
                f"Unsupported file type: {content_type}. "
                f"Allowed types: {', '.join(ALLOWED_CONTENT_TYPES)}"
            )
        if size > self.max_upload_bytes:
            raise PayloadTooLarge(
                f"File size exceeds {self.max_upload_bytes // (1024 * 1024)}MB limit. "
                f"Current size: {size / (1024 * 1024):.1f}MB"
            )

    def upload_file(self, file_content: bytes, filename: str, content_type: str) -> str:
        """
        Validate and store an uploaded invoice file

        Args:
            file_content: Decoded binary content of the file
            filename: Original filename (only its stem is kept)
            content_type: Declared MIME type, decides the stored extension

        Returns:
            Storage key, e.g. "invoices/1718000000000000_acme_march.pdf"
        """
        # Nothing is written unless both checks pass
        self.validate_upload(content_type, len(file_content))
        storage_key = self.build_storage_key(filename, content_type)

        if self.s3_client:
            try:
                self.s3_client.put_object(
                    Bucket=self.bucket_name,
                    Key=storage_key,
                    Body=file_content,
                    ContentType=content_type.lower()
                )
            except ClientError as e:
                raise StorageError(f"Failed to upload to S3: {str(e)}") from e
        else:
            local_path = self._local_path(storage_key)
            try:
                os.makedirs(os.path.dirname(local_path), exist_ok=True)
                with open(local_path, 'wb') as f:
                    f.write(file_content)
            except OSError as e:
                logger.error(f"Failed to save file to local storage: {str(e)}")
                raise StorageError(f"Failed to save file: {str(e)}") from e

        logger.info(f"Stored {filename} ({len(file_content)} bytes) as {storage_key}")
        return storage_key

    def download_file(self, storage_path: str) -> bytes:
        """
        Read a stored file back

        Raises:
            FileNotFoundError: nothing is stored under storage_path
        """
        if self.s3_client:
            try:
                response = self.s3_client.get_object(Bucket=self.bucket_name, Key=storage_path)
                return response['Body'].read()
            except ClientError as e:
                if e.response.get('Error', {}).get('Code') in ('NoSuchKey', '404'):
                    raise FileNotFoundError(f"File not found: {storage_path}") from e
                raise StorageError(f"Failed to download from S3: {str(e)}") from e

        local_file_path = self._local_path(storage_path)
        if not os.path.isfile(local_file_path):
            raise FileNotFoundError(f"File not found: {local_file_path}")
        with open(local_file_path, 'rb') as f:
            return f.read()

    def _local_path(self, storage_path: str) -> str:
        local_path = os.path.abspath(os.path.join(self.local_storage_dir, storage_path))
        # Keys must stay inside the storage root
        if os.path.commonpath([local_path, self.local_storage_dir]) != self.local_storage_dir:
            raise FileNotFoundError(f"File not found: {storage_path}")
        return local_path


storage_service = StorageService()
