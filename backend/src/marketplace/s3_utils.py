"""
S3 storage for submission archives.
Validates uploads, stores them under the task's prefix and generates
presigned URLs for private bucket access.
"""
import os
import re
import uuid
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from .config import config
from .errors import Unexpected, ValidationError
from .logging import logger

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


def validate_upload(filename: str, size: int) -> None:
    """
    Enforce the upload ceiling and the allowed archive extensions.

    Raises:
        ValidationError: missing file, wrong extension or too large
    """
    if not filename or size <= 0:
        raise ValidationError('No file uploaded')

    extension = os.path.splitext(filename)[1].lower()
    if extension not in config.ALLOWED_UPLOAD_EXTENSIONS:
        allowed = ', '.join(config.ALLOWED_UPLOAD_EXTENSIONS)
        raise ValidationError(f'Only {allowed} files are allowed')

    if size > config.MAX_UPLOAD_BYTES:
        limit_mb = config.MAX_UPLOAD_BYTES // (1024 * 1024)
        raise ValidationError(f'File size too large (max {limit_mb}MB)')


def safe_filename(filename: str) -> str:
    """Strip directories and characters that do not belong in an S3 key."""
    base = os.path.basename(filename.replace('\\', '/'))
    return _UNSAFE_CHARS.sub('_', base) or 'upload'


class SubmissionFileStore:
    """Upload collaborator: stores archives and hands back their key."""

    def __init__(self, bucket_name: str = None, client=None):
        self.bucket_name = bucket_name or config.SUBMISSIONS_BUCKET
        self._client = client

    @property
    def client(self):
        if self._client is None:
            # S3 client with custom signature version for presigned URLs
            self._client = boto3.client(
                's3',
                region_name=config.AWS_REGION,
                config=BotoConfig(signature_version='s3v4')
            )
        return self._client

    def save(self, task_id: str, filename: str, content: bytes) -> str:
        """
        Store an archive for a task.

        Returns:
            The S3 object key (used as the submission's filePath)
        """
        validate_upload(filename, len(content or b''))
        if not self.bucket_name:
            logger.error("No SUBMISSIONS_BUCKET configured")
            raise Unexpected()

        key = f"submissions/{task_id}/{uuid.uuid4()}-{safe_filename(filename)}"
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType='application/zip'
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading {key}: {e}")
            raise Unexpected() from e

        logger.info(f"Stored submission file {key} ({len(content)} bytes)")
        return key

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting {key}: {e}")

    def generate_presigned_url(self, key: str, expiration: int = None) -> str:
        """
        Generate a presigned URL for downloading a stored archive.

        Returns:
            Presigned URL string or the original key if generation fails
        """
        if not key or not self.bucket_name:
            return key

        try:
            return self.client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self.bucket_name,
                    'Key': key
                },
                ExpiresIn=expiration or config.PRESIGNED_URL_EXPIRATION
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error generating presigned URL for {key}: {e}")
            return key
