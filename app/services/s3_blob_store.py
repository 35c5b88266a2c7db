"""S3BlobStore stores receipt images in an S3-compatible bucket."""

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.errors import StorageError
from app.core.settings import Settings, get_settings
from app.core.utils import get_logger
from app.services.blob_store import BlobStore

logger = get_logger("receipts-dashboard.storage")


class S3BlobStore(BlobStore):
    """Service for S3 blob operations: ensure bucket, validate and upload receipts."""

    def __init__(self, settings: Settings | None = None, client: object | None = None) -> None:
        """Initialize S3BlobStore and ensure the bucket exists."""
        self.settings = settings or get_settings()
        self.s3 = client or boto3.client(
            "s3",
            endpoint_url=self.settings.s3_endpoint_url,
            region_name=self.settings.s3_region,
            aws_access_key_id=self.settings.s3_access_key,
            aws_secret_access_key=self.settings.s3_secret_key,
        )
        self.bucket = self.settings.s3_bucket
        self.ensure_bucket()

    def ensure_bucket(self) -> None:
        """Ensure the S3 bucket exists, create if not present."""
        try:
            self.s3.head_bucket(Bucket=self.bucket)
        except ClientError:
            try:
                self.s3.create_bucket(Bucket=self.bucket)
            except (ClientError, BotoCoreError) as exc:
                msg = "Receipt storage is unavailable. Please try again later."
                logger.exception(f"Could not create bucket {self.bucket}")
                raise StorageError(msg) from exc
        except BotoCoreError as exc:
            msg = "Receipt storage is unavailable. Please try again later."
            logger.exception(f"Could not reach bucket {self.bucket}")
            raise StorageError(msg) from exc

    def public_url(self, key: str) -> str:
        """Return the URL under which an object can be retrieved."""
        if self.settings.s3_public_base_url:
            return f"{self.settings.s3_public_base_url.rstrip('/')}/{key}"
        if self.settings.s3_endpoint_url:
            return f"{self.settings.s3_endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.settings.s3_region}.amazonaws.com/{key}"

    def put(self, path: str, data: bytes, content_type: str) -> str:
        """Upload a receipt under the given key and return its public URL."""
        if len(data) > self.settings.max_receipt_bytes:
            msg = f"Receipt is too large ({len(data)} bytes, limit {self.settings.max_receipt_bytes})."
            raise StorageError(msg)
        if not content_type.startswith("image/"):
            msg = f"Receipt must be an image, got '{content_type}'."
            raise StorageError(msg)
        try:
            self.s3.put_object(Bucket=self.bucket, Key=str(path), Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as exc:
            logger.exception(f"Upload to s3://{self.bucket}/{path} failed")
            msg = "Could not store the receipt. Please try again."
            raise StorageError(msg) from exc
        logger.info(f"Stored receipt at s3://{self.bucket}/{path}")
        return self.public_url(path)
