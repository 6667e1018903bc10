"""MinIO / S3 object storage for export delivery."""

from typing import Any, BinaryIO

import boto3
import structlog
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from trailcov.config import get_config

logger = structlog.get_logger()


class ObjectStorage:
    """Client for MinIO or AWS S3 object storage."""

    def __init__(
        self,
        endpoint: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        secure: bool | None = None,
        bucket: str | None = None,
    ):
        """Initialize the storage client.

        Args:
            endpoint: MinIO endpoint (host:port). Empty selects AWS S3.
            access_key: Access key for authentication.
            secret_key: Secret key for authentication.
            secure: Use HTTPS if True.
            bucket: Export bucket name.
        """
        config = get_config()

        self.endpoint = endpoint if endpoint is not None else config.minio.endpoint
        self.access_key = access_key or config.minio.access_key
        self.secret_key = secret_key or config.minio.secret_key
        self.secure = secure if secure is not None else config.minio.secure
        self.bucket = bucket or config.minio.bucket_exports

        # No endpoint means AWS S3 with ambient credentials
        self._s3_mode = not self.endpoint

        if not self._s3_mode:
            protocol = "https" if self.secure else "http"
            self.endpoint_url = f"{protocol}://{self.endpoint}"
        else:
            self.endpoint_url = None

        self._client = None

    @property
    def client(self) -> Any:
        """Get or create the boto3 S3 client."""
        if self._client is None:
            if self._s3_mode:
                self._client = boto3.client("s3")
                logger.info("Connected to AWS S3")
            else:
                self._client = boto3.client(
                    "s3",
                    endpoint_url=self.endpoint_url,
                    aws_access_key_id=self.access_key,
                    aws_secret_access_key=self.secret_key,
                    config=BotoConfig(
                        signature_version="s3v4",
                        s3={"addressing_style": "path"},
                    ),
                )
                logger.info("Connected to MinIO", endpoint=self.endpoint)
        return self._client

    def ensure_bucket(self, bucket: str | None = None) -> None:
        """Ensure a bucket exists, creating it if necessary.

        On AWS S3 buckets are managed outside the pipeline and must exist.

        Args:
            bucket: Bucket name, defaults to the export bucket.
        """
        bucket = bucket or self.bucket
        try:
            self.client.head_bucket(Bucket=bucket)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("404", "NoSuchBucket"):
                if self._s3_mode:
                    raise RuntimeError(
                        f"S3 bucket '{bucket}' not found; check MINIO_BUCKET_EXPORTS"
                    ) from e
                self.client.create_bucket(Bucket=bucket)
                logger.info("Created bucket", bucket=bucket)
            else:
                raise

    def upload_fileobj(
        self,
        file_obj: BinaryIO,
        object_key: str,
        bucket: str | None = None,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Upload a file-like object to storage.

        Returns:
            Full object path (bucket/key).
        """
        bucket = bucket or self.bucket
        self.client.upload_fileobj(
            file_obj,
            bucket,
            object_key,
            ExtraArgs={"ContentType": content_type},
        )
        logger.info("Uploaded file object", bucket=bucket, key=object_key)
        return f"{bucket}/{object_key}"

    def export_key(self, description: str, prefix: str = "") -> str:
        """Object key for a table export."""
        prefix = prefix.strip("/")
        return f"{prefix}/{description}.csv" if prefix else f"{description}.csv"
