"""
Tubely S3-Compatible Storage Client

A thin boto3 wrapper used by the object store publishers. It supports AWS S3
and S3-compatible endpoints (MinIO, LocalStack) through a configurable
endpoint URL. Only the put operation is needed by the ingestion pipeline;
object keys and public URLs are composed by the caller.
"""

import logging

from typing import IO, Any

import boto3

from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from tubely.config import Settings, get_settings


logger = logging.getLogger(__name__)

# Singleton container for storage client instance
_singleton_container: dict[str, "StorageClient"] = {}


class StorageClient:
    """
    S3-compatible storage client bound to the configured bucket.

    Attributes:
        settings: Application settings containing S3 configuration
        s3_client: Initialized boto3 S3 client
        bucket_name: Target bucket for all operations

    Example usage:
        ```python
        from tubely.core.storage import get_storage_client

        storage = get_storage_client()
        with open("/tmp/clip.mp4", "rb") as body:
            storage.put_object("landscape/abc.mp4", body, "video/mp4")
        ```
    """

    def __init__(self, settings: Settings | None = None, s3_client: Any = None) -> None:
        """
        Initialize the S3 storage client.

        Args:
            settings: Optional Settings instance. Defaults to get_settings().
            s3_client: Pre-built boto3 client, mainly for tests. When None a
                client is created from settings.
        """
        self.settings = settings or get_settings()
        self.bucket_name = self.settings.s3_bucket_name

        if s3_client is not None:
            self.s3_client = s3_client
            return

        # Path-style addressing only for custom endpoints such as MinIO
        addressing_style = "path" if self.settings.s3_endpoint_url else "auto"
        client_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": addressing_style},
            retries={"max_attempts": 3, "mode": "standard"},
        )

        self.s3_client = boto3.client(
            "s3",
            endpoint_url=self.settings.s3_endpoint_url,
            aws_access_key_id=self.settings.s3_access_key_id,
            aws_secret_access_key=self.settings.s3_secret_access_key,
            region_name=self.settings.s3_region,
            config=client_config,
        )

        logger.info(
            "S3 storage client initialized",
            extra={
                "bucket": self.bucket_name,
                "region": self.settings.s3_region,
                "endpoint": self.settings.s3_endpoint_url or "AWS S3 (default)",
            },
        )

    def put_object(self, key: str, body: IO[bytes] | bytes, content_type: str) -> None:
        """
        Upload an object to the configured bucket.

        This call blocks; async callers should run it in a worker thread.

        Args:
            key: The S3 object key.
            body: Readable binary stream or bytes.
            content_type: Value stored as the object's Content-Type.

        Raises:
            ClientError: If S3 rejects the request.
            BotoCoreError: On transport or credential failures.
        """
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
            logger.info(
                "Uploaded object to S3",
                extra={"bucket": self.bucket_name, "key": key, "content_type": content_type},
            )
        except (ClientError, BotoCoreError):
            logger.exception(
                "Failed to upload object to S3",
                extra={"bucket": self.bucket_name, "key": key},
            )
            raise


def get_storage_client() -> StorageClient:
    """
    Get the singleton StorageClient instance.

    The boto3 client is thread-safe, so one instance is shared across
    requests and worker threads.
    """
    if "instance" not in _singleton_container:
        _singleton_container["instance"] = StorageClient()
        logger.info("Created new StorageClient singleton instance")

    return _singleton_container["instance"]
