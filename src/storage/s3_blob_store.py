# src/storage/s3_blob_store.py - v1
"""S3-compatible blob store (STORAGE_BACKEND=s3).

Supports AWS S3, MinIO, and other S3-compatible storage.
Requires 'boto3' package: pip install boto3.
Containers map to buckets; read grants are presigned GET URLs.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from batchocr.storage.base_blob_store import BaseBlobStore

logger = logging.getLogger(__name__)

# SigV4 presigned URLs cannot outlive seven days.
MAX_PRESIGN_SECONDS = 7 * 24 * 3600


class S3BlobStore(BaseBlobStore):
    """Blob store backed by S3-compatible object storage."""

    def __init__(
        self,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        """Initialize S3 blob store.

        Args:
            region: AWS region (optional, uses boto3 default if not set).
            endpoint_url: Custom endpoint for MinIO/compatible storage.
        """
        try:
            import boto3
        except ImportError as e:
            raise ImportError(
                "boto3 package required for S3 blob store: pip install boto3"
            ) from e

        kwargs: dict = {}
        if region:
            kwargs["region_name"] = region
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url

        self._s3 = boto3.client("s3", **kwargs)
        self._region = region

    async def list_names(self, container: str) -> list[str]:
        """List all keys in the bucket, following pagination."""
        paginator = self._s3.get_paginator("list_objects_v2")
        names: list[str] = []
        for page in paginator.paginate(Bucket=container):
            for obj in page.get("Contents", []):
                names.append(obj["Key"])
        logger.debug("Listed %d objects in s3://%s", len(names), container)
        return names

    async def sign_read_url(
        self, container: str, name: str, expires_at: datetime,
    ) -> str:
        """Presign a GET for one object, clamped to the SigV4 maximum."""
        seconds = int((expires_at - datetime.now(timezone.utc)).total_seconds())
        if seconds > MAX_PRESIGN_SECONDS:
            logger.warning(
                "Requested grant for s3://%s/%s exceeds 7 days, clamping",
                container, name,
            )
            seconds = MAX_PRESIGN_SECONDS
        return self._s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": container, "Key": name},
            ExpiresIn=max(seconds, 1),
        )

    def _bucket_exists(self, container: str) -> bool:
        try:
            self._s3.head_bucket(Bucket=container)
            return True
        except self._s3.exceptions.ClientError:
            return False

    async def ensure_container(self, container: str) -> None:
        """Create the bucket unless head_bucket finds it."""
        if self._bucket_exists(container):
            return

        kwargs: dict = {"Bucket": container}
        if self._region and self._region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
        self._s3.create_bucket(**kwargs)
        logger.info("Created bucket %s", container)

    async def upload_file(self, container: str, name: str, local_path: Path) -> None:
        """Upload a local file to s3://container/name."""
        self._s3.upload_file(str(local_path), container, name)
        logger.debug("S3 upload: %s -> s3://%s/%s", local_path, container, name)
