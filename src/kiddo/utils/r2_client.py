"""Cloudflare R2 storage client for re-hosting generated images."""

import asyncio
import logging
import time
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from constants import R2_ACCESS_KEY_ID, R2_ACCOUNT_ID, R2_BUCKET_NAME, R2_SECRET_ACCESS_KEY
from kiddo.errors import ConfigError, StorageError

logger = logging.getLogger(__name__)


class R2Client:
    """Client for Cloudflare R2 storage.

    boto3 is blocking, so every call runs in a worker thread and the event
    loop keeps polling other items meanwhile. Uploads are attempted once.
    """

    CONTENT_TYPES = {
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".webp": "image/webp",
        ".mp3": "audio/mpeg",
    }

    def __init__(
        self,
        account_id: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        bucket_name: str | None = None,
        public_base_url: str | None = None,
        s3_client=None,
    ):
        """Initialize R2 client.

        Args:
            account_id: Cloudflare account ID (or R2_ACCOUNT_ID env var)
            access_key_id: R2 access key (or R2_ACCESS_KEY_ID env var)
            secret_access_key: R2 secret key (or R2_SECRET_ACCESS_KEY env var)
            bucket_name: R2 bucket name (or R2_BUCKET_NAME env var)
            public_base_url: Base of public object URLs (defaults to the r2.dev domain)
            s3_client: Pre-built boto3 S3 client

        Raises:
            ConfigError: If credentials are incomplete and no client was given
        """
        self.account_id = account_id or R2_ACCOUNT_ID
        self.access_key_id = access_key_id or R2_ACCESS_KEY_ID
        self.secret_access_key = secret_access_key or R2_SECRET_ACCESS_KEY
        self.bucket_name = bucket_name or R2_BUCKET_NAME
        self.public_base_url = (
            public_base_url or f"https://pub-{self.account_id}.r2.dev"
        ).rstrip("/")

        if s3_client is None:
            if not all([self.account_id, self.access_key_id, self.secret_access_key, self.bucket_name]):
                raise ConfigError(
                    "R2 credentials required: R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, "
                    "R2_SECRET_ACCESS_KEY, R2_BUCKET_NAME env vars or constructor params"
                )
            s3_client = boto3.client(
                "s3",
                endpoint_url=f"https://{self.account_id}.r2.cloudflarestorage.com",
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                region_name="auto",  # R2 uses 'auto' region
            )
        self.s3_client = s3_client

        # Statistics
        self.total_uploads = 0
        self.failed_uploads = 0
        self.total_bytes_uploaded = 0

    @classmethod
    def from_env(cls) -> Optional["R2Client"]:
        """Build a client when R2 is configured, otherwise None."""
        try:
            return cls()
        except ConfigError:
            logger.info("R2 not configured, generated images will not be re-hosted")
            return None

    def public_url(self, r2_path: str) -> str:
        return f"{self.public_base_url}/{r2_path}"

    async def upload_bytes(
        self,
        data: bytes,
        r2_path: str,
        content_type: str | None = None,
    ) -> str:
        """Upload a payload and return its public URL.

        Args:
            data: Object bytes
            r2_path: Destination key (e.g., "images/<content>/<uuid>.png")
            content_type: MIME type (detected from the key suffix if not provided)

        Returns:
            Public URL of the uploaded object

        Raises:
            StorageError: If the upload fails
        """
        if content_type is None:
            suffix = "." + r2_path.rsplit(".", 1)[-1].lower() if "." in r2_path else ""
            content_type = self.CONTENT_TYPES.get(suffix, "application/octet-stream")

        start_time = time.time()
        logger.info(f"Uploading to R2: {len(data)} bytes -> {r2_path}")
        try:
            await asyncio.to_thread(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=r2_path,
                Body=data,
                ContentType=content_type,
                CacheControl="max-age=3600",
            )
        except (ClientError, BotoCoreError) as e:
            self.failed_uploads += 1
            logger.error(f"✗ Upload failed for {r2_path}: {e}")
            raise StorageError(f"Failed to upload {r2_path}: {e}") from e

        upload_time_ms = int((time.time() - start_time) * 1000)
        self.total_uploads += 1
        self.total_bytes_uploaded += len(data)
        logger.info(f"✓ Uploaded successfully: {len(data)} bytes, {upload_time_ms}ms")
        return self.public_url(r2_path)

    def get_statistics(self) -> dict:
        return {
            "total_uploads": self.total_uploads,
            "failed_uploads": self.failed_uploads,
            "total_bytes_uploaded": self.total_bytes_uploaded,
        }
