"""
MinIO Object Storage Service

Chat attachments and knowledge-base files live in one bucket. Uploads retry
with exponential backoff; blocking client calls run in a worker thread so
the event loop never waits on the network.
"""

import asyncio
import logging
from datetime import timedelta
from io import BytesIO
from typing import Optional

from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import MaxRetryError

from licitadesk.core.config import settings

logger = logging.getLogger(__name__)


class MinIOStorageService:
    """Service for managing files in MinIO object storage."""

    def __init__(self, client: Optional[Minio] = None, bucket_name: Optional[str] = None):
        self._client = client
        self.bucket_name = bucket_name or settings.minio.bucket_name
        self._bucket_initialized = False

    def get_client(self) -> Minio:
        if self._client is None:
            self._client = Minio(
                endpoint=settings.minio.endpoint,
                access_key=settings.minio.access_key,
                secret_key=settings.minio.secret_key,
                secure=settings.minio.secure,
                region=settings.minio.region,
            )
            logger.info(f"MinIO client initialized: {settings.minio.endpoint}")
        return self._client

    async def ensure_bucket_exists(self) -> None:
        """
        Ensure the configured bucket exists, create if it doesn't.
        Called on application startup.
        """
        if self._bucket_initialized:
            return

        client = self.get_client()
        try:
            exists = await asyncio.to_thread(client.bucket_exists, self.bucket_name)
            if not exists:
                await asyncio.to_thread(
                    client.make_bucket, self.bucket_name, location=settings.minio.region
                )
                logger.info(f"Created MinIO bucket: {self.bucket_name}")
            else:
                logger.info(f"MinIO bucket already exists: {self.bucket_name}")
            self._bucket_initialized = True

        except S3Error as e:
            logger.error(f"Failed to ensure bucket exists: {e}")
            raise

    async def upload_file(
        self,
        object_key: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Upload file to MinIO with retry logic.

        Returns:
            str: Object key of uploaded file

        Raises:
            S3Error / MaxRetryError: If upload fails after retries
        """
        await self.ensure_bucket_exists()
        client = self.get_client()

        for attempt in range(settings.minio.max_retries):
            try:
                await asyncio.to_thread(
                    client.put_object,
                    bucket_name=self.bucket_name,
                    object_name=object_key,
                    data=BytesIO(content),
                    length=len(content),
                    content_type=content_type,
                )
                logger.info(
                    f"Uploaded file to MinIO: {self.bucket_name}/{object_key} "
                    f"({len(content)} bytes, attempt {attempt + 1})"
                )
                return object_key

            except (S3Error, MaxRetryError) as e:
                if attempt < settings.minio.max_retries - 1:
                    wait_time = settings.minio.retry_backoff_factor**attempt
                    logger.warning(
                        f"Upload failed (attempt {attempt + 1}), retrying in {wait_time}s: {e}"
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error(f"Upload failed after {settings.minio.max_retries} attempts: {e}")
                    raise

        raise RuntimeError("Upload failed unexpectedly")

    async def generate_presigned_url(self, object_key: str, expiry_seconds: int) -> str:
        """Signed download URL valid for ``expiry_seconds``."""
        client = self.get_client()
        try:
            url = await asyncio.to_thread(
                client.presigned_get_object,
                self.bucket_name,
                object_key,
                expires=timedelta(seconds=expiry_seconds),
            )
            logger.debug(
                f"Generated presigned URL for {self.bucket_name}/{object_key} "
                f"(expires in {expiry_seconds}s)"
            )
            return url
        except S3Error as e:
            logger.error(f"Failed to generate presigned URL: {e}")
            raise

    async def health_check(self) -> bool:
        try:
            await self.ensure_bucket_exists()
            logger.info("MinIO health check passed")
            return True
        except (S3Error, MaxRetryError, OSError) as e:
            logger.error(f"MinIO health check failed: {e}")
            return False
