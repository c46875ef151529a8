"""
Object storage for migrated images (S3 API via boto3)
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from core.config import settings
from core.exceptions import ConfigurationError, ImageUploadError
import logging

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Upload-by-key storage that can hand out public URLs"""

    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store data under key and return the stored path"""
        pass

    @abstractmethod
    async def get_public_url(self, path: str) -> str:
        pass


class S3ObjectStorage(ObjectStorage):
    """
    ObjectStorage on any S3-compatible endpoint.

    boto3 is blocking, so every call runs in a worker thread to keep the
    event loop free for the other in-flight transfers.
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
        client=None
    ):
        self.bucket = bucket or settings.STORAGE_BUCKET
        if not self.bucket:
            raise ConfigurationError("STORAGE_BUCKET must be set for image migration")

        self.region = region or settings.STORAGE_REGION
        self.endpoint_url = endpoint_url or settings.STORAGE_ENDPOINT_URL
        self.public_base_url = public_base_url or settings.STORAGE_PUBLIC_BASE_URL
        self.client = client or boto3.client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url
        )

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl="max-age=3600",
            )
        except (ClientError, BotoCoreError) as e:
            raise ImageUploadError(
                f"Upload failed for {key}",
                context={"bucket": self.bucket, "key": key},
                original_exception=e
            )
        logger.debug(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{key}")
        return key

    async def get_public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{path}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{path}"
