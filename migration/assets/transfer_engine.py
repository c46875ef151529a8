"""
Image migration from the legacy media host to object storage.

This module provides per-image transfer with:
- Pseudo-URI parsing (wix:image://v1/<media-id>/<filename>#...)
- Download retry with exponential backoff
- Upload under collision-resistant keys
- A bounded concurrency gate shared by all gallery transfers
"""

import asyncio
import re
import secrets
import time
from typing import List, Optional
import httpx
from core.config import settings
from core.exceptions import AssetTransferError, ImageDownloadError, ImageFormatError
from migration.assets.object_storage import ObjectStorage
from schemas.migration import AssetTransferResult, RecordImageResult
import logging

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}
DEFAULT_EXTENSION = "jpg"
DEFAULT_CONTENT_TYPE = "image/jpeg"

_EXTENSION = re.compile(r"\.(\w+)$")


class AssetTransferEngine:
    """
    Migrate a record's cover photo and gallery into object storage.

    The cover photo goes first and on its own. Gallery images run
    concurrently, but never more than `concurrency` transfers are in flight
    on this engine at once, however many records are being processed.

    Attributes:
        max_retries: Retries after the first download attempt (default: 3)
        retry_delay: Initial backoff delay in seconds, doubled per attempt
        concurrency: Width of the gallery transfer gate (default: 10)
        peak_in_flight: Highest number of simultaneous gated transfers seen
    """

    def __init__(
        self,
        storage: ObjectStorage,
        client: Optional[httpx.AsyncClient] = None,
        concurrency: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        media_base_url: Optional[str] = None,
        media_uri_pattern: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.storage = storage
        self.concurrency = concurrency or settings.IMAGE_CONCURRENCY
        self.max_retries = settings.IMAGE_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = settings.IMAGE_RETRY_DELAY if retry_delay is None else retry_delay
        self.media_base_url = media_base_url or settings.MEDIA_BASE_URL
        self.media_uri_pattern = re.compile(media_uri_pattern or settings.MEDIA_URI_PATTERN)

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout or settings.IMAGE_DOWNLOAD_TIMEOUT,
            follow_redirects=True
        )

        self._gate = asyncio.Semaphore(self.concurrency)
        self._in_flight = 0
        self.peak_in_flight = 0

    async def __aenter__(self) -> "AssetTransferEngine":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # ------------------------------------------------------------------
    # Reference handling
    # ------------------------------------------------------------------

    def extract_media_id(self, media_ref: str) -> Optional[str]:
        match = self.media_uri_pattern.search(media_ref or "")
        if match and match.group(1):
            return match.group(1)
        return None

    def to_public_url(self, media_id: str) -> str:
        return f"{self.media_base_url}{media_id}"

    @staticmethod
    def get_extension(media_id: str) -> str:
        match = _EXTENSION.search(media_id)
        return match.group(1).lower() if match else DEFAULT_EXTENSION

    @staticmethod
    def get_content_type(extension: str) -> str:
        return CONTENT_TYPES.get(extension, DEFAULT_CONTENT_TYPE)

    @staticmethod
    def generate_key(record_id: str, role: str, index: int, extension: str = DEFAULT_EXTENSION) -> str:
        timestamp = int(time.time() * 1000)
        suffix = secrets.token_hex(4)
        return f"{record_id}-{role}-{index}-{timestamp}-{suffix}.{extension}"

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    async def download_with_retry(self, url: str) -> bytes:
        """
        Download url, retrying with exponential backoff.

        Raises:
            ImageDownloadError: After max_retries + 1 failed attempts
        """
        attempts = self.max_retries + 1
        last_exception = None

        for attempt in range(attempts):
            try:
                logger.debug(f"Download attempt {attempt + 1}/{attempts}: {url}")
                response = await self.client.get(url)
                response.raise_for_status()
                return response.content
            except httpx.HTTPError as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(f"Download failed ({e}). Retrying in {delay} seconds")
                    await asyncio.sleep(delay)

        raise ImageDownloadError(
            f"Download failed after {attempts} attempts: {last_exception}",
            context={"url": url},
            original_exception=last_exception,
            attempts=attempts
        )

    async def migrate_image(
        self,
        media_ref: str,
        record_id: str,
        role: str,
        index: int = 0
    ) -> AssetTransferResult:
        """Move one image; failures are returned, not raised"""
        try:
            media_id = self.extract_media_id(media_ref)
            if not media_id:
                raise ImageFormatError(
                    "Invalid media URL format",
                    context={"media_ref": media_ref, "record_id": record_id}
                )

            data = await self.download_with_retry(self.to_public_url(media_id))

            extension = self.get_extension(media_id)
            key = self.generate_key(record_id, role, index, extension)
            path = await self.storage.upload(key, data, self.get_content_type(extension))
            public_url = await self.storage.get_public_url(path)

        except AssetTransferError as e:
            return AssetTransferResult(success=False, source_ref=media_ref, error=e.message)
        except Exception as e:
            logger.error(f"Unexpected error migrating {media_ref} for {record_id}: {e}", exc_info=True)
            return AssetTransferResult(success=False, source_ref=media_ref, error=f"Unexpected error: {e}")

        return AssetTransferResult(success=True, source_ref=media_ref, public_url=public_url)

    async def _migrate_gated(self, media_ref: str, record_id: str, index: int) -> AssetTransferResult:
        async with self._gate:
            self._in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
            try:
                return await self.migrate_image(media_ref, record_id, "gallery", index)
            finally:
                self._in_flight -= 1

    async def migrate_record_images(
        self,
        record_id: str,
        primary_ref: Optional[str],
        gallery_refs: List[str]
    ) -> RecordImageResult:
        """
        Migrate the cover photo, then the gallery under the concurrency gate.

        Never raises for per-image failures; the result carries whatever
        succeeded plus one error string per failed image.
        """
        result = RecordImageResult()

        if primary_ref:
            cover = await self.migrate_image(primary_ref, record_id, "cover", 0)
            if cover.success:
                result.primary_url = cover.public_url
                result.succeeded += 1
            else:
                result.failed += 1
                result.cover_error = f"Cover photo failed: {cover.error}"

        gallery_results = await asyncio.gather(
            *(self._migrate_gated(ref, record_id, index) for index, ref in enumerate(gallery_refs))
        )

        for index, item in enumerate(gallery_results):
            if item.success:
                result.gallery_urls.append(item.public_url)
                result.succeeded += 1
            else:
                result.failed += 1
                result.gallery_errors.append(f"Gallery image {index} failed: {item.error}")

        return result
