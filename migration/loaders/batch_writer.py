"""
Deduplicating batch writer with per-record fallback
"""

import asyncio
import math
from typing import List, Optional, Callable, Awaitable
from core.config import settings
from core.exceptions import BatchInsertError, DatabaseError
from migration.loaders.property_store import PropertyStore
from schemas.migration import BatchResult, ImportCandidate, ImportedRecord, RejectedRecord
import logging

logger = logging.getLogger(__name__)

DUPLICATE_REASON = "duplicate"

BatchCallback = Callable[[int, int, List[ImportCandidate], BatchResult], Awaitable[None]]


class BatchWriter:
    """
    Write validated properties to the store, one external_id at most once.

    Strategy:
    1. Drop candidates whose external_id is already stored ("duplicate")
    2. Insert the rest in one batch
    3. If the batch is rejected as a whole, insert each record on its own
       so a single bad row only fails itself
    4. Large inputs are chunked and written sequentially with a short pause
       between chunks to stay under the store's request rate
    """

    def __init__(
        self,
        store: PropertyStore,
        batch_size: Optional[int] = None,
        pause_seconds: Optional[float] = None
    ):
        self.store = store
        self.batch_size = batch_size or settings.MIGRATION_BATCH_SIZE
        self.pause_seconds = settings.BATCH_PAUSE_SECONDS if pause_seconds is None else pause_seconds

    async def is_duplicate(self, external_id: str) -> bool:
        return await self.store.find_by_external_id(external_id) is not None

    async def write_one(self, candidate: ImportCandidate) -> BatchResult:
        """Insert a single candidate, re-checking its external_id first"""
        result = BatchResult()
        external_id = candidate.record.external_id

        try:
            if await self.is_duplicate(external_id):
                result.failed.append(
                    RejectedRecord(external_id=external_id, reason=DUPLICATE_REASON, row=candidate.row)
                )
                return result

            property_id = await self.store.insert(candidate.record.dict())
        except DatabaseError as e:
            logger.error(f"Insert failed for external_id={external_id!r} (row {candidate.row}): {e.message}")
            result.failed.append(RejectedRecord(external_id=external_id, reason=e.message, row=candidate.row))
            return result

        result.successful.append(ImportedRecord(id=property_id, external_id=external_id, row=candidate.row))
        return result

    async def write_batch(self, candidates: List[ImportCandidate]) -> BatchResult:
        """Deduplicate, batch insert, and fall back to single inserts on batch failure"""
        result = BatchResult()

        pending: List[ImportCandidate] = []
        for candidate in candidates:
            if await self.is_duplicate(candidate.record.external_id):
                result.failed.append(
                    RejectedRecord(
                        external_id=candidate.record.external_id,
                        reason=DUPLICATE_REASON,
                        row=candidate.row
                    )
                )
            else:
                pending.append(candidate)

        if not pending:
            return result

        try:
            inserted = await self.store.insert_batch([c.record.dict() for c in pending])
        except BatchInsertError as e:
            logger.warning(
                f"Batch insert of {len(pending)} properties failed, trying individual inserts: {e.message}"
            )
            for candidate in pending:
                result.extend(await self.write_one(candidate))
            return result

        for candidate, (property_id, external_id) in zip(pending, inserted):
            result.successful.append(ImportedRecord(id=property_id, external_id=external_id, row=candidate.row))

        return result

    async def write_in_batches(
        self,
        candidates: List[ImportCandidate],
        on_batch: Optional[BatchCallback] = None
    ) -> BatchResult:
        """
        Write candidates in fixed-size chunks, sequentially.

        Args:
            candidates: Validated candidates in source order
            on_batch: Awaited after each chunk with
                (batch_number, total_batches, chunk, chunk_result)

        Returns:
            Combined result for all chunks
        """
        total = BatchResult()
        total_batches = math.ceil(len(candidates) / self.batch_size) if candidates else 0

        for start in range(0, len(candidates), self.batch_size):
            chunk = candidates[start:start + self.batch_size]
            batch_number = start // self.batch_size + 1

            logger.info(f"Processing batch {batch_number}/{total_batches} ({len(chunk)} properties)")

            chunk_result = await self.write_batch(chunk)
            total.extend(chunk_result)

            logger.info(
                f"Batch {batch_number}: {len(chunk_result.successful)} imported, "
                f"{len(chunk_result.failed)} failed "
                f"({start + len(chunk)}/{len(candidates)})"
            )

            if on_batch:
                await on_batch(batch_number, total_batches, chunk, chunk_result)

            if start + self.batch_size < len(candidates) and self.pause_seconds > 0:
                await asyncio.sleep(self.pause_seconds)

        return total

    async def update_images(
        self,
        property_id: str,
        primary_image_url: Optional[str],
        gallery_image_urls: Optional[List[str]]
    ) -> bool:
        return await self.store.update_images(property_id, primary_image_url, gallery_image_urls)
