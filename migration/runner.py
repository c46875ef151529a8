"""
Migration orchestrator.

This module drives the listing migration through its operating modes:
- validate: dry run of transformation and schema checks, no writes
- test: bounded real import for operator verification
- images: move cover and gallery images for stored properties
- full: fresh import of every row, then images
- resume: continue an interrupted import after the last durable row
- verify: reconcile store counts with the checkpoint

Row-level, duplicate, batch and per-image failures are recorded and never
abort a run. Missing configuration and unreadable input do.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Tuple
from core.config import settings
from core.exceptions import CheckpointError, ConfigurationError, ETLException, SchemaValidationError
from migration.assets.transfer_engine import AssetTransferEngine
from migration.checkpoint import CheckpointStore
from migration.extractors.csv_parser import CSVRecordParser, RawRecord
from migration.loaders.batch_writer import BatchWriter, DUPLICATE_REASON
from migration.loaders.property_store import PropertyFilter, PropertyStore
from migration.reporter import MigrationReporter
from migration.transformers.field_transformer import FieldTransformer
from models.base import FailurePhase, MigrationMode, MigrationPhase
from schemas.migration import (
    BatchResult,
    FailedProperty,
    ImportCandidate,
    MigrationStats,
    RejectedRecord,
    ValidationResult,
    utc_now_iso,
)
import logging

logger = logging.getLogger(__name__)

NumberedRow = Tuple[int, RawRecord]


class MigrationOrchestrator:
    """
    Run one migration mode end to end and report on it.

    All collaborators are injected so that every mode can be exercised
    against an in-memory checkpoint and a throwaway store.
    """

    def __init__(
        self,
        store: PropertyStore,
        checkpoint: CheckpointStore,
        asset_engine: Optional[AssetTransferEngine] = None,
        parser: Optional[CSVRecordParser] = None,
        transformer: Optional[FieldTransformer] = None,
        writer: Optional[BatchWriter] = None,
        reporter: Optional[MigrationReporter] = None,
        test_batch_size: Optional[int] = None,
        preflight_delay: Optional[float] = None,
        image_pause_every: Optional[int] = None,
        image_pause_seconds: Optional[float] = None,
        image_query_limit: Optional[int] = None
    ):
        self.store = store
        self.checkpoint = checkpoint
        self.asset_engine = asset_engine
        self.parser = parser or CSVRecordParser()
        self.transformer = transformer or FieldTransformer()
        self.writer = writer or BatchWriter(store)
        self.reporter = reporter or MigrationReporter()

        self.test_batch_size = test_batch_size or settings.TEST_BATCH_SIZE
        self.preflight_delay = (
            settings.PREFLIGHT_DELAY_SECONDS if preflight_delay is None else preflight_delay
        )
        self.image_pause_every = image_pause_every or settings.IMAGE_PAUSE_EVERY
        self.image_pause_seconds = (
            settings.IMAGE_PAUSE_SECONDS if image_pause_seconds is None else image_pause_seconds
        )
        self.image_query_limit = image_query_limit or settings.IMAGE_QUERY_LIMIT

    async def run(
        self,
        mode: MigrationMode,
        csv_path: Optional[str] = None,
        limit: Optional[int] = None
    ) -> MigrationStats:
        """
        Execute a single operating mode.

        Args:
            mode: Operating mode to run
            csv_path: Listings export; falls back to SOURCE_CSV_PATH
            limit: Row limit for validate and test modes

        Returns:
            Counters for the end-of-run summary

        Raises:
            ConfigurationError: If the mode needs an input file or image
                engine that was not provided
            RecordParseError: If the input file cannot be read
        """
        mode = MigrationMode(mode)
        csv_path = csv_path or settings.SOURCE_CSV_PATH

        if mode != MigrationMode.VERIFY and not csv_path:
            raise ConfigurationError(
                f"A CSV path is required for {mode.value} mode",
                context={"mode": mode.value}
            )
        if mode in (MigrationMode.IMAGES, MigrationMode.FULL) and self.asset_engine is None:
            raise ConfigurationError(
                f"Object storage must be configured for {mode.value} mode",
                context={"mode": mode.value}
            )

        stats = MigrationStats()
        started = time.monotonic()
        logger.info(f"Starting migration in {mode.value} mode")

        try:
            if mode == MigrationMode.VALIDATE:
                await self.validate(csv_path, stats, limit)
            elif mode == MigrationMode.TEST:
                await self.run_test_import(csv_path, stats, limit)
            elif mode == MigrationMode.IMAGES:
                await self.migrate_images(csv_path, stats)
            elif mode == MigrationMode.FULL:
                await self.run_full(csv_path, stats)
            elif mode == MigrationMode.RESUME:
                await self.resume(csv_path, stats)
            elif mode == MigrationMode.VERIFY:
                await self.verify(stats)
        finally:
            # Partial counts are still reported when the run aborts
            stats.duration_seconds = round(time.monotonic() - started, 3)
            self.reporter.summary(stats)
        return stats

    # ------------------------------------------------------------------
    # validate
    # ------------------------------------------------------------------

    async def validate(
        self,
        csv_path: str,
        stats: MigrationStats,
        limit: Optional[int] = None
    ) -> List[ValidationResult]:
        self.reporter.phase("Validating source data")
        results: List[ValidationResult] = []

        async def check_row(row: RawRecord, index: int) -> None:
            result = self.transformer.check(row, index + 1)
            results.append(result)
            if not result.valid:
                logger.warning(f"Row {result.row} ({result.external_id}) invalid: {'; '.join(result.errors)}")
            elif result.warnings:
                logger.debug(f"Row {result.row} ({result.external_id}) warnings: {', '.join(result.warnings)}")

        await self.parser.stream(csv_path, check_row, limit)

        invalid = [r for r in results if not r.valid]
        with_warnings = [r for r in results if r.warnings]

        stats.total_rows = len(results)
        stats.valid_rows = len(results) - len(invalid)
        stats.invalid_rows = len(invalid)

        self.reporter.write_report(settings.VALIDATION_REPORT_FILE, {
            "generated_at": utc_now_iso(),
            "total_rows": stats.total_rows,
            "valid_rows": stats.valid_rows,
            "invalid_rows": stats.invalid_rows,
            "invalid_details": [
                {"row": r.row, "external_id": r.external_id, "errors": r.errors} for r in invalid
            ],
            "warnings": [
                {"row": r.row, "external_id": r.external_id, "warnings": r.warnings} for r in with_warnings
            ],
        })
        return results

    # ------------------------------------------------------------------
    # test / full / resume
    # ------------------------------------------------------------------

    async def run_test_import(
        self,
        csv_path: str,
        stats: MigrationStats,
        limit: Optional[int] = None
    ) -> BatchResult:
        limit = limit or self.test_batch_size
        self.reporter.phase(f"Test import of the first {limit} rows")
        self.checkpoint.reset()

        rows = self.parser.parse(csv_path, limit)
        numbered = [(index + 1, row) for index, row in enumerate(rows)]
        return await self.import_rows(numbered, len(rows), stats)

    async def run_full(self, csv_path: str, stats: MigrationStats) -> None:
        if self.preflight_delay > 0:
            logger.warning(
                f"Full migration starts in {self.preflight_delay} seconds and resets the checkpoint. "
                f"Interrupt now to cancel."
            )
            await asyncio.sleep(self.preflight_delay)

        self.reporter.phase("Full import")
        self.checkpoint.reset()

        rows = self.parser.parse(csv_path)
        numbered = [(index + 1, row) for index, row in enumerate(rows)]
        await self.import_rows(numbered, len(rows), stats)

        await self.migrate_images(csv_path, stats)

    async def resume(self, csv_path: str, stats: MigrationStats) -> Optional[BatchResult]:
        if not self.checkpoint.exists():
            logger.error("No checkpoint found. Run full or test mode first.")
            return None

        state = self.checkpoint.state
        self.reporter.phase(f"Resuming after row {state.last_processed_row}")

        rows = self.parser.parse(csv_path)
        remaining = [
            (index + 1, row) for index, row in enumerate(rows)
            if not self.checkpoint.should_skip_row(index + 1)
        ]
        stats.records_skipped = len(rows) - len(remaining)
        logger.info(f"Skipping {stats.records_skipped} rows already processed")

        if not remaining:
            stats.total_rows = len(rows)
            logger.info("All rows already processed, nothing to resume")
            return BatchResult()

        return await self.import_rows(remaining, len(rows), stats)

    async def import_rows(
        self,
        rows: List[NumberedRow],
        total_rows: int,
        stats: MigrationStats
    ) -> BatchResult:
        """
        Transform, validate and write rows, checkpointing after each batch.

        Validation failures are queued and persisted together with the batch
        that follows them, so the checkpoint never claims a row as processed
        before its outcome is recorded.
        """
        self.checkpoint.set_total_rows(total_rows)
        self.checkpoint.set_phase(MigrationPhase.IMPORTING)
        stats.total_rows = total_rows

        candidates: List[ImportCandidate] = []
        queued_failures: List[RejectedRecord] = []

        for row_number, row in rows:
            record = self.transformer.transform(row)
            try:
                validated = self.transformer.validate(record)
            except SchemaValidationError as e:
                reason = "; ".join(e.errors)
                logger.warning(f"Row {row_number} ({record['external_id']}) failed validation: {reason}")
                queued_failures.append(
                    RejectedRecord(external_id=record["external_id"], reason=reason, row=row_number)
                )
                continue
            candidates.append(ImportCandidate(row=row_number, record=validated))

        invalid_count = len(queued_failures)
        stats.valid_rows += len(candidates)
        stats.invalid_rows += invalid_count
        logger.info(f"{len(candidates)} rows valid, {invalid_count} invalid")

        def take_failures(up_to_row: Optional[int] = None) -> List[FailedProperty]:
            taken = []
            while queued_failures and (up_to_row is None or queued_failures[0].row <= up_to_row):
                failure = queued_failures.pop(0)
                taken.append(FailedProperty(external_id=failure.external_id, error=failure.reason, row=failure.row))
            return taken

        async def on_batch(
            batch_number: int,
            total_batches: int,
            chunk: List[ImportCandidate],
            result: BatchResult
        ) -> None:
            last_row = chunk[-1].row
            failures = take_failures(last_row)
            failures.extend(
                FailedProperty(external_id=rejected.external_id, error=rejected.reason, row=rejected.row)
                for rejected in result.failed
            )
            self.checkpoint.add_successes(imported.id for imported in result.successful)
            self.checkpoint.add_failures(failures)
            self.checkpoint.update_progress(last_row)
            self.reporter.progress(last_row, total_rows, "rows")

        result = await self.writer.write_in_batches(candidates, on_batch)

        self.checkpoint.add_failures(take_failures())
        if rows:
            self.checkpoint.update_progress(max(rows[-1][0], self.checkpoint.state.last_processed_row))
        self.checkpoint.set_phase(MigrationPhase.IMAGES)

        duplicates = sum(1 for rejected in result.failed if rejected.reason == DUPLICATE_REASON)
        stats.imported += len(result.successful)
        stats.duplicates += duplicates
        stats.failed += len(result.failed) + invalid_count

        logger.info(
            f"Import complete: {len(result.successful)} imported, {duplicates} duplicates, "
            f"{len(result.failed) - duplicates} write failures, {invalid_count} invalid"
        )
        return result

    # ------------------------------------------------------------------
    # images
    # ------------------------------------------------------------------

    async def migrate_images(self, csv_path: str, stats: MigrationStats) -> None:
        """
        Migrate images for every stored property that lacks a cover photo.

        Image references are not kept in the store, so they are recovered
        from the source export by external_id. URLs are written right after
        each property is processed.
        """
        self.reporter.phase("Migrating images")
        self.checkpoint.set_phase(MigrationPhase.IMAGES)

        pending = await self.store.list_missing_primary_image(self.image_query_limit)
        logger.info(f"{len(pending)} properties need images")
        if not pending:
            self.checkpoint.set_phase(MigrationPhase.COMPLETE)
            return

        source_rows: Dict[str, NumberedRow] = {}
        for index, row in enumerate(self.parser.parse(csv_path)):
            external_id = self.transformer.extract_external_id(row)
            if external_id:
                source_rows.setdefault(external_id, (index + 1, row))

        for position, (property_id, external_id) in enumerate(pending, start=1):
            try:
                await self._migrate_property_images(property_id, external_id, source_rows, stats)
            except CheckpointError:
                raise
            except ETLException as e:
                logger.error(f"Image migration failed for {external_id} ({property_id}): {e}")
                stats.failed += 1
                source = source_rows.get(external_id)
                self.checkpoint.add_failure(
                    external_id,
                    f"Image migration failed: {e.message}",
                    source[0] if source else 0,
                    FailurePhase.IMAGES
                )

            if position % 10 == 0 or position == len(pending):
                self.reporter.progress(position, len(pending), "properties")
            if position % self.image_pause_every == 0 and position < len(pending):
                await asyncio.sleep(self.image_pause_seconds)

        self.checkpoint.set_phase(MigrationPhase.COMPLETE)

    async def _migrate_property_images(
        self,
        property_id: str,
        external_id: str,
        source_rows: Dict[str, NumberedRow],
        stats: MigrationStats
    ) -> None:
        source = source_rows.get(external_id) if external_id else None
        if source is None:
            logger.warning(f"No source row for property {property_id} (external_id={external_id!r}), skipping")
            stats.records_skipped += 1
            return

        row_number, row = source
        primary_ref = self.transformer.extract_primary_image_ref(row)
        gallery_refs = self.transformer.extract_gallery_image_refs(row)
        if not primary_ref and not gallery_refs:
            logger.debug(f"No images for {external_id}, skipping")
            stats.records_skipped += 1
            return

        result = await self.asset_engine.migrate_record_images(property_id, primary_ref, gallery_refs)
        stats.images_succeeded += result.succeeded
        stats.images_failed += result.failed

        if result.cover_error:
            logger.warning(f"{external_id}: {result.cover_error}")
            self.checkpoint.add_failure(external_id, result.cover_error, row_number, FailurePhase.COVER_PHOTO)
        for error in result.gallery_errors:
            logger.warning(f"{external_id}: {error}")
            self.checkpoint.add_failure(external_id, error, row_number, FailurePhase.GALLERY)

        if result.any_succeeded:
            await self.writer.update_images(
                property_id,
                result.primary_url,
                result.gallery_urls or None
            )
            logger.info(
                f"{external_id}: {result.succeeded} images migrated, {result.failed} failed"
            )

    # ------------------------------------------------------------------
    # verify
    # ------------------------------------------------------------------

    async def verify(self, stats: MigrationStats) -> Dict[str, Any]:
        """Compare what the store holds with what the checkpoint recorded"""
        self.reporter.phase("Verifying migration")

        counts = {f.value: await self.store.count(f) for f in PropertyFilter}
        state = self.checkpoint.state
        recorded_successes = len(state.successful_properties)
        import_failures = self.checkpoint.failures_in_phase(FailurePhase.IMPORT)
        image_failures = len(state.failed_properties) - import_failures

        discrepancies: List[str] = []
        if not self.checkpoint.exists():
            discrepancies.append("No checkpoint found; nothing to cross-check against")
        else:
            if counts[PropertyFilter.ALL.value] < recorded_successes:
                discrepancies.append(
                    f"Checkpoint records {recorded_successes} imported properties "
                    f"but the store holds {counts[PropertyFilter.ALL.value]}"
                )
            if recorded_successes + import_failures != state.last_processed_row:
                discrepancies.append(
                    f"{state.last_processed_row} rows processed but only "
                    f"{recorded_successes + import_failures} outcomes recorded"
                )
            if state.last_processed_row < state.total_rows:
                discrepancies.append(
                    f"Import stopped at row {state.last_processed_row} of {state.total_rows}"
                )

        missing_external_id = counts[PropertyFilter.ALL.value] - counts[PropertyFilter.WITH_EXTERNAL_ID.value]
        if missing_external_id:
            discrepancies.append(f"{missing_external_id} properties have no external_id")

        missing_primary = counts[PropertyFilter.ALL.value] - counts[PropertyFilter.WITH_PRIMARY_IMAGE.value]
        if missing_primary:
            discrepancies.append(f"{missing_primary} properties have no primary image")

        for name, value in counts.items():
            logger.info(f"{name}: {value}")
        for discrepancy in discrepancies:
            logger.warning(f"Discrepancy: {discrepancy}")

        report = {
            "generated_at": utc_now_iso(),
            "store": counts,
            "checkpoint": {
                "exists": self.checkpoint.exists(),
                "phase": state.phase,
                "last_processed_row": state.last_processed_row,
                "total_rows": state.total_rows,
                "successful_properties": recorded_successes,
                "failed_imports": import_failures,
                "failed_images": image_failures,
            },
            "discrepancies": discrepancies,
        }
        self.reporter.write_report(settings.VERIFICATION_REPORT_FILE, report)

        stats.total_rows = counts[PropertyFilter.ALL.value]
        stats.imported = recorded_successes
        stats.failed = import_failures
        stats.images_failed = image_failures
        return report
