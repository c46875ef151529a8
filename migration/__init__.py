"""
Listing migration pipeline.

This package moves property listings from the legacy CSV export into the
relational property store and their images into object storage:

Modules:
    checkpoint: Resumable run state with file and in-memory backends
    reporter: Phase banners, progress, summary table and JSON reports
    runner: Orchestrator for the validate/test/images/full/resume/verify modes
    cli: argparse entry point (listing-migrate)

Subpackages:
    extractors: Streaming CSV record parser
    transformers: Tagged-union decoders and the field transformer
    loaders: Property store and the deduplicating batch writer
    assets: Image transfer engine and object storage

Architecture:
    1. Parse - read raw rows from the export
    2. Transform - map each row to a canonical property and validate it
    3. Load - batch insert with duplicate detection and per-row fallback
    4. Images - move cover and gallery images under a concurrency limit

    Every stage records failures and keeps going; the checkpoint is saved
    after each batch so an interrupted run can be resumed.

Usage:
    from migration.runner import MigrationOrchestrator
    from migration.checkpoint import CheckpointStore, JSONFileCheckpointBackend
    from migration.loaders.property_store import SQLAlchemyPropertyStore

Example:
    orchestrator = MigrationOrchestrator(
        store=SQLAlchemyPropertyStore(session),
        checkpoint=CheckpointStore(JSONFileCheckpointBackend(".checkpoint.json")),
    )
    stats = await orchestrator.run("validate", csv_path="listings.csv")
    print(f"{stats.valid_rows} valid, {stats.invalid_rows} invalid")
"""

__all__ = [
    "MigrationOrchestrator",
    "MigrationReporter",
    "CheckpointStore",
    "JSONFileCheckpointBackend",
    "InMemoryCheckpointBackend",
    "CSVRecordParser",
    "FieldTransformer",
    "BatchWriter",
    "PropertyStore",
    "SQLAlchemyPropertyStore",
    "AssetTransferEngine",
    "ObjectStorage",
    "S3ObjectStorage",
]
