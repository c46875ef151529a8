"""
Command line entry point for the listing migration.

Usage:
    listing-migrate --mode validate data/listings.csv
    listing-migrate --mode test --limit 25 data/listings.csv
    listing-migrate --mode full data/listings.csv
    listing-migrate --mode resume data/listings.csv
    listing-migrate --mode images data/listings.csv
    listing-migrate --mode verify
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional
from core.config import settings
from core.database import async_session_maker, engine
from core.exceptions import ETLException
from core.logging import setup_logging
from migration.assets.object_storage import S3ObjectStorage
from migration.assets.transfer_engine import AssetTransferEngine
from migration.checkpoint import CheckpointStore, JSONFileCheckpointBackend
from migration.loaders.property_store import SQLAlchemyPropertyStore
from migration.reporter import MigrationReporter
from migration.runner import MigrationOrchestrator
from models.base import MigrationMode
import logging

logger = logging.getLogger(__name__)

IMAGE_MODES = (MigrationMode.IMAGES, MigrationMode.FULL)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="listing-migrate",
        description="Migrate property listings from the legacy CSV export"
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in MigrationMode],
        default=MigrationMode.VALIDATE.value,
        help="Operating mode (default: validate)"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help=f"Row limit for validate and test modes (test default: {settings.TEST_BATCH_SIZE})"
    )
    parser.add_argument(
        "csv_path",
        nargs="?",
        default=settings.SOURCE_CSV_PATH,
        help="Path to the listings export (default: SOURCE_CSV_PATH)"
    )
    return parser


async def run_migration(mode: MigrationMode, csv_path: Optional[str], limit: Optional[int]) -> None:
    artifacts_dir = Path(settings.ARTIFACTS_DIR)
    checkpoint = CheckpointStore(JSONFileCheckpointBackend(artifacts_dir / settings.CHECKPOINT_FILE))
    reporter = MigrationReporter(artifacts_dir)

    asset_engine = None
    try:
        if mode in IMAGE_MODES:
            asset_engine = AssetTransferEngine(S3ObjectStorage())

        async with async_session_maker() as session:
            orchestrator = MigrationOrchestrator(
                store=SQLAlchemyPropertyStore(session),
                checkpoint=checkpoint,
                asset_engine=asset_engine,
                reporter=reporter
            )
            await orchestrator.run(mode, csv_path=csv_path, limit=limit)
    finally:
        if asset_engine is not None:
            await asset_engine.aclose()
        await engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    artifacts_dir = Path(settings.ARTIFACTS_DIR)
    setup_logging(
        log_file=str(artifacts_dir / settings.LOG_FILE),
        error_log_file=str(artifacts_dir / settings.ERROR_LOG_FILE)
    )

    mode = MigrationMode(args.mode)
    try:
        asyncio.run(run_migration(mode, args.csv_path, args.limit))
    except ETLException as e:
        logger.error(f"Migration failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.error("Migration interrupted; run --mode resume to continue")
        return 1
    except Exception as e:
        logger.exception(f"Migration failed with unexpected error: {e}")
        return 1

    logger.info(f"Migration finished ({mode.value})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
