"""
Core utilities and configuration for the listing migration.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database engine, session and table creation
    exceptions: Custom exception hierarchy for error handling
    logging: Console, run-log and error-log configuration

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import RecordParseError, BatchInsertError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging(log_file="migration_output/migration.log")

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ExtractionError",
    "CSVExtractionError",
    "RecordParseError",
    "TransformationError",
    "ValidationError",
    "SchemaValidationError",
    "LoadError",
    "DatabaseError",
    "BatchInsertError",
    "CheckpointError",
    "AssetTransferError",
    "ImageFormatError",
    "ImageDownloadError",
    "ImageUploadError",
    "ConfigurationError",
    "RetryableError",
    "NonRetryableError",
]
