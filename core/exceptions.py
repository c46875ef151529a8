"""
Custom exceptions for the migration pipeline with structured error context.

Every exception carries a context dictionary so that failures can be logged
and written to the run reports with enough detail to locate the offending
row, record or image.

Exception Hierarchy:
    ETLException (base)
    ├── ExtractionError
    │   └── CSVExtractionError
    │       └── RecordParseError
    ├── TransformationError
    │   └── ValidationError
    │       └── SchemaValidationError
    ├── LoadError
    │   ├── DatabaseError
    │   └── BatchInsertError
    ├── CheckpointError
    ├── AssetTransferError
    │   ├── ImageFormatError
    │   ├── ImageDownloadError
    │   └── ImageUploadError
    ├── ConfigurationError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any, List
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all migration errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (file, row, external id, ...)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ETLException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like network timeouts or HTTP 5xx
    responses from the legacy media host.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        attempts: int = 1
    ):
        super().__init__(message, context, original_exception)
        self.attempts = attempts
        self.context["attempts"] = attempts


class NonRetryableError(ETLException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like malformed media references or rows
    that fail schema validation.
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for source data extraction failures."""
    pass


class CSVExtractionError(ExtractionError):
    """
    Exception raised when CSV file extraction fails.

    Context should include:
        - file_path: Path to the CSV file
        - row_index: Row where the error occurred (if applicable)
    """
    pass


class RecordParseError(CSVExtractionError):
    """Terminal parse failure of the listings export (unreadable or malformed)."""
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """Base exception for data transformation failures."""
    pass


class ValidationError(TransformationError):
    """
    Exception raised when data validation fails.

    Context should include:
        - external_id: Identifier of the source row
        - errors: List of "<field>: <message>" strings
    """
    pass


class SchemaValidationError(NonRetryableError, ValidationError):
    """A transformed row does not satisfy the canonical property schema."""

    @property
    def errors(self) -> List[str]:
        return list(self.context.get("errors", []))


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for data loading failures."""
    pass


class DatabaseError(LoadError):
    """
    Exception raised when property store operations fail.

    Context should include:
        - operation: Type of database operation (INSERT, UPDATE, SELECT)
        - table_name: Name of the table
        - external_id: Identifier of the record (if applicable)
    """
    pass


class BatchInsertError(LoadError):
    """
    Exception raised when a multi-row insert fails as a whole.

    Context should include:
        - batch_size: Number of records in the failed batch
    """
    pass


# ============================================================================
# Checkpoint Errors
# ============================================================================

class CheckpointError(ETLException):
    """
    Exception raised when checkpoint management fails.

    Context should include:
        - operation: Operation that failed (load, save, update_progress)
        - checkpoint_path: Location of the persisted state (if file based)
    """
    pass


# ============================================================================
# Asset Transfer Errors
# ============================================================================

class AssetTransferError(ETLException):
    """Base exception for per-image migration failures."""
    pass


class ImageFormatError(NonRetryableError, AssetTransferError):
    """The media reference does not match the expected pseudo-URI format."""
    pass


class ImageDownloadError(RetryableError, AssetTransferError):
    """Downloading from the legacy media host failed after all retries."""
    pass


class ImageUploadError(AssetTransferError):
    """Uploading to object storage or resolving the public URL failed."""
    pass


# ============================================================================
# Run Errors
# ============================================================================

class ConfigurationError(NonRetryableError):
    """Required external configuration or CLI input is missing."""
    pass
