"""
Pydantic schemas for migration run state, batch outcomes and reports
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, timezone
from models.base import MigrationPhase, FailurePhase
from schemas.property import PropertyCreate


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# Checkpoint
# ============================================================================

class FailedProperty(BaseModel):
    """A record that failed at some stage of the run"""
    external_id: str
    row: int = 0
    error: str
    phase: FailurePhase = FailurePhase.IMPORT

    class Config:
        use_enum_values = True


class RunCheckpoint(BaseModel):
    """
    Persisted, resumable run state.

    last_processed_row is the 1-based number of the last source row whose
    outcome is durable; 0 means no row has been processed yet.
    """
    phase: MigrationPhase = MigrationPhase.PARSING
    last_processed_row: int = Field(0, ge=0)
    total_rows: int = Field(0, ge=0)
    successful_properties: List[str] = Field(default_factory=list)
    failed_properties: List[FailedProperty] = Field(default_factory=list)
    started_at: str = Field(default_factory=utc_now_iso)
    last_updated_at: str = Field(default_factory=utc_now_iso)

    class Config:
        use_enum_values = True


# ============================================================================
# Import
# ============================================================================

class ImportCandidate(BaseModel):
    """A validated property paired with its 1-based source row number"""
    row: int
    record: PropertyCreate


class ImportedRecord(BaseModel):
    id: str
    external_id: str
    row: int = 0


class RejectedRecord(BaseModel):
    external_id: str
    reason: str
    row: int = 0


class BatchResult(BaseModel):
    """Partition of a batch into inserted and rejected records"""
    successful: List[ImportedRecord] = Field(default_factory=list)
    failed: List[RejectedRecord] = Field(default_factory=list)

    def extend(self, other: "BatchResult") -> None:
        self.successful.extend(other.successful)
        self.failed.extend(other.failed)


# ============================================================================
# Validation
# ============================================================================

class ValidationResult(BaseModel):
    """Dry-run verdict for one source row"""
    valid: bool = True
    row: int
    external_id: str
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# ============================================================================
# Images
# ============================================================================

class AssetTransferResult(BaseModel):
    """Outcome of migrating one image"""
    success: bool
    source_ref: str
    public_url: Optional[str] = None
    error: Optional[str] = None


class RecordImageResult(BaseModel):
    """Aggregated image outcome for one property"""
    primary_url: Optional[str] = None
    gallery_urls: List[str] = Field(default_factory=list)
    cover_error: Optional[str] = None
    gallery_errors: List[str] = Field(default_factory=list)
    succeeded: int = 0
    failed: int = 0

    @property
    def errors(self) -> List[str]:
        errors = [self.cover_error] if self.cover_error else []
        return errors + self.gallery_errors

    @property
    def any_succeeded(self) -> bool:
        return self.succeeded > 0


# ============================================================================
# Run statistics
# ============================================================================

class MigrationStats(BaseModel):
    """Counters printed in the end-of-run summary table"""
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    duplicates: int = 0
    imported: int = 0
    failed: int = 0
    images_succeeded: int = 0
    images_failed: int = 0
    records_skipped: int = 0
    duration_seconds: float = 0.0
