"""
Pydantic schemas for data validation and serialization.

Schemas:
    property: Canonical property record (PropertyCreate) with validators
    migration: Checkpoint state, batch outcomes, validation results,
               image transfer results and run statistics

Usage:
    from schemas.property import PropertyCreate
    from schemas.migration import RunCheckpoint, BatchResult

Example:
    prop = PropertyCreate(
        external_id="a1b2",
        title="Sunny loft",
        street_address="1 Main St",
        city="Chesterfield",
        state="MO",
        zip_code="63017",
    )
    assert prop.status == "draft"

Validation:
    Rows that fail PropertyCreate validation are skipped by the importer
    and recorded in the run's failure list; they never abort a run.
"""

__all__ = [
    "PropertyCreate",
    "RunCheckpoint",
    "FailedProperty",
    "ImportCandidate",
    "ImportedRecord",
    "RejectedRecord",
    "BatchResult",
    "ValidationResult",
    "AssetTransferResult",
    "RecordImageResult",
    "MigrationStats",
]
