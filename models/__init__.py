"""
SQLAlchemy ORM models for the property store.

Models:
    base: Base declarative class and shared enums (ListingStatus,
          MigrationPhase, FailurePhase, MigrationMode)
    property: Canonical property listings with a unique external identifier

Usage:
    from models.property import Property
    from models.base import ListingStatus

Example:
    prop = Property(
        external_id="a1b2",
        title="Sunny loft",
        street_address="1 Main St",
        city="Chesterfield",
        state="MO",
        zip_code="63017",
        status=ListingStatus.PUBLISHED,
    )
    session.add(prop)
    await session.commit()
"""

__all__ = [
    "Base",
    "ListingStatus",
    "MigrationPhase",
    "FailurePhase",
    "MigrationMode",
    "Property",
]
