from sqlalchemy import Column, String, Integer, Float, Boolean, Text, DateTime, Enum, JSON, Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
import uuid
from models.base import Base, ListingStatus

# JSONB on PostgreSQL, plain JSON elsewhere; Python None stays SQL NULL
JSONList = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


class Property(Base):
    """
    Canonical property listing migrated from the legacy export.

    Design:
    - external_id carries the legacy platform's record ID and is the sole
      deduplication key across runs (unique index)
    - primary_image_url / gallery_image_urls stay NULL until the image phase
    - id is generated client-side so batch inserts know their IDs up front
    """
    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=_new_id)
    external_id = Column(String(255), nullable=False)

    # Address
    title = Column(String(500), nullable=False)
    street_address = Column(String(500), nullable=False)
    city = Column(String(200), nullable=False, index=True)
    state = Column(String(100), nullable=False, index=True)
    zip_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False, default="US")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Description and specs
    description = Column(Text, nullable=True)
    square_footage = Column(Integer, nullable=True)
    unit_type = Column(String(200), nullable=True)
    beds = Column(Integer, nullable=True)
    baths = Column(Float, nullable=True)

    # Amenities
    laundry = Column(String(200), nullable=True)
    pet_policy = Column(String(200), nullable=True)
    parking = Column(String(500), nullable=True)
    furnish_level = Column(String(200), nullable=True)
    other_amenities = Column(JSONList, nullable=True)

    # Landlord contact
    landlord_name = Column(String(200), nullable=True)
    landlord_email = Column(String(320), nullable=True)
    landlord_phone = Column(String(100), nullable=True)
    listing_link = Column(String(2048), nullable=True)

    # Financial
    monthly_rent = Column(Float, nullable=True)

    # Media (populated by the image phase)
    primary_image_url = Column(String(2048), nullable=True)
    gallery_image_urls = Column(JSONList, nullable=True)

    # Lifecycle
    status = Column(
        Enum(ListingStatus, values_callable=lambda e: [m.value for m in e], name="listing_status"),
        default=ListingStatus.DRAFT,
        nullable=False,
        index=True
    )
    featured = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_property_external_id", "external_id", unique=True),
        Index("idx_property_missing_image", "primary_image_url", "created_at"),
    )
