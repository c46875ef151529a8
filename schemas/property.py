"""
Pydantic schema for the canonical property record with validation
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List
from models.base import ListingStatus


class PropertyCreate(BaseModel):
    """
    Canonical property record produced by the field transformer.

    Ensures:
    - Title and the four address parts are present and non-empty
    - Numeric fields are in range
    - Contact and link fields are well-formed when present
    """

    # Dedup key (empty string is allowed, never invented)
    external_id: str = Field("", max_length=255)

    # Address
    title: str = Field(..., min_length=1, max_length=500)
    street_address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=200)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field("US", max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    # Description and specs
    description: Optional[str] = None
    square_footage: Optional[int] = Field(None, gt=0)
    unit_type: Optional[str] = Field(None, max_length=200)
    beds: Optional[int] = Field(None, ge=0)
    baths: Optional[float] = Field(None, ge=0)

    # Amenities
    laundry: Optional[str] = Field(None, max_length=200)
    pet_policy: Optional[str] = Field(None, max_length=200)
    parking: Optional[str] = Field(None, max_length=500)
    furnish_level: Optional[str] = Field(None, max_length=200)
    other_amenities: Optional[List[str]] = None

    # Landlord contact
    landlord_name: Optional[str] = Field(None, max_length=200)
    landlord_email: Optional[str] = Field(None, max_length=320)
    landlord_phone: Optional[str] = Field(None, max_length=100)
    listing_link: Optional[str] = Field(None, max_length=2048)

    # Financial
    monthly_rent: Optional[float] = Field(None, gt=0)

    # Media
    primary_image_url: Optional[str] = Field(None, max_length=2048)
    gallery_image_urls: Optional[List[str]] = None

    # Lifecycle
    status: ListingStatus = ListingStatus.DRAFT
    featured: bool = False

    @validator("title", "street_address", "city", "state", "zip_code")
    def strip_required_text(cls, v):
        """Required text must survive stripping"""
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @validator("landlord_email")
    def check_email(cls, v):
        if v is not None and "@" not in v:
            raise ValueError("must be an email address")
        return v

    @validator("listing_link", "primary_image_url")
    def check_url(cls, v):
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return v

    @validator("gallery_image_urls")
    def check_gallery_urls(cls, v):
        if v is not None:
            for url in v:
                if not url.startswith(("http://", "https://")):
                    raise ValueError(f"invalid gallery URL: {url}")
        return v

    class Config:
        use_enum_values = True
