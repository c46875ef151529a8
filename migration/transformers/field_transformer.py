"""
Transform legacy export rows into the canonical property schema
"""

import math
import re
from typing import Dict, Any, Optional, List
from pydantic import ValidationError as PydanticValidationError
from core.config import settings
from core.exceptions import SchemaValidationError
from migration.transformers.decoders import Structured, decode_value, decode_mapping, unwrap_tag
from schemas.migration import ValidationResult
from schemas.property import PropertyCreate
import logging

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Property"
LOCATION_COLUMN = "City, State Zipcode, Country"
MAX_SQUARE_FOOTAGE = 100000

_NON_DIGITS = re.compile(r"\D")
_EMAIL_NOISE = re.compile(r"[\s|]+")


class FieldTransformer:
    """
    Map a raw export row to a canonical property record.

    transform() is a pure function of the row: no I/O and no hidden state,
    so the same row always produces the same record. validate() applies the
    PropertyCreate schema on top.
    """

    def __init__(self, default_status: Optional[str] = None, default_country: Optional[str] = None):
        self.default_status = default_status or settings.DEFAULT_STATUS
        self.default_country = default_country or settings.DEFAULT_COUNTRY

    def transform(self, row: Dict[str, Any]) -> Dict[str, Any]:
        location = self._location(row)
        return {
            "external_id": self.extract_external_id(row),
            "title": self._title(row),
            "street_address": self._street_address(row),
            "city": self._city(row, location),
            "state": self._state(row, location),
            "zip_code": self._zip_code(row, location),
            "country": self._country(row, location),
            "latitude": self._coordinate(row, location, "latitude", "Latitude", 90),
            "longitude": self._coordinate(row, location, "longitude", "Longitude", 180),
            "description": self._text_or_none(row.get("Description")),
            "square_footage": self.parse_square_footage(row.get("Square Footage")),
            "unit_type": unwrap_tag(row.get("Unit Type")),
            "beds": self._parse_count(row.get("Beds")),
            "baths": self._parse_non_negative(row.get("Baths")),
            "laundry": unwrap_tag(row.get("Laundry")),
            "pet_policy": unwrap_tag(row.get("Pet Policy")),
            "parking": self._text_or_none(row.get("Parking")),
            "furnish_level": unwrap_tag(row.get("Furnish Level")),
            "other_amenities": self.parse_amenities(row.get("Other Ammenities") or row.get("Other Amenities")),
            "landlord_name": self._text_or_none(row.get("Landlord")),
            "landlord_email": self.parse_email(row.get("Landlord Email")),
            "landlord_phone": self._text_or_none(row.get("Landlord Phone Number") or row.get("Landlord Phone")),
            "listing_link": self.parse_url(row.get("Listing Link")),
            "monthly_rent": self._parse_positive(row.get("Monthly Rent")),
            "primary_image_url": None,
            "gallery_image_urls": None,
            "status": self.default_status,
            "featured": self.parse_featured(row.get("Featured")),
        }

    def validate(self, record: Dict[str, Any]) -> PropertyCreate:
        """
        Validate a transformed record against the canonical schema.

        Raises:
            SchemaValidationError: With "<field>: <message>" strings in
                context["errors"]
        """
        try:
            return PropertyCreate(**record)
        except PydanticValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise SchemaValidationError(
                "Property failed schema validation",
                context={"external_id": record.get("external_id", ""), "errors": errors},
                original_exception=e
            )

    def check(self, row: Dict[str, Any], row_number: int) -> ValidationResult:
        """Dry-run a row: schema errors plus warnings for missing recommended fields"""
        record = self.transform(row)
        result = ValidationResult(
            row=row_number,
            external_id=record["external_id"] or "unknown",
        )

        try:
            self.validate(record)
        except SchemaValidationError as e:
            result.valid = False
            result.errors = e.errors

        if not record["square_footage"]:
            result.warnings.append("Missing square footage")
        if not record["description"]:
            result.warnings.append("Missing description")
        if not record["monthly_rent"]:
            result.warnings.append("Missing monthly rent")

        return result

    # ------------------------------------------------------------------
    # Media references (kept out of the canonical record)
    # ------------------------------------------------------------------

    def extract_primary_image_ref(self, row: Dict[str, Any]) -> Optional[str]:
        return self._text_or_none(row.get("Cover Photo"))

    def extract_gallery_image_refs(self, row: Dict[str, Any]) -> List[str]:
        gallery = row.get("Media Gallery")
        if not gallery:
            return []

        decoded = decode_value(gallery)
        if not (isinstance(decoded, Structured) and isinstance(decoded.value, list)):
            return []

        refs = []
        for item in decoded.value:
            if isinstance(item, str):
                ref = item
            elif isinstance(item, dict):
                ref = item.get("url") or item.get("src")
            else:
                ref = None
            if ref:
                refs.append(str(ref))
        return refs

    # ------------------------------------------------------------------
    # Identity and address
    # ------------------------------------------------------------------

    @staticmethod
    def extract_external_id(row: Dict[str, Any]) -> str:
        """ID column verbatim; "" when absent"""
        value = row.get("ID")
        return "" if value is None else str(value)

    @staticmethod
    def _title(row: Dict[str, Any]) -> str:
        title = row.get("Title")
        if isinstance(title, str) and title.strip():
            return title.strip()
        return UNTITLED

    @staticmethod
    def _location(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Composite location object, from its own column or the street column"""
        location = decode_mapping(row.get(LOCATION_COLUMN)) if row.get(LOCATION_COLUMN) else None
        if location is not None:
            return location

        street = row.get("Street Address")
        if street:
            parsed = decode_mapping(street)
            if parsed and (parsed.get("city") or parsed.get("subdivisions") or parsed.get("postalCode")):
                return parsed
        return None

    def _street_address(self, row: Dict[str, Any]) -> str:
        address = row.get("Street Address")
        parsed = decode_mapping(address)
        if parsed:
            street = parsed.get("streetAddress")
            if isinstance(street, dict) and street.get("formattedAddressLine"):
                return str(street["formattedAddressLine"])
            if parsed.get("formatted"):
                return str(parsed["formatted"])
        return self._text(address)

    def _city(self, row: Dict[str, Any], location: Optional[Dict[str, Any]]) -> str:
        if location:
            if location.get("city"):
                return str(location["city"])
            if location.get("formatted"):
                return str(location["formatted"]).split(",")[0].strip()
        return self._text(row.get("City"))

    def _state(self, row: Dict[str, Any], location: Optional[Dict[str, Any]]) -> str:
        if location:
            subdivisions = location.get("subdivisions")
            if isinstance(subdivisions, list) and subdivisions:
                first = subdivisions[0]
                if isinstance(first, dict) and first.get("code"):
                    return str(first["code"])
            if location.get("subdivision"):
                return str(location["subdivision"])
            if location.get("state"):
                return str(location["state"])
        return self._text(row.get("State"))

    def _zip_code(self, row: Dict[str, Any], location: Optional[Dict[str, Any]]) -> str:
        if location and location.get("postalCode"):
            return self.truncate_postal_code(str(location["postalCode"]))
        return self._text(row.get("Zip Code"))

    def _country(self, row: Dict[str, Any], location: Optional[Dict[str, Any]]) -> str:
        if location and location.get("country"):
            return str(location["country"])
        return self._text(row.get("Country")) or self.default_country

    def _coordinate(
        self,
        row: Dict[str, Any],
        location: Optional[Dict[str, Any]],
        key: str,
        column: str,
        bound: float
    ) -> Optional[float]:
        value = None
        if location and isinstance(location.get("location"), dict):
            value = self._parse_float(location["location"].get(key))
        if value is None:
            value = self._parse_float(row.get(column))
        if value is None or abs(value) > bound:
            return None
        return value

    # ------------------------------------------------------------------
    # Field parsers
    # ------------------------------------------------------------------

    @staticmethod
    def truncate_postal_code(postal_code: str) -> str:
        """Extended ZIP+4 codes keep the segment before the hyphen"""
        return postal_code.split("-")[0].strip()

    @staticmethod
    def parse_square_footage(value: Any) -> Optional[int]:
        """Strip every non-digit ("888 SF" -> 888); empty or out of range -> None"""
        if value is None:
            return None
        digits = _NON_DIGITS.sub("", str(value))
        if not digits:
            return None
        footage = int(digits)
        if footage <= 0 or footage > MAX_SQUARE_FOOTAGE:
            return None
        return footage

    @staticmethod
    def parse_amenities(value: Any) -> Optional[List[str]]:
        if not value:
            return None
        if isinstance(value, str):
            items = [a.strip() for a in value.split(",")]
        elif isinstance(value, list):
            items = [str(a).strip() for a in value]
        else:
            return None
        items = [a for a in items if a]
        return items or None

    @staticmethod
    def parse_email(value: Any) -> Optional[str]:
        if not value or not isinstance(value, str):
            return None
        cleaned = _EMAIL_NOISE.sub(" ", value).strip()
        return cleaned if "@" in cleaned else None

    @staticmethod
    def parse_url(value: Any) -> Optional[str]:
        if isinstance(value, str):
            link = value.strip()
            if link.startswith(("http://", "https://")):
                return link
        return None

    @staticmethod
    def parse_featured(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() == "true" or value.strip() == "1"
        return False

    @staticmethod
    def _text(value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @classmethod
    def _text_or_none(cls, value: Any) -> Optional[str]:
        return cls._text(value) or None

    @staticmethod
    def _parse_float(value: Any) -> Optional[float]:
        """Safely parse a finite float value"""
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (ValueError, TypeError):
            return None
        return number if math.isfinite(number) else None

    @classmethod
    def _parse_count(cls, value: Any) -> Optional[int]:
        """Whole, non-negative numbers only ("2" and "2.0" -> 2)"""
        number = cls._parse_float(value)
        if number is None or number < 0 or not number.is_integer():
            return None
        return int(number)

    @classmethod
    def _parse_non_negative(cls, value: Any) -> Optional[float]:
        number = cls._parse_float(value)
        return number if number is not None and number >= 0 else None

    @classmethod
    def _parse_positive(cls, value: Any) -> Optional[float]:
        number = cls._parse_float(value)
        return number if number is not None and number > 0 else None
