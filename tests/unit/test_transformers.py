"""
Unit tests for the decoders and the field transformer
"""

import json
import pytest
from core.exceptions import SchemaValidationError
from migration.transformers.decoders import Opaque, Structured, decode_mapping, decode_value, unwrap_tag
from migration.transformers.field_transformer import FieldTransformer, UNTITLED
from schemas.property import PropertyCreate


class TestDecoders:
    """Test the structured/opaque decode step"""

    def test_json_string_is_structured(self):
        assert decode_value('{"city": "Austin"}') == Structured({"city": "Austin"})

    def test_plain_text_is_opaque(self):
        assert decode_value("123 Main St") == Opaque("123 Main St")

    def test_non_string_is_structured_as_is(self):
        assert decode_value(["a"]) == Structured(["a"])

    def test_decode_mapping_rejects_non_objects(self):
        assert decode_mapping('["a", "b"]') is None
        assert decode_mapping("not json") is None
        assert decode_mapping('{"a": 1}') == {"a": 1}

    def test_unwrap_single_element_array(self):
        assert unwrap_tag('["Furnished"]') == "Furnished"

    def test_unwrap_bare_string_unchanged(self):
        assert unwrap_tag("Furnished") == "Furnished"

    def test_unwrap_blank_and_empty(self):
        assert unwrap_tag("") is None
        assert unwrap_tag("   ") is None
        assert unwrap_tag(None) is None

    def test_unwrap_null_or_blank_element(self):
        assert unwrap_tag("[null]") is None
        assert unwrap_tag('[""]') is None
        assert unwrap_tag('["  "]') is None


class TestFieldTransformer:
    """Test row to canonical property mapping"""

    @pytest.fixture
    def transformer(self):
        return FieldTransformer(default_status="published", default_country="US")

    def test_transform_full_row(self, transformer, sample_row):
        record = transformer.transform(sample_row)

        assert record["external_id"] == "wix-001"
        assert record["title"] == "Sunny Loft near Downtown"
        assert record["street_address"] == "123 Main St"
        assert record["city"] == "Chesterfield"
        assert record["state"] == "MO"
        assert record["zip_code"] == "63017"
        assert record["country"] == "US"
        assert record["latitude"] == pytest.approx(38.663)
        assert record["longitude"] == pytest.approx(-90.577)
        assert record["square_footage"] == 888
        assert record["beds"] == 2
        assert record["baths"] == 1.5
        assert record["unit_type"] == "Apartment"
        assert record["furnish_level"] == "Furnished"
        assert record["other_amenities"] == ["Gym", "Pool"]
        assert record["monthly_rent"] == 1850.0
        assert record["status"] == "published"
        assert record["featured"] is False

    def test_media_fields_not_in_record(self, transformer, sample_row):
        record = transformer.transform(sample_row)

        assert record["primary_image_url"] is None
        assert record["gallery_image_urls"] is None

    def test_transform_is_deterministic(self, transformer, sample_row):
        first = json.dumps(transformer.transform(sample_row), sort_keys=True)
        second = json.dumps(FieldTransformer("published", "US").transform(dict(sample_row)), sort_keys=True)

        assert first == second

    @pytest.mark.parametrize("value,expected", [
        ("888 SF", 888),
        ("1,200 sq ft", 1200),
        ("", None),
        ("n/a", None),
        ("0", None),
        ("150000", None),
        (None, None),
    ])
    def test_parse_square_footage(self, value, expected):
        assert FieldTransformer.parse_square_footage(value) == expected

    def test_postal_code_truncation(self):
        assert FieldTransformer.truncate_postal_code("63011-4246") == "63011"
        assert FieldTransformer.truncate_postal_code("63011") == "63011"

    def test_location_column_takes_precedence(self, transformer, row_factory):
        location = {
            "city": "Ballwin",
            "subdivision": "MO",
            "postalCode": "63011-4246",
            "country": "US",
        }
        row = row_factory(**{
            "Street Address": "9 Elm St",
            "City, State Zipcode, Country": json.dumps(location),
        })

        record = transformer.transform(row)

        assert record["street_address"] == "9 Elm St"
        assert record["city"] == "Ballwin"
        assert record["state"] == "MO"
        assert record["zip_code"] == "63011"

    def test_city_from_formatted_address(self, transformer, row_factory):
        street = {"formatted": "Kirkwood, MO 63122", "subdivisions": [{"code": "MO"}]}
        row = row_factory(**{"Street Address": json.dumps(street)})

        record = transformer.transform(row)

        assert record["city"] == "Kirkwood"
        assert record["street_address"] == "Kirkwood, MO 63122"

    def test_plain_columns_fallback(self, transformer, row_factory):
        row = row_factory(**{
            "Street Address": "9 Elm St",
            "City": "Ballwin",
            "State": "MO",
            "Zip Code": "63011",
            "Country": "",
        })

        record = transformer.transform(row)

        assert (record["city"], record["state"], record["zip_code"]) == ("Ballwin", "MO", "63011")
        assert record["country"] == "US"
        assert record["latitude"] is None

    def test_out_of_range_coordinates_dropped(self, transformer, row_factory):
        street = {"city": "Nowhere", "location": {"latitude": 123.0, "longitude": "abc"}}
        row = row_factory(**{"Street Address": json.dumps(street)})

        record = transformer.transform(row)

        assert record["latitude"] is None
        assert record["longitude"] is None

    def test_numeric_rules(self, transformer, row_factory):
        row = row_factory(Beds="2.5", Baths="-1", **{"Monthly Rent": "0"})

        record = transformer.transform(row)

        assert record["beds"] is None
        assert record["baths"] is None
        assert record["monthly_rent"] is None

    def test_contact_fields(self, transformer, row_factory):
        row = row_factory(**{
            "Landlord Email": " jordan@example.com | ",
            "Listing Link": "www.example.com",
        })

        record = transformer.transform(row)

        assert record["landlord_email"] == "jordan@example.com"
        assert record["listing_link"] is None
        assert FieldTransformer.parse_email("no-at-sign") is None

    @pytest.mark.parametrize("value,expected", [
        ("true", True),
        ("TRUE", True),
        ("1", True),
        (True, True),
        ("false", False),
        ("yes", False),
        ("", False),
    ])
    def test_parse_featured(self, value, expected):
        assert FieldTransformer.parse_featured(value) is expected

    def test_missing_id_and_title(self, transformer, row_factory):
        row = row_factory(Title="   ")
        del row["ID"]

        record = transformer.transform(row)

        assert record["external_id"] == ""
        assert record["title"] == UNTITLED

    def test_extract_media_refs(self, transformer, sample_row):
        assert transformer.extract_primary_image_ref(sample_row).startswith("wix:image://v1/abc123_cover")
        assert transformer.extract_gallery_image_refs(sample_row) == [
            "wix:image://v1/gal001~mv2.png/one.png#originWidth=640",
            "wix:image://v1/gal002~mv2.webp/two.webp#originWidth=640",
        ]

    def test_gallery_refs_mixed_and_invalid(self, transformer, row_factory):
        mixed = row_factory(**{"Media Gallery": json.dumps(["wix:image://v1/a/a.jpg", {"url": "wix:image://v1/b/b.jpg"}, 7])})
        broken = row_factory(**{"Media Gallery": "not json"})

        assert transformer.extract_gallery_image_refs(mixed) == ["wix:image://v1/a/a.jpg", "wix:image://v1/b/b.jpg"]
        assert transformer.extract_gallery_image_refs(broken) == []

    def test_validate_success(self, transformer, sample_row):
        validated = transformer.validate(transformer.transform(sample_row))

        assert isinstance(validated, PropertyCreate)
        assert validated.status == "published"

    def test_validate_reports_field_errors(self, transformer, row_factory):
        row = row_factory(**{"Street Address": "9 Elm St", "City": "", "State": "MO", "Zip Code": "63011"})

        with pytest.raises(SchemaValidationError) as exc_info:
            transformer.validate(transformer.transform(row))

        errors = exc_info.value.errors
        assert len(errors) == 1
        assert errors[0].startswith("city:")

    def test_check_collects_warnings(self, transformer, row_factory):
        row = row_factory(**{"Square Footage": "", "Description": "", "Monthly Rent": ""})

        result = transformer.check(row, 4)

        assert result.valid is True
        assert result.row == 4
        assert result.warnings == ["Missing square footage", "Missing description", "Missing monthly rent"]

    def test_check_invalid_row_without_id(self, transformer, row_factory):
        row = row_factory(ID="", **{"Street Address": ""})

        result = transformer.check(row, 1)

        assert result.valid is False
        assert result.external_id == "unknown"
        assert any(e.startswith("street_address:") for e in result.errors)
