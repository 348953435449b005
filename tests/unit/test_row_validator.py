"""
Unit tests for the row validator and header validation.
"""

from uuid import uuid4

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.core.models import DatasetSchema, SchemaField
from src.core.models.schema import FieldConstraints
from src.core.schema.classifier import TYPE_TAGS, classify
from src.core.validators import RowValidator, TypeValidator, build_record, validate_headers


@pytest.fixture
def email_age_schema() -> DatasetSchema:
    return DatasetSchema(
        dataset_id=uuid4(),
        name="people",
        fields=[
            SchemaField(name="email", data_type="email", is_required=True, position=0),
            SchemaField(
                name="age",
                data_type="number",
                is_required=True,
                position=1,
                validation=FieldConstraints(min_value=0),
            ),
        ],
    )


@pytest.mark.unit
class TestRowValidator:
    """Tests for RowValidator"""

    def test_bad_email_and_negative_age(self, email_age_schema):
        """A row can carry errors for several fields at once"""
        validator = RowValidator(email_age_schema)

        errors = validator.validate_row({"email": "not-an-email", "age": "-5"}, 0)

        assert [(e.field_name, e.error_type) for e in errors] == [
            ("email", "invalid_data_type"),
            ("age", "min_value"),
        ]

    def test_valid_row(self, email_age_schema):
        validator = RowValidator(email_age_schema)
        assert validator.validate_row({"email": "a@x.com", "age": "30"}, 0) == []

    def test_missing_required_value_skips_other_checks(self, email_age_schema):
        errors = RowValidator(email_age_schema).validate_row({"email": "", "age": "30"}, 7)

        assert len(errors) == 1
        assert errors[0].error_type == "required_field"
        assert errors[0].row_index == 7

    def test_missing_key_reads_as_empty(self, email_age_schema):
        errors = RowValidator(email_age_schema).validate_row({"email": "a@x.com"}, 0)
        assert [e.error_type for e in errors] == ["required_field"]

    def test_type_error_stops_constraint_checks(self):
        schema = DatasetSchema(
            dataset_id=uuid4(),
            name="s",
            fields=[
                SchemaField(
                    name="code",
                    data_type="number",
                    validation=FieldConstraints(min_value=10, pattern=r"^\d+$"),
                )
            ],
        )
        errors = RowValidator(schema).validate_row({"code": "abc"}, 0)

        assert [e.error_type for e in errors] == ["invalid_data_type"]

    def test_every_failing_constraint_is_reported(self):
        schema = DatasetSchema(
            dataset_id=uuid4(),
            name="s",
            fields=[
                SchemaField(
                    name="sku",
                    data_type="string",
                    validation=FieldConstraints(max_length=3, pattern=r"^[A-Z]+$"),
                )
            ],
        )
        errors = RowValidator(schema).validate_row({"sku": "abcd"}, 0)

        assert [e.error_type for e in errors] == ["max_length", "pattern"]

    def test_values_are_trimmed(self, email_age_schema):
        errors = RowValidator(email_age_schema).validate_row({"email": " a@x.com ", "age": " 4 "}, 0)
        assert errors == []

    def test_non_string_values_are_checked_as_text(self, email_age_schema):
        errors = RowValidator(email_age_schema).validate_row({"email": "a@x.com", "age": 42}, 0)
        assert errors == []

    @given(
        st.sampled_from(
            [
                "42",
                "-1.5",
                "true",
                "n",
                "2024-01-15",
                "01/15/2024",
                "2024/12/31",
                "2024-01-15 08:30:00",
                "2024-01-15T08:30:00.250Z",
                "x@example.com",
                "https://example.com/a",
                "6f1c1c1e-59d4-4a52-9d0e-0c5bd7f3b1a2",
            ]
        )
    )
    def test_property_classifier_and_validator_agree(self, value):
        """Property test: any type the classifier assigns, the validator accepts"""
        for tag in classify(value) & set(TYPE_TAGS):
            field = SchemaField(name="f", data_type=tag)
            assert TypeValidator(field).validate(value, 0) == [], (value, tag)


@pytest.mark.unit
class TestHeaderValidation:
    """Tests for validate_headers and build_record"""

    def test_exact_headers(self, contacts_schema):
        result = validate_headers(["name", "email", "age"], contacts_schema)

        assert result.is_valid
        assert result.errors == []
        assert result.field_map == {"name": "name", "email": "email", "age": "age"}

    def test_display_names_match(self, contacts_schema):
        result = validate_headers(["Name", "Email", "Age"], contacts_schema)

        assert result.is_valid
        assert result.field_map == {"Name": "name", "Email": "email", "Age": "age"}

    def test_missing_field_is_fatal(self, contacts_schema):
        result = validate_headers(["name", "email"], contacts_schema)

        assert not result.is_valid
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.error_type == "missing_field"
        assert error.field_name == "age"
        assert error.row_index == -1

    def test_unexpected_header_is_a_warning(self, contacts_schema):
        result = validate_headers(["name", "email", "age", "nickname"], contacts_schema)

        assert result.is_valid
        assert [w.error_type for w in result.warnings] == ["unexpected_field"]
        assert result.warnings[0].severity == "warning"
        assert result.warnings[0].field_name == "nickname"

    def test_duplicate_header_is_unexpected(self, contacts_schema):
        result = validate_headers(["name", "email", "age", "Email"], contacts_schema)

        assert result.is_valid
        assert [w.field_name for w in result.warnings] == ["Email"]

    def test_build_record_keys_by_field_name(self, contacts_schema):
        headers = ["Name", "Email", "Age", "extra"]
        result = validate_headers(headers, contacts_schema)

        record = build_record(headers, ["Ann", "ann@x.com", "33", "?"], result.field_map)

        assert record == {"name": "Ann", "email": "ann@x.com", "age": "33", "extra": "?"}

    def test_build_record_pads_short_rows(self, contacts_schema):
        headers = ["name", "email", "age"]
        result = validate_headers(headers, contacts_schema)

        record = build_record(headers, ["Ann"], result.field_map)

        assert record == {"name": "Ann", "email": "", "age": ""}

    def test_display_name_preferred_over_sanitized_name(self):
        schema = DatasetSchema(
            dataset_id=uuid4(),
            name="people",
            fields=[
                SchemaField(name="name", display_name="Name", position=0),
                SchemaField(name="name_2", display_name="name", position=1),
            ],
        )

        result = validate_headers(["Name", "name"], schema)

        assert result.is_valid
        assert result.warnings == []
        assert result.field_map == {"Name": "name", "name": "name_2"}

    def test_claimed_field_falls_through_to_next_candidate(self):
        schema = DatasetSchema(
            dataset_id=uuid4(),
            name="people",
            fields=[
                SchemaField(name="name", display_name="Name", position=0),
                SchemaField(name="name_2", display_name="name", position=1),
            ],
        )

        result = validate_headers(["name", "Name"], schema)

        assert result.is_valid
        assert result.field_map == {"name": "name_2", "Name": "name"}
