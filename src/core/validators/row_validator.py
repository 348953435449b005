"""
Row and header validation against a dataset schema.

``RowValidator`` runs, for every schema field in position order, the
required check, the type check and then the constraint checks, and
returns all errors for the row. ``validate_headers`` compares an upload's
header row with the schema before any row is looked at.
"""

from typing import Dict, List, Sequence

from src.core.models.record import Record, value_to_text
from src.core.models.schema import DatasetSchema, SchemaField
from src.core.models.validation_result import (
    HEADER_ROW_INDEX,
    FieldValidationError,
    HeaderValidationResult,
)
from src.core.settings import ValidationSettings

from .base_validator import BaseValidator
from .length_validator import LengthValidator
from .options_validator import OptionsValidator
from .range_validator import RangeValidator
from .regex_validator import RegexValidator
from .required_field_validator import RequiredFieldValidator
from .type_validator import TypeValidator


def build_constraint_validators(field: SchemaField) -> List[BaseValidator]:
    """Constraint validators that apply to ``field``, in evaluation order."""
    constraints = field.validation
    validators: List[BaseValidator] = []

    if field.data_type == "string" and (
        constraints.min_length is not None or constraints.max_length is not None
    ):
        validators.append(LengthValidator(field))
    if field.data_type == "number" and (
        constraints.min_value is not None or constraints.max_value is not None
    ):
        validators.append(RangeValidator(field))
    if constraints.pattern:
        validators.append(RegexValidator(field))
    if constraints.options:
        validators.append(OptionsValidator(field))

    return validators


class FieldChain:
    """The ordered checks for one schema field."""

    def __init__(self, field: SchemaField, settings: ValidationSettings):
        self.field = field
        self.required = RequiredFieldValidator(field)
        self.type_check = TypeValidator(field, settings)
        self.constraints = build_constraint_validators(field)

    def validate(self, value: str, row_index: int) -> List[FieldValidationError]:
        if not value:
            # optional empty values pass every other check
            return self.required.validate(value, row_index)

        type_errors = self.type_check.validate(value, row_index)
        if type_errors:
            return type_errors

        errors: List[FieldValidationError] = []
        for validator in self.constraints:
            errors.extend(validator.validate(value, row_index))
        return errors


class RowValidator:
    """
    Validates records against a schema.

    Values are trimmed before checking. A failed required or type check
    ends the checks for that field; every violated constraint is reported.
    """

    def __init__(self, schema: DatasetSchema, settings: ValidationSettings | None = None):
        """
        Initialize row validator.

        Args:
            schema: Schema to validate against
            settings: Validation settings; defaults apply when omitted
        """
        self.schema = schema
        self.settings = settings or ValidationSettings()
        self.chains = [FieldChain(field, self.settings) for field in schema.fields]

    def validate_row(self, record: Record, row_index: int) -> List[FieldValidationError]:
        """
        Validate one record.

        Args:
            record: Field name to value; missing keys read as empty
            row_index: Zero-based row position

        Returns:
            All errors found, in field position order
        """
        errors: List[FieldValidationError] = []
        for chain in self.chains:
            value = value_to_text(record.get(chain.field.name)).strip()
            errors.extend(chain.validate(value, row_index))
        return errors


def validate_headers(headers: Sequence[str], schema: DatasetSchema) -> HeaderValidationResult:
    """
    Match upload headers against schema fields.

    A header matches a field by exact ``display_name`` first, then by
    ``name``; a field already claimed by an earlier header is skipped in
    favour of the next candidate. Every field with no matching header is
    a fatal ``missing_field`` error; every header left without a field is
    a non-fatal ``unexpected_field`` warning.

    Args:
        headers: Header row of the upload
        schema: Target schema

    Returns:
        HeaderValidationResult with the header to field name map
    """
    by_display: Dict[str, List[str]] = {}
    for f in schema.fields:
        if f.display_name:
            by_display.setdefault(f.display_name.strip(), []).append(f.name)
    names = {f.name for f in schema.fields}

    field_map: Dict[str, str] = {}
    matched = set()
    warnings: List[FieldValidationError] = []

    for raw_header in headers:
        header = raw_header.strip()
        candidates = by_display.get(header, []) + ([header] if header in names else [])
        field_name = next((name for name in candidates if name not in matched), None)
        if field_name is None:
            warnings.append(
                FieldValidationError(
                    row_index=HEADER_ROW_INDEX,
                    field_name=header,
                    error_type="unexpected_field",
                    message=f"Column '{header}' is not defined in the schema",
                    actual_value=header,
                    severity="warning",
                )
            )
            continue
        matched.add(field_name)
        field_map[raw_header] = field_name

    errors = [
        FieldValidationError(
            row_index=HEADER_ROW_INDEX,
            field_name=field.name,
            error_type="missing_field",
            message=f"Column '{field.label}' is missing from the upload",
            actual_value="",
            expected_value=field.name,
        )
        for field in schema.fields
        if field.name not in matched
    ]

    return HeaderValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        field_map=field_map,
    )


def build_record(
    headers: Sequence[str],
    cells: Sequence[str],
    field_map: Dict[str, str],
) -> Record:
    """
    Pair a row's cells with its headers.

    Matched headers are keyed by schema field name; unexpected headers
    keep their trimmed header text. Missing trailing cells read as "".
    """
    record: Record = {}
    for position, header in enumerate(headers):
        key = field_map.get(header, header.strip())
        if key in record:
            continue
        record[key] = cells[position] if position < len(cells) else ""
    return record

