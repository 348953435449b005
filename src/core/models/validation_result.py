"""
Validation outcome models shared by the row validator, the business rule
evaluator and the submission orchestrator.
"""

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

HEADER_ROW_INDEX = -1


class FieldValidationError(BaseModel):
    """
    A single validation failure.

    Attributes:
        row_index: Zero-based data row, or -1 for header problems
        field_name: Field (or joined fields for cross-field rules)
        error_type: Machine-readable kind, e.g. "required_field"
        message: Human-readable explanation
        actual_value: Offending value as text
        expected_value: Expected type, bound or format where meaningful
        rule_name: Business rule that raised the error, if any
        severity: "warning" errors do not make a row invalid
    """

    row_index: int = Field(..., ge=HEADER_ROW_INDEX)
    field_name: str
    error_type: str
    message: str
    actual_value: str = ""
    expected_value: str | None = None
    rule_name: str | None = None
    severity: Literal["error", "warning"] = "error"

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "row_index": 3,
                "field_name": "age",
                "error_type": "max_value",
                "message": "Value must be at most 150",
                "actual_value": "200",
                "expected_value": "max 150",
            }
        }
    )


class FieldStats(BaseModel):
    """Per-field counters collected while validating a submission."""

    total_values: int = 0
    unique_values: int = 0
    null_values: int = 0
    invalid_values: int = 0


class HeaderValidationResult(BaseModel):
    """
    Outcome of matching upload headers against the schema.

    ``errors`` holds fatal missing_field entries, ``warnings`` holds
    unexpected_field entries. ``field_map`` maps each matched header to
    the schema field name it stands for.
    """

    is_valid: bool
    errors: List[FieldValidationError] = Field(default_factory=list)
    warnings: List[FieldValidationError] = Field(default_factory=list)
    field_map: Dict[str, str] = Field(default_factory=dict)


class ValidationSummary(BaseModel):
    """
    Aggregate outcome of validating one submission.

    ``is_valid`` is true only when the header matched and no row is invalid.
    """

    is_valid: bool = False
    header_valid: bool = True
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    warning_rows: int = 0
    header_errors: List[FieldValidationError] = Field(default_factory=list)
    schema_errors: List[FieldValidationError] = Field(default_factory=list)
    business_rule_errors: List[FieldValidationError] = Field(default_factory=list)
    field_stats: Dict[str, FieldStats] = Field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return len(self.schema_errors) + len(self.business_rule_errors)

    def errors_by_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for error in self.header_errors + self.schema_errors + self.business_rule_errors:
            counts[error.error_type] = counts.get(error.error_type, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
