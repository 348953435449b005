"""
RangeValidator - validates numeric values against min/max bounds.
"""

from typing import List

from src.core.models.schema import SchemaField
from src.core.models.validation_result import FieldValidationError
from src.core.schema.classifier import parse_number

from .base_validator import BaseValidator, format_bound


class RangeValidator(BaseValidator):
    """
    Validates that a number field lies within [min_value, max_value].

    Both bounds are inclusive and optional. Values that are not numbers
    are left to the TypeValidator.
    """

    def __init__(self, field: SchemaField):
        super().__init__(field)
        self.min_value = field.validation.min_value
        self.max_value = field.validation.max_value

    def validate(self, value: str, row_index: int) -> List[FieldValidationError]:
        number = parse_number(value)
        if number is None:
            return []

        errors = []
        if self.min_value is not None and number < self.min_value:
            bound = format_bound(self.min_value)
            errors.append(
                self.error(row_index, "min_value", f"Value must be at least {bound}", value, f"min {bound}")
            )
        if self.max_value is not None and number > self.max_value:
            bound = format_bound(self.max_value)
            errors.append(
                self.error(row_index, "max_value", f"Value must be at most {bound}", value, f"max {bound}")
            )
        return errors

    @property
    def rule_type(self) -> str:
        return "range"
