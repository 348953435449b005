"""
LengthValidator - validates the length of string values.
"""

from typing import List

from src.core.models.schema import SchemaField
from src.core.models.validation_result import FieldValidationError

from .base_validator import BaseValidator


class LengthValidator(BaseValidator):
    """Checks min_length / max_length (character counts, inclusive)."""

    def __init__(self, field: SchemaField):
        super().__init__(field)
        self.min_length = field.validation.min_length
        self.max_length = field.validation.max_length

    def validate(self, value: str, row_index: int) -> List[FieldValidationError]:
        errors = []
        length = len(value)
        if self.min_length is not None and length < self.min_length:
            errors.append(
                self.error(
                    row_index,
                    "min_length",
                    f"Value must be at least {self.min_length} characters",
                    value,
                    f"min {self.min_length} characters",
                )
            )
        if self.max_length is not None and length > self.max_length:
            errors.append(
                self.error(
                    row_index,
                    "max_length",
                    f"Value must be at most {self.max_length} characters",
                    value,
                    f"max {self.max_length} characters",
                )
            )
        return errors

    @property
    def rule_type(self) -> str:
        return "length"
