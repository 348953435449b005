"""
RequiredFieldValidator - rejects empty values for required fields.
"""

from typing import List

from src.core.models.validation_result import FieldValidationError

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """
    Fails when a required field's value is missing, null or blank.

    The row validator skips every other check for the field after this
    one fails.
    """

    def validate(self, value: str, row_index: int) -> List[FieldValidationError]:
        if not self.field.is_required or value:
            return []
        return [
            self.error(
                row_index,
                "required_field",
                f"Field '{self.field.label}' is required",
                value,
                "non-empty value",
            )
        ]

    @property
    def rule_type(self) -> str:
        return "required_field"
