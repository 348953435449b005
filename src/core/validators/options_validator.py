"""
OptionsValidator - restricts a field to a closed set of values.
"""

from typing import List

from src.core.models.schema import SchemaField
from src.core.models.validation_result import FieldValidationError

from .base_validator import BaseValidator


class OptionsValidator(BaseValidator):
    """Exact, case-sensitive membership check against ``validation.options``."""

    def __init__(self, field: SchemaField):
        super().__init__(field)
        self.options = list(field.validation.options or [])
        self._allowed = set(self.options)

    def validate(self, value: str, row_index: int) -> List[FieldValidationError]:
        if value in self._allowed:
            return []
        allowed = ", ".join(self.options)
        return [
            self.error(
                row_index,
                "invalid_option",
                f"Value must be one of: {allowed}",
                value,
                allowed,
            )
        ]

    @property
    def rule_type(self) -> str:
        return "options"
