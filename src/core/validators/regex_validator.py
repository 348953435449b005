"""
RegexValidator - validates values against a field's pattern constraint.
"""

import re
from typing import List

from src.core.models.schema import SchemaField
from src.core.models.validation_result import FieldValidationError

from .base_validator import BaseValidator


class RegexValidator(BaseValidator):
    """
    Fails when the pattern is not found anywhere in the value.

    Anchor the pattern with ``^...$`` to require a full match.
    """

    def __init__(self, field: SchemaField):
        super().__init__(field)
        if not field.validation.pattern:
            raise ValueError("RegexValidator requires a pattern constraint")
        self.pattern = re.compile(field.validation.pattern)

    def validate(self, value: str, row_index: int) -> List[FieldValidationError]:
        if self.pattern.search(value):
            return []
        return [
            self.error(
                row_index,
                "pattern",
                "Value does not match required pattern",
                value,
                self.pattern.pattern,
            )
        ]

    @property
    def rule_type(self) -> str:
        return "regex"
