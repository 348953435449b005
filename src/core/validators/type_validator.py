"""
TypeValidator - checks that a value parses as its field's declared type.
"""

from typing import Callable, Dict, List

from src.core.models.schema import SchemaField
from src.core.models.validation_result import FieldValidationError
from src.core.schema import classifier
from src.core.settings import ValidationSettings

from .base_validator import BaseValidator


class TypeValidator(BaseValidator):
    """
    Validates a value against the field's data type.

    Uses the classifier predicates so that values inference tagged with a
    type also validate as that type. Date and datetime fields accept the
    configured format lists, or only the field's stored format when
    ``prefer_field_format`` is enabled and a format is set.
    """

    CHECKS: Dict[str, Callable[[str], bool]] = {
        "number": classifier.is_number,
        "boolean": classifier.is_boolean,
        "email": classifier.is_email,
        "url": classifier.is_url,
        "uuid": classifier.is_uuid,
    }

    EXPECTED: Dict[str, str] = {
        "number": "number",
        "boolean": "true/false, yes/no, y/n or 1/0",
        "email": "valid email address",
        "url": "http(s) URL",
        "uuid": "UUID",
    }

    def __init__(self, field: SchemaField, settings: ValidationSettings | None = None):
        super().__init__(field)
        settings = settings or ValidationSettings()
        stored_format = field.validation.format

        if field.data_type == "date":
            self.formats = list(settings.date_formats)
        elif field.data_type == "datetime":
            self.formats = list(settings.datetime_formats)
        else:
            self.formats = []

        if self.formats and stored_format:
            if settings.prefer_field_format:
                self.formats = [stored_format]
            elif stored_format not in self.formats:
                self.formats.append(stored_format)

    def validate(self, value: str, row_index: int) -> List[FieldValidationError]:
        data_type = self.field.data_type
        if data_type == "string" or not value:
            return []

        if self.formats:
            if classifier.match_format(value, self.formats):
                return []
            expected = " or ".join(self.formats)
        else:
            if self.CHECKS[data_type](value):
                return []
            expected = self.EXPECTED[data_type]

        return [
            self.error(
                row_index,
                "invalid_data_type",
                f"Value '{value}' is not a valid {data_type} (expected {expected})",
                value,
                expected,
            )
        ]

    @property
    def rule_type(self) -> str:
        return "type_check"
