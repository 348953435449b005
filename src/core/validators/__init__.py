"""
Field and row validation.

Provides validators for required fields, data types, lengths, numeric
ranges, regex patterns and option sets, plus the row validator and
header validation built from them.
"""

from .base_validator import BaseValidator
from .length_validator import LengthValidator
from .options_validator import OptionsValidator
from .range_validator import RangeValidator
from .regex_validator import RegexValidator
from .required_field_validator import RequiredFieldValidator
from .row_validator import RowValidator, build_record, validate_headers
from .type_validator import TypeValidator

__all__ = [
    "BaseValidator",
    "RequiredFieldValidator",
    "TypeValidator",
    "LengthValidator",
    "RangeValidator",
    "RegexValidator",
    "OptionsValidator",
    "RowValidator",
    "build_record",
    "validate_headers",
]
