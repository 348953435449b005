"""
Base validator interface for field-level checks.

Validators never raise on bad data. ``validate`` returns the list of
FieldValidationError values for the cell (usually zero or one) so that
every failure in a row is collected.
"""

from abc import ABC, abstractmethod
from typing import List

from src.core.models.schema import SchemaField
from src.core.models.validation_result import FieldValidationError


class BaseValidator(ABC):
    """
    Abstract base class for all field validators.

    Each validator implements one check against one schema field and
    receives the trimmed text form of the cell value.
    """

    def __init__(self, field: SchemaField):
        """
        Initialize validator.

        Args:
            field: Schema field the validator checks
        """
        self.field = field

    @property
    def field_name(self) -> str:
        return self.field.name

    @abstractmethod
    def validate(self, value: str, row_index: int) -> List[FieldValidationError]:
        """
        Check a single cell.

        Args:
            value: Trimmed text of the cell
            row_index: Zero-based row position, copied into each error

        Returns:
            Errors found; empty when the value passes
        """

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the validator type identifier."""

    def error(
        self,
        row_index: int,
        error_type: str,
        message: str,
        actual_value: str,
        expected_value: str | None = None,
    ) -> FieldValidationError:
        return FieldValidationError(
            row_index=row_index,
            field_name=self.field_name,
            error_type=error_type,
            message=message,
            actual_value=actual_value,
            expected_value=expected_value,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(field={self.field_name})"


def format_bound(value: float) -> str:
    """Render a numeric bound without a spurious ``.0``."""
    return f"{value:g}"
