"""
Business rule evaluation over a whole submission.

Rules run after every row has been structurally validated, with the full
row set in memory, because some of them (uniqueness) need to see every
row. Each rule type has a handler; handlers return row-indexed errors and
never raise on bad data.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from src.core.models.business_rule import BusinessRule
from src.core.models.record import Record, value_to_text
from src.core.models.schema import SchemaField
from src.core.models.validation_result import FieldValidationError
from src.core.schema.classifier import parse_number
from src.core.settings import ValidationSettings
from src.core.validators.base_validator import format_bound
from src.core.validators.type_validator import TypeValidator
from src.observability.logger import get_logger

from .expressions import Comparison, ConditionSyntaxError, parse_condition

logger = get_logger(__name__)


class RuleHandler(ABC):
    """Evaluates one business rule across all records."""

    def __init__(self, rule: BusinessRule, settings: ValidationSettings):
        self.rule = rule
        self.config = rule.rule_config
        self.settings = settings

    @abstractmethod
    def evaluate(self, records: Sequence[Record]) -> List[FieldValidationError]:
        """Return errors for every failing row, in row order."""

    def value(self, record: Record, field_name: str | None = None) -> str:
        return value_to_text(record.get(field_name or self.config.field_name)).strip()

    def error(
        self,
        row_index: int,
        field_name: str,
        error_type: str,
        actual_value: str,
        expected_value: str | None = None,
    ) -> FieldValidationError:
        return FieldValidationError(
            row_index=row_index,
            field_name=field_name,
            error_type=error_type,
            message=self.rule.error_message,
            actual_value=actual_value,
            expected_value=expected_value,
            rule_name=self.rule.rule_name,
            severity=self.rule.severity,
        )


class UniqueRuleHandler(RuleHandler):
    """Flags every occurrence of a value after its first; empty values are ignored."""

    def evaluate(self, records: Sequence[Record]) -> List[FieldValidationError]:
        field_name = self.config.field_name
        first_seen: Dict[str, int] = {}
        errors = []
        for row_index, record in enumerate(records):
            value = self.value(record)
            if not value:
                continue
            if value in first_seen:
                errors.append(
                    self.error(
                        row_index,
                        field_name,
                        "duplicate_value",
                        value,
                        f"unique (first seen in row {first_seen[value]})",
                    )
                )
            else:
                first_seen[value] = row_index
        return errors


class RangeCheckRuleHandler(RuleHandler):
    """Flags numeric values outside [min_value, max_value]; non-numeric values are skipped."""

    def evaluate(self, records: Sequence[Record]) -> List[FieldValidationError]:
        field_name = self.config.field_name
        min_value, max_value = self.config.min_value, self.config.max_value
        expected = self._describe_range()

        errors = []
        for row_index, record in enumerate(records):
            value = self.value(record)
            number = parse_number(value) if value else None
            if number is None:
                continue
            if (min_value is not None and number < min_value) or (
                max_value is not None and number > max_value
            ):
                errors.append(self.error(row_index, field_name, "range_violation", value, expected))
        return errors

    def _describe_range(self) -> str:
        low, high = self.config.min_value, self.config.max_value
        if low is not None and high is not None:
            return f"between {format_bound(low)} and {format_bound(high)}"
        if low is not None:
            return f">= {format_bound(low)}"
        if high is not None:
            return f"<= {format_bound(high)}"
        return "any number"


class CrossFieldRuleHandler(RuleHandler):
    """
    Compares two operands per row using a parsed condition.

    Rows where either operand is empty are skipped. A rule listing fewer
    than two ``fields`` passes. An unparseable condition passes unless
    ``cross_field_fail_closed`` is set, in which case every row fails.
    """

    def __init__(self, rule: BusinessRule, settings: ValidationSettings):
        super().__init__(rule, settings)
        self.comparison: Comparison | None = None
        self.parse_error: str | None = None
        try:
            self.comparison = parse_condition(self.config.condition or "")
        except ConditionSyntaxError as e:
            self.parse_error = str(e)
            mode = "failing every row" if settings.cross_field_fail_closed else "passing every row"
            logger.warning(f"Cross-field rule '{rule.rule_name}' has an invalid condition, {mode}: {e}")

        fields = self.config.fields or (self.comparison.field_names if self.comparison else [])
        self.field_label = ", ".join(fields)

    def evaluate(self, records: Sequence[Record]) -> List[FieldValidationError]:
        if self.config.fields and len(self.config.fields) < 2:
            return []

        if self.comparison is None:
            if not self.settings.cross_field_fail_closed:
                return []
            return [
                self.error(row_index, self.field_label, "cross_field_violation", "unparseable condition",
                           self.config.condition)
                for row_index in range(len(records))
            ]

        expected = str(self.comparison)
        errors = []
        for row_index, record in enumerate(records):
            if self.comparison.evaluate(record) is False:
                errors.append(
                    self.error(row_index, self.field_label, "cross_field_violation", "condition failed", expected)
                )
        return errors


class RequiredRuleHandler(RuleHandler):
    """Flags rows where the configured field is empty."""

    def evaluate(self, records: Sequence[Record]) -> List[FieldValidationError]:
        field_name = self.config.field_name
        return [
            self.error(row_index, field_name, "required_violation", "", "non-empty value")
            for row_index, record in enumerate(records)
            if not self.value(record)
        ]


class FieldValidationRuleHandler(RuleHandler):
    """Applies pattern, allowed_values and data_type checks to non-empty values."""

    def __init__(self, rule: BusinessRule, settings: ValidationSettings):
        super().__init__(rule, settings)
        config = self.config
        try:
            self.pattern = re.compile(config.pattern) if config.pattern else None
        except re.error as e:
            raise ValueError(f"Rule '{rule.rule_name}' has an invalid pattern: {e}") from e
        self.allowed = set(config.allowed_values) if config.allowed_values else None
        self.type_check = None
        if config.data_type and config.data_type != "string":
            self.type_check = TypeValidator(
                SchemaField(name=config.field_name, data_type=config.data_type), settings
            )

    def evaluate(self, records: Sequence[Record]) -> List[FieldValidationError]:
        field_name = self.config.field_name
        errors = []
        for row_index, record in enumerate(records):
            value = self.value(record)
            if not value:
                continue
            expected = self._violation(value, row_index)
            if expected is not None:
                errors.append(self.error(row_index, field_name, "field_validation_violation", value, expected))
        return errors

    def _violation(self, value: str, row_index: int) -> str | None:
        if self.pattern is not None and not self.pattern.search(value):
            return self.pattern.pattern
        if self.allowed is not None and value not in self.allowed:
            return ", ".join(self.config.allowed_values)
        if self.type_check is not None and self.type_check.validate(value, row_index):
            return self.config.data_type
        return None


class BusinessRuleEvaluator:
    """
    Evaluates dataset business rules against a full set of records.

    Inactive rules are dropped; the rest run in ascending priority order
    (ties keep their given order).
    """

    HANDLER_REGISTRY = {
        "unique": UniqueRuleHandler,
        "range_check": RangeCheckRuleHandler,
        "cross_field": CrossFieldRuleHandler,
        "required": RequiredRuleHandler,
        "field_validation": FieldValidationRuleHandler,
    }

    def __init__(self, rules: Sequence[BusinessRule], settings: ValidationSettings | None = None):
        """
        Initialize the evaluator.

        Args:
            rules: Business rules of the dataset
            settings: Validation settings; defaults apply when omitted

        Raises:
            ValueError: If a rule has an unknown type or invalid configuration
        """
        self.settings = settings or ValidationSettings()
        self.rules = sorted((r for r in rules if r.is_active), key=lambda r: r.priority)
        self.handlers: List[RuleHandler] = []
        for rule in self.rules:
            handler_class = self.HANDLER_REGISTRY.get(rule.rule_type)
            if handler_class is None:
                raise ValueError(f"Unknown rule type: {rule.rule_type}")
            self.handlers.append(handler_class(rule, self.settings))

    def evaluate(self, records: Sequence[Record]) -> List[FieldValidationError]:
        """
        Run every active rule.

        Args:
            records: All records of the submission, in row order

        Returns:
            Errors from all rules, grouped by rule in priority order
        """
        errors: List[FieldValidationError] = []
        for handler in self.handlers:
            rule_errors = handler.evaluate(records)
            if rule_errors:
                logger.debug(f"Rule '{handler.rule.rule_name}' flagged {len(rule_errors)} rows")
            errors.extend(rule_errors)
        return errors

    def get_rule_summary(self) -> Dict[str, Any]:
        counts: Dict[str, int] = {}
        for rule in self.rules:
            counts[rule.rule_type] = counts.get(rule.rule_type, 0) + 1
        return {
            "total_rules": len(self.rules),
            "rules_by_type": counts,
            "rule_order": [rule.rule_name for rule in self.rules],
        }


def evaluate_rules(
    records: Sequence[Record],
    rules: Sequence[BusinessRule],
    settings: ValidationSettings | None = None,
) -> List[FieldValidationError]:
    return BusinessRuleEvaluator(rules, settings).evaluate(records)
