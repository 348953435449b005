"""
Comparison expressions for cross-field business rules.

A condition such as ``end_date > start_date`` is parsed once into a
``Comparison`` of two operands and then evaluated against each record.
Operands are field references or literals (numbers or quoted text).
Values compare as numbers when both sides are numeric, as dates when
both sides parse with the date catalogue, and as text otherwise.
"""

import operator
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Tuple, Union

from src.core.models.record import Record, value_to_text
from src.core.schema.classifier import DATE_FORMATS, DATETIME_FORMATS, compile_format, match_format, parse_number

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}

_OPERAND = r"""-?\d+(?:\.\d+)?(?![A-Za-z0-9_])|[A-Za-z0-9_]+|'[^']*'|"[^"]*\""""
_CONDITION = re.compile(rf"^\s*({_OPERAND})\s*(>=|<=|==|!=|>|<)\s*({_OPERAND})\s*$")
_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?$")


class ConditionSyntaxError(ValueError):
    """Raised when a cross-field condition cannot be parsed."""


@dataclass(frozen=True)
class FieldRef:
    name: str

    def resolve(self, record: Record) -> str:
        return value_to_text(record.get(self.name)).strip()


@dataclass(frozen=True)
class Literal:
    value: str

    def resolve(self, record: Record) -> str:
        return self.value


Operand = Union[FieldRef, Literal]


def _parse_temporal(value: str) -> datetime | None:
    token_format = match_format(value, DATE_FORMATS + DATETIME_FORMATS)
    if token_format is None:
        return None
    return datetime.strptime(value, compile_format(token_format)[1])


def coerce_pair(left: str, right: str) -> Tuple[Any, Any]:
    """Pick a common representation for two operand values."""
    left_number, right_number = parse_number(left), parse_number(right)
    if left_number is not None and right_number is not None:
        return left_number, right_number

    left_time, right_time = _parse_temporal(left), _parse_temporal(right)
    if left_time is not None and right_time is not None:
        return left_time, right_time

    return left, right


@dataclass(frozen=True)
class Comparison:
    left: Operand
    op: str
    right: Operand

    @property
    def field_names(self) -> List[str]:
        return [o.name for o in (self.left, self.right) if isinstance(o, FieldRef)]

    def evaluate(self, record: Record) -> bool | None:
        """
        Evaluate against one record.

        Returns:
            True or False, or None when either operand is empty and the
            comparison does not apply
        """
        left = self.left.resolve(record)
        right = self.right.resolve(record)
        if not left or not right:
            return None
        left_value, right_value = coerce_pair(left, right)
        return OPERATORS[self.op](left_value, right_value)

    def __str__(self) -> str:
        return f"{_render(self.left)} {self.op} {_render(self.right)}"


def _render(operand: Operand) -> str:
    if isinstance(operand, FieldRef):
        return operand.name
    if parse_number(operand.value) is not None:
        return operand.value
    return repr(operand.value)


def _parse_operand(token: str) -> Operand:
    if token[0] in "'\"":
        return Literal(token[1:-1])
    if _NUMBER.match(token):
        return Literal(token)
    return FieldRef(token)


def parse_condition(condition: str) -> Comparison:
    """
    Parse ``<operand> <op> <operand>``.

    Examples:
        >>> parse_condition("end_date > start_date")
        Comparison(left=FieldRef(name='end_date'), op='>', right=FieldRef(name='start_date'))

    Raises:
        ConditionSyntaxError: If the condition does not fit the grammar or
            references no field at all
    """
    match = _CONDITION.match(condition or "")
    if not match:
        raise ConditionSyntaxError(f"Cannot parse condition: {condition!r}")

    left, op, right = match.groups()
    comparison = Comparison(_parse_operand(left), op, _parse_operand(right))
    if not comparison.field_names:
        raise ConditionSyntaxError(f"Condition references no fields: {condition!r}")
    return comparison
