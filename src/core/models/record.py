"""
Record values carried through validation, staging and promotion.

CSV uploads produce text, while live edits may send JSON numbers,
booleans or nulls. Every consumer works on the text form returned by
``value_to_text`` so that classification and validation behave the same
regardless of where a value came from.
"""

from datetime import datetime, timezone
from typing import Dict, Union

from pydantic import StrictBool, StrictFloat, StrictInt, StrictStr

RecordValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr, None]
Record = Dict[str, RecordValue]


def value_to_text(value: RecordValue) -> str:
    """
    Render a record value as the text the classifier sees.

    Examples:
        >>> value_to_text(None)
        ''
        >>> value_to_text(True)
        'true'
        >>> value_to_text(5.0)
        '5'
        >>> value_to_text(2.5)
        '2.5'
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def is_empty(value: RecordValue) -> bool:
    """True for None and for text that is blank after trimming."""
    return value_to_text(value).strip() == ""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
