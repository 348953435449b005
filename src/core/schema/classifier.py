"""
Value classification for schema inference and validation.

A single text value is tested against a fixed catalogue of type
predicates. Inference counts the tags each value matches; the row
validator calls the same predicates so that anything inference accepts
as a type also validates as that type.
"""

import math
import re
from datetime import datetime
from functools import lru_cache
from typing import Dict, Iterable, List, Set, Tuple

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
URL_PATTERN = re.compile(r"^https?://[^\s]+$")
UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")

BOOLEAN_VALUES = frozenset({"true", "false", "yes", "no", "1", "0", "y", "n"})

# Format tokens recognised during inference, in preference order.
DATE_FORMATS: Tuple[str, ...] = ("YYYY-MM-DD", "MM/DD/YYYY", "MM-DD-YYYY", "YYYY/MM/DD")
DATETIME_FORMATS: Tuple[str, ...] = (
    "YYYY-MM-DD HH:mm:ss",
    "MM/DD/YYYY HH:mm:ss",
    "YYYY-MM-DDTHH:mm:ssZ",
    "YYYY-MM-DDTHH:mm:ss.SSSZ",
)

# Non-string tags in tie-break order.
TYPE_TAGS: Tuple[str, ...] = ("number", "boolean", "date", "datetime", "email", "url", "uuid")

_TOKENS: Dict[str, Tuple[str, str]] = {
    "YYYY": (r"\d{4}", "%Y"),
    "SSS": (r"\d{3}", "%f"),
    "MM": (r"\d{2}", "%m"),
    "DD": (r"\d{2}", "%d"),
    "HH": (r"\d{2}", "%H"),
    "mm": (r"\d{2}", "%M"),
    "ss": (r"\d{2}", "%S"),
}
_TOKEN_SPLITTER = re.compile(r"YYYY|SSS|MM|DD|HH|mm|ss|.", re.DOTALL)


@lru_cache(maxsize=64)
def compile_format(token_format: str) -> Tuple[re.Pattern, str]:
    """
    Translate a format token string into a digit-width regex and a strptime format.

    Raw strptime formats (containing ``%``) are passed through with no
    width check.

    Examples:
        >>> compile_format("MM/DD/YYYY")[1]
        '%m/%d/%Y'
    """
    if "%" in token_format:
        return re.compile(r"^.+$", re.DOTALL), token_format

    regex_parts: List[str] = []
    strptime_parts: List[str] = []
    for piece in _TOKEN_SPLITTER.findall(token_format):
        if piece in _TOKENS:
            regex, directive = _TOKENS[piece]
            regex_parts.append(regex)
            strptime_parts.append(directive)
        else:
            regex_parts.append(re.escape(piece))
            strptime_parts.append("%%" if piece == "%" else piece)
    return re.compile("^" + "".join(regex_parts) + "$"), "".join(strptime_parts)


def matches_format(value: str, token_format: str) -> bool:
    """True when ``value`` has the exact shape of ``token_format`` and is a real calendar value."""
    regex, strptime_format = compile_format(token_format)
    if not regex.match(value):
        return False
    try:
        datetime.strptime(value, strptime_format)
    except ValueError:
        return False
    return True


def match_format(value: str, formats: Iterable[str]) -> str | None:
    """Return the first format in ``formats`` that parses ``value``."""
    for token_format in formats:
        if matches_format(value, token_format):
            return token_format
    return None


def parse_number(value: str) -> float | None:
    """Parse a finite decimal number; NaN, infinities and digit separators are rejected."""
    if "_" in value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def is_number(value: str) -> bool:
    return parse_number(value) is not None


def is_boolean(value: str) -> bool:
    return value.lower() in BOOLEAN_VALUES


def is_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


def is_url(value: str) -> bool:
    return bool(URL_PATTERN.match(value))


def is_uuid(value: str) -> bool:
    return bool(UUID_PATTERN.match(value.lower()))


def is_date(value: str, formats: Iterable[str] = DATE_FORMATS) -> bool:
    return match_format(value, formats) is not None


def is_datetime(value: str, formats: Iterable[str] = DATETIME_FORMATS) -> bool:
    return match_format(value, formats) is not None


def classify(value: str) -> Set[str]:
    """
    Return every type tag ``value`` satisfies.

    ``string`` is always present. The value is trimmed first; an empty
    value only matches ``string``.

    Examples:
        >>> sorted(classify("1"))
        ['boolean', 'number', 'string']
        >>> sorted(classify("2024-01-15"))
        ['date', 'string']
    """
    tags = {"string"}
    value = value.strip()
    if not value:
        return tags

    if is_number(value):
        tags.add("number")
    if is_boolean(value):
        tags.add("boolean")
    if is_email(value):
        tags.add("email")
    if is_url(value):
        tags.add("url")
    if is_uuid(value):
        tags.add("uuid")
    if is_date(value):
        tags.add("date")
    if is_datetime(value):
        tags.add("datetime")
    return tags
