"""
Input validation utilities for caller-supplied identifiers and paging.

These checks guard the service and CLI entry points: ids must be UUIDs,
page parameters must be in range, file paths must not traverse upwards,
and actor identities must be short printable strings.
"""

import re
from uuid import UUID


class InputValidationError(ValueError):
    """Raised when a caller-supplied argument is malformed."""
    pass


def validate_uuid(value: str | UUID, field_name: str = "id") -> UUID:
    """
    Validate and normalize a UUID identifier.

    Args:
        value: UUID instance or its string form
        field_name: Name of the field (for error messages)

    Returns:
        The parsed UUID

    Raises:
        InputValidationError: If the value is not a UUID

    Examples:
        >>> validate_uuid("6f1c1c1e-59d4-4a52-9d0e-0c5bd7f3b1a2")
        UUID('6f1c1c1e-59d4-4a52-9d0e-0c5bd7f3b1a2')
    """
    if isinstance(value, UUID):
        return value
    if not value or not isinstance(value, str):
        raise InputValidationError(f"{field_name} must be a non-empty string")
    try:
        return UUID(value.strip())
    except ValueError as e:
        raise InputValidationError(f"{field_name} is not a valid UUID: {value!r}") from e


def validate_actor(actor: str, field_name: str = "actor") -> str:
    """
    Validate an opaque user identity such as ``submitted_by``.

    Raises:
        InputValidationError: If the identity is empty, too long or
            contains control characters
    """
    if not actor or not isinstance(actor, str):
        raise InputValidationError(f"{field_name} must be a non-empty string")

    actor = actor.strip()
    if not actor:
        raise InputValidationError(f"{field_name} cannot be empty or whitespace-only")
    if len(actor) > 255:
        raise InputValidationError(f"{field_name} exceeds maximum length of 255 characters")
    if re.search(r"[\x00-\x1f]", actor):
        raise InputValidationError(f"{field_name} contains control characters")
    return actor


def validate_page(page: int, field_name: str = "page") -> int:
    """Pages are 1-based."""
    if not isinstance(page, int) or isinstance(page, bool):
        raise InputValidationError(f"{field_name} must be an integer, got {type(page).__name__}")
    if page < 1:
        raise InputValidationError(f"{field_name} must be at least 1, got {page}")
    return page


def validate_page_size(page_size: int, max_page_size: int, field_name: str = "page_size") -> int:
    """
    Validate a page size against the configured maximum.

    Examples:
        >>> validate_page_size(50, 100)
        50
        >>> validate_page_size(500, 100)  # doctest: +SKIP
        InputValidationError: page_size exceeds maximum of 100
    """
    if not isinstance(page_size, int) or isinstance(page_size, bool):
        raise InputValidationError(f"{field_name} must be an integer, got {type(page_size).__name__}")
    if page_size <= 0:
        raise InputValidationError(f"{field_name} must be a positive integer, got {page_size}")
    if page_size > max_page_size:
        raise InputValidationError(f"{field_name} exceeds maximum of {max_page_size}")
    return page_size


def validate_file_path(file_path: str, field_name: str = "file_path") -> str:
    """
    Validate an upload path before it is opened.

    Raises:
        InputValidationError: On empty paths, ``..`` segments or null bytes
    """
    if not file_path or not isinstance(file_path, str):
        raise InputValidationError(f"{field_name} must be a non-empty string")

    file_path = file_path.strip()
    if not file_path:
        raise InputValidationError(f"{field_name} cannot be empty or whitespace-only")
    if ".." in file_path.replace("\\", "/").split("/"):
        raise InputValidationError(f"{field_name} contains path traversal segments (..)")
    if "\x00" in file_path:
        raise InputValidationError(f"{field_name} contains null bytes")
    if len(file_path) > 4096:
        raise InputValidationError(f"{field_name} exceeds maximum length of 4096 characters")
    return file_path
