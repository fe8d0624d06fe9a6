"""
Validation helpers shared by routers and services.
One enum-membership check serves every closed value set (property type, status, sort keys).
"""

import json
import uuid
from enum import Enum
from typing import Any, Iterable, List, Optional, Type, TypeVar

from app.utils.exceptions import ValidationError

EnumType = TypeVar("EnumType", bound=Enum)


def parse_enum(enum_cls: Type[EnumType], value: Any, field_name: str) -> Optional[EnumType]:
    """
    Convert a raw value into a member of ``enum_cls``.

    Args:
        enum_cls: Enum class whose values form the allowed set
        value: Raw value (member, value string, or None)
        field_name: Name of the field for error messages

    Returns:
        Enum member, or None when value is None or an empty string

    Raises:
        ValidationError: If the value is not one of the allowed values
    """
    if value is None or value == "":
        return None
    if isinstance(value, enum_cls):
        return value

    normalized = str(value).strip().lower()
    for member in enum_cls:
        if str(member.value).lower() == normalized:
            return member

    allowed = ", ".join(str(member.value) for member in enum_cls)
    raise ValidationError(
        f"Invalid {field_name}: '{value}'. Must be one of: {allowed}",
        field_errors=[{"field": field_name, "message": f"Must be one of: {allowed}"}]
    )


def parse_uuid(value: Any, field_name: str = "id") -> uuid.UUID:
    """
    Validate a UUID value.

    Raises:
        ValidationError: If the value is missing or not a UUID
    """
    if isinstance(value, uuid.UUID):
        return value
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field_name} is required")
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid UUID format for {field_name}")


def clean_string_list(values: Optional[Iterable[Any]]) -> List[str]:
    """Trim entries and drop blanks, keeping order."""
    if not values:
        return []
    return [str(value).strip() for value in values if value is not None and str(value).strip()]


def parse_string_list_field(raw: Optional[str], field_name: str) -> Optional[List[str]]:
    """
    Read a list sent through a multipart form field.

    Accepts a JSON array string or a single plain value. Returns None when the
    field was not sent at all.

    Raises:
        ValidationError: If the JSON is not an array of strings
    """
    if raw is None:
        return None
    raw = raw.strip()
    if raw == "":
        return []
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationError(f"Invalid format for {field_name}")
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValidationError(f"{field_name} must be an array of strings")
        return parsed
    return [raw]


def validate_pagination(page: Optional[int], limit: Optional[int], default_limit: int, max_limit: int) -> tuple:
    """
    Normalize page/limit, falling back to defaults for missing or non-positive values.

    Returns:
        Tuple of (page, limit)
    """
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else default_limit
    return page, min(limit, max_limit)
