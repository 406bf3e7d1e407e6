"""Shared validation utilities"""

import uuid
from datetime import datetime
from typing import Optional


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def validate_required_text(value: Optional[str], field_label: str) -> str:
    """
    Validate that a text field is present and not blank.

    Args:
        value: Raw input
        field_label: Human readable name used in the error message

    Returns:
        The stripped value

    Raises:
        ValueError: If the value is missing or only whitespace
    """
    if value is None or not str(value).strip():
        raise ValueError(f"{field_label} is required")
    return str(value).strip()


def is_valid_time_range(start: Optional[datetime], end: Optional[datetime]) -> bool:
    """True when both bounds are present and start is strictly before end"""
    return start is not None and end is not None and start < end
