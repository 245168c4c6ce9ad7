#!/usr/bin/env python3
"""
Utility functions for the web application.
"""

import uuid
from typing import Optional, Any
from datetime import datetime

from fastapi import HTTPException

from core.utils import ensure_utc


def safe_str(value: Optional[Any], default: Optional[str] = None) -> Optional[str]:
    """
    Safely convert value to string.

    Args:
        value: Value to convert.
        default: Default value if value is None.

    Returns:
        String value.
    """
    if value is None:
        return default
    return str(value)


def safe_datetime_iso(dt: Optional[datetime]) -> Optional[str]:
    """
    Convert a datetime to an ISO string in UTC.

    Args:
        dt: Datetime object (naive values are treated as UTC).

    Returns:
        ISO format string or None.
    """
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def parse_uuid(value: str, name: str = "id") -> uuid.UUID:
    """Parse a path parameter as a UUID or fail with 400."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {name} format: {value}. Must be a valid UUID."
        )
