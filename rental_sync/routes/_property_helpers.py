"""
Internal helper functions shared by the property-scoped route handlers.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import HTTPException, status

from rental_sync.config import Settings


def normalize_property_or_404(settings: Settings, property_code: str) -> str:
    """
    Upper-case a property code from the URL and check it is managed here.

    Args:
        settings: Application settings holding the fixed property set
        property_code: Code as it appears in the path

    Returns:
        str: The normalized property code

    Raises:
        HTTPException: 404 if the property is unknown
    """
    code = property_code.strip().upper()
    if not settings.is_known_property(code):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Property {code} not found",
        )
    return code


def validate_window_or_422(start: Optional[date], end: Optional[date]) -> None:
    """
    Validate an optional [start, end) query window.

    Raises:
        HTTPException: 422 if both bounds are given and start is not before end
    """
    if start is not None and end is not None and start >= end:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="start must be before end",
        )
