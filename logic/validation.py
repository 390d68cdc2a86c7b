"""
Validation and sanitization utilities.

This module contains functions for validating marker coordinates, labels,
titles and category names, and for sanitizing user input data. All checks
run before any state is mutated.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-12
"""

import re
from typing import Any, Iterable, Optional, Tuple

from .errors import ValidationError

ALLOWED_MARKER_FIELDS = {
    "label": str,
    "lat": float,
    "lng": float,
    "type": str,
    "zone_number": (int, type(None)),
    "device_icon": (str, type(None)),
    "asset_icon": (str, type(None)),
    "category_id": (str, type(None)),
    "category_icon_id": (str, type(None)),
    "locked": bool,
    "parent_id": (str, type(None)),
    "is_search_result": bool,
    "position": (int, type(None)),
    "child_position": (int, type(None)),
}

BACKGROUND_COLORS = {"light", "dark"}
MAX_LABEL_LEN = 200
MAX_TITLE_LEN = 120
MAX_NAME_LEN = 64

_COORDS_RE = re.compile(r"^(-?\d+(?:\.\d+)?),\s*(-?\d+(?:\.\d+)?)$")


def sanitise_label(value: Any) -> str:
    """Sanitize and validate a marker label.

    Args:
        value: Label text.

    Returns:
        Trimmed label.

    Raises:
        ValidationError: If the label is empty or too long.
    """
    value = str(value if value is not None else "").strip()
    if not value:
        raise ValidationError("Please enter a marker name.")
    if len(value) > MAX_LABEL_LEN:
        raise ValidationError("Marker name too long")
    return value


def sanitise_title(value: Any) -> str:
    """Sanitize and validate a map title."""
    value = str(value if value is not None else "").strip()
    if not value:
        raise ValidationError("Map title cannot be empty")
    if len(value) > MAX_TITLE_LEN:
        raise ValidationError("Map title too long")
    return value


def sanitise_name(value: Any, what: str = "Name") -> str:
    """Sanitize and validate a category or icon name."""
    value = str(value if value is not None else "").strip()
    if not value:
        raise ValidationError(f"{what} is required")
    if len(value) > MAX_NAME_LEN:
        raise ValidationError(f"{what} too long")
    return value


def sanitise_int(value: Any, *, allow_none: bool = False) -> Optional[int]:
    """Sanitize and validate integer values.

    Args:
        value: Value to convert to integer.
        allow_none: Whether None (or an empty string) is an acceptable value.

    Returns:
        Integer value or None if allowed.

    Raises:
        ValidationError: If value cannot be converted to integer.
    """
    if allow_none and (value is None or value == ""):
        return None
    if isinstance(value, bool):
        raise ValidationError("Invalid numeric value")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid numeric value")


def sanitise_background(value: Any) -> str:
    """Validate an icon background color class."""
    value = value or "light"
    if value not in BACKGROUND_COLORS:
        raise ValidationError(f"Invalid background color: {value}")
    return value


def validate_coordinates(lat: Any, lng: Any) -> Tuple[float, float]:
    """Check a coordinate pair against WGS84 bounds.

    Args:
        lat: Latitude in degrees.
        lng: Longitude in degrees.

    Returns:
        Tuple of (lat, lng) as floats.

    Raises:
        ValidationError: If either value is not numeric or out of range.
    """
    if isinstance(lat, bool) or isinstance(lng, bool):
        raise ValidationError("Invalid coordinates")
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        raise ValidationError("Invalid coordinates")

    # NaN fails both comparisons
    if not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
        raise ValidationError(
            "Invalid coordinates. Latitude must be between -90 and 90, "
            "longitude between -180 and 180."
        )
    return lat, lng


def parse_coordinates(text: str) -> Tuple[float, float]:
    """Parse the edit dialog's "lat, lng" text into a validated pair.

    Args:
        text: Coordinates such as "40.7128, -74.0060".

    Returns:
        Tuple of (lat, lng).

    Raises:
        ValidationError: If the format or the range is invalid.
    """
    match = _COORDS_RE.match((text or "").strip())
    if not match:
        raise ValidationError(
            "Invalid coordinate format. Please use: lat, lng (e.g., 40.7128, -74.0060)"
        )
    return validate_coordinates(match.group(1), match.group(2))


def format_coordinates(lat: float, lng: float) -> str:
    """Format a coordinate pair the way the edit dialog shows it."""
    return f"{lat:.6f}, {lng:.6f}"


def ensure_unique_name(name: str, existing: Iterable[str], message: str):
    """Reject a name that is already taken.

    Raises:
        ValidationError: If name is in existing.
    """
    if name in set(existing):
        raise ValidationError(message)


def check_marker_fields(fields: dict) -> dict:
    """Validate a partial marker update against the allowed fields.

    Args:
        fields: Mapping of snake_case field names to new values.

    Returns:
        The sanitized mapping.

    Raises:
        ValidationError: On an unknown field or an invalid value.
    """
    clean = {}
    for key, value in fields.items():
        if key not in ALLOWED_MARKER_FIELDS:
            raise ValidationError(f"Illegal field: {key}")
        if key == "label":
            clean[key] = sanitise_label(value)
        elif key in ("zone_number", "position", "child_position"):
            clean[key] = sanitise_int(value, allow_none=True)
        elif key in ("locked", "is_search_result"):
            if not isinstance(value, bool):
                raise ValidationError(f"Invalid {key} value")
            clean[key] = value
        else:
            clean[key] = value

    if "lat" in clean or "lng" in clean:
        if "lat" not in clean or "lng" not in clean:
            raise ValidationError("Both lat and lng are required")
        clean["lat"], clean["lng"] = validate_coordinates(clean["lat"], clean["lng"])
    return clean
