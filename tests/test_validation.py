"""
Tests for input validation helpers.

Run with: python -m pytest tests/test_validation.py
"""

import pytest

from logic.errors import ValidationError
from logic.validation import (
    check_marker_fields,
    format_coordinates,
    parse_coordinates,
    sanitise_int,
    sanitise_label,
    sanitise_title,
    validate_coordinates,
)


@pytest.mark.parametrize("lat,lng", [(90, 180), (-90, -180), ("40.5", "-74.25"), (0, 0)])
def test_valid_coordinates(lat, lng):
    assert validate_coordinates(lat, lng) == (float(lat), float(lng))


@pytest.mark.parametrize("lat,lng", [
    (91, 0), (0, 181), (-90.0001, 0), ("abc", 0), (None, 0),
    (float("nan"), 0), (True, 0),
])
def test_invalid_coordinates(lat, lng):
    with pytest.raises(ValidationError):
        validate_coordinates(lat, lng)


def test_parse_coordinates_accepts_dialog_format():
    assert parse_coordinates("40.7128, -74.0060") == (40.7128, -74.006)
    assert parse_coordinates("  1,2 ") == (1.0, 2.0)


@pytest.mark.parametrize("text", ["", "40.7", "north, west", "40.7; -74", "100, 0"])
def test_parse_coordinates_rejects(text):
    with pytest.raises(ValidationError):
        parse_coordinates(text)


def test_format_coordinates():
    assert format_coordinates(40.7128, -74.006) == "40.712800, -74.006000"


def test_labels_and_titles():
    assert sanitise_label("  Gate ") == "Gate"
    with pytest.raises(ValidationError):
        sanitise_label("")
    with pytest.raises(ValidationError):
        sanitise_label("x" * 201)
    with pytest.raises(ValidationError):
        sanitise_title(None)


def test_sanitise_int():
    assert sanitise_int("7") == 7
    assert sanitise_int("", allow_none=True) is None
    with pytest.raises(ValidationError):
        sanitise_int(None)
    with pytest.raises(ValidationError):
        sanitise_int(True)


def test_check_marker_fields():
    assert check_marker_fields({"label": " A ", "locked": True}) == {"label": "A", "locked": True}
    with pytest.raises(ValidationError):
        check_marker_fields({"workspace_id": "w2"})
    with pytest.raises(ValidationError):
        check_marker_fields({"lat": 10})
    with pytest.raises(ValidationError):
        check_marker_fields({"locked": "yes"})
