"""
Viewport fitting.

Web Mercator helpers matching the map renderer (512 px world at zoom 0),
bounding-box fitting with padding and a zoom ceiling, and the camera a map
should show for a given marker set.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-15
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from .errors import ValidationError
from .models import ViewState

WORLD_SIZE = 512
MAX_LATITUDE = 85.051129
MIN_ZOOM = 0.0
OFF_CENTER_DEGREES = 0.001
OFF_CENTER_ZOOM = 1


@dataclass
class Bounds:
    """A lat/lng rectangle."""

    south: float
    west: float
    north: float
    east: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east


def project(lat: float, lng: float, zoom: float = 0) -> Tuple[float, float]:
    """Project WGS84 degrees to Web Mercator pixels at zoom."""
    scale = WORLD_SIZE * (2 ** zoom)
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    siny = math.sin(math.radians(lat))
    x = (lng + 180.0) / 360.0 * scale
    y = (0.5 - math.log((1 + siny) / (1 - siny)) / (4 * math.pi)) * scale
    return x, y


def unproject(x: float, y: float, zoom: float = 0) -> Tuple[float, float]:
    """Inverse of :func:`project`; returns (lat, lng)."""
    scale = WORLD_SIZE * (2 ** zoom)
    lng = x / scale * 360.0 - 180.0
    n = math.pi - 2 * math.pi * y / scale
    lat = math.degrees(math.atan(math.sinh(n)))
    return lat, lng


def bounds_of(points: Iterable[Any]) -> Optional[Bounds]:
    """Min/max of lat and lng over objects with ``lat``/``lng`` attributes."""
    points = list(points)
    if not points:
        return None
    lats = [p.lat for p in points]
    lngs = [p.lng for p in points]
    return Bounds(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))


def fit_bounds(
    bounds: Bounds,
    width: int,
    height: int,
    padding: float,
    max_zoom: float,
    style: str = "satellite",
) -> ViewState:
    """Camera that shows bounds inside a width x height viewport.

    Args:
        bounds: Region to show.
        width: Viewport width in pixels.
        height: Viewport height in pixels.
        padding: Margin kept free on every side, in pixels.
        max_zoom: Zoom ceiling, so near-coincident points do not over-zoom.
        style: Basemap style key to carry into the view.

    Returns:
        The fitted view state.

    Raises:
        ValidationError: If the padding leaves no room in the viewport.
    """
    avail_w = width - 2 * padding
    avail_h = height - 2 * padding
    if avail_w <= 0 or avail_h <= 0:
        raise ValidationError("Padding leaves no room in the viewport")

    x_min, y_max = project(bounds.south, bounds.west)
    x_max, y_min = project(bounds.north, bounds.east)
    dx = x_max - x_min
    dy = y_max - y_min

    scales = []
    if dx > 0:
        scales.append(avail_w / dx)
    if dy > 0:
        scales.append(avail_h / dy)
    zoom = math.log2(min(scales)) if scales else max_zoom
    zoom = max(MIN_ZOOM, min(zoom, max_zoom))

    center_lat, center_lng = unproject((x_min + x_max) / 2, (y_min + y_max) / 2)
    return ViewState(center_lat=center_lat, center_lng=center_lng, zoom=zoom, style=style)


def screen_point(view: ViewState, lat: float, lng: float, width: int, height: int) -> Tuple[float, float]:
    """Pixel position of a coordinate inside the viewport (origin top-left)."""
    cx, cy = project(view.center_lat, view.center_lng, view.zoom)
    x, y = project(lat, lng, view.zoom)
    return x - cx + width / 2, y - cy + height / 2


def visible_bounds(view: ViewState, width: int, height: int) -> Bounds:
    """Region visible in a width x height viewport for view."""
    cx, cy = project(view.center_lat, view.center_lng, view.zoom)
    north, west = unproject(cx - width / 2, cy - height / 2, view.zoom)
    south, east = unproject(cx + width / 2, cy + height / 2, view.zoom)
    return Bounds(south=south, west=west, north=north, east=east)


def default_view(config: Dict[str, Any], style: Optional[str] = None) -> ViewState:
    view = config["default_view"]
    return ViewState(
        center_lat=view["center_lat"],
        center_lng=view["center_lng"],
        zoom=view["zoom"],
        style=style or config["default_style"],
    )


def view_for_markers(markers: Iterable[Any], config: Dict[str, Any], style: Optional[str] = None) -> ViewState:
    """Camera for a freshly shown marker set.

    Zero markers reset to the default view, a single marker is centered at
    a fixed zoom, several markers get a padded bounding-box fit.
    """
    markers = list(markers)
    style = style or config["default_style"]
    if not markers:
        return default_view(config, style)
    if len(markers) == 1:
        return ViewState(
            center_lat=markers[0].lat,
            center_lng=markers[0].lng,
            zoom=config["single_marker_zoom"],
            style=style,
        )
    viewport = config["viewport"]
    return fit_bounds(
        bounds_of(markers),
        viewport["width"],
        viewport["height"],
        config["fit_padding"],
        config["max_fit_zoom"],
        style,
    )


def is_off_center(view: ViewState, anchor: Optional[Dict[str, float]]) -> bool:
    """Whether the camera drifted away from the last search location."""
    if not anchor:
        return False
    distance = math.hypot(view.center_lng - anchor["lng"], view.center_lat - anchor["lat"])
    return distance > OFF_CENTER_DEGREES or abs(view.zoom - anchor["zoom"]) > OFF_CENTER_ZOOM
