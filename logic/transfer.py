"""
Map file export and import, and team-wide exports.

A map document is self-describing JSON::

    {
      "title": "...",
      "viewState": {"center": {"lat": .., "lng": ..}, "zoom": .., "style": ..,
                    "lastSearchLocation": {"lat": .., "lng": .., "zoom": ..} | null},
      "markers": {"type": "FeatureCollection", "features": [...]},
      "groups": {"<parent id>": ["<child id>", ...]}
    }

Files written by the earlier static page use ``mapState`` and ``pins``
instead of ``viewState`` and ``markers``; both spellings are read.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-22
"""

import csv
import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from io import StringIO
from typing import Any, Dict, List, Optional, Tuple

from .categories import default_label
from .errors import ImportFormatError, ScoutMapError, ValidationError
from .models import LOCATION, Marker, ViewState, Workspace, new_id
from .validation import validate_coordinates

DOCUMENT_MEDIA_TYPE = "application/json"
DEFAULT_BASENAME = "scout-map"

CSV_FIELDS = [
    "Map Title", "Marker Label", "Latitude", "Longitude", "Type",
    "Zone Number", "Device Icon", "Asset Icon", "Locked", "Parent ID",
    "Position", "Child Position",
]


@dataclass
class ImportedMap:
    """A parsed, validated map document ready to replace the current state."""

    title: str
    view: Optional[ViewState]
    markers: List[Marker]
    groups: Dict[str, List[str]]
    last_search: Optional[Dict[str, float]] = None
    id_map: Dict[str, str] = field(default_factory=dict)


def marker_feature(marker: Marker) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "id": marker.id,
        "geometry": {"type": "Point", "coordinates": [marker.lng, marker.lat]},
        "properties": {
            "label": marker.label,
            "type": marker.type,
            "zoneNumber": marker.zone_number,
            "isSearchResult": marker.is_search_result,
            "deviceIcon": marker.device_icon,
            "assetIcon": marker.asset_icon,
            "categoryId": marker.category_id,
            "categoryIconId": marker.category_icon_id,
            "locked": marker.locked,
        },
    }


def export_document(
    title: str,
    markers: List[Marker],
    groups: Dict[str, List[str]],
    camera: ViewState,
    last_search: Optional[Dict[str, float]] = None,
) -> Dict[str, Any]:
    """Build the map document for the current workspace.

    Args:
        title: Map title.
        markers: Markers in list order.
        groups: Adjacency map ``{parent_id: [child_id, ...]}``.
        camera: Current camera.
        last_search: Last geocoder search location, if any.

    Returns:
        JSON-serialisable document.
    """
    view = camera.to_dict()
    view["lastSearchLocation"] = last_search
    return {
        "title": title,
        "viewState": view,
        "markers": {
            "type": "FeatureCollection",
            "features": [marker_feature(m) for m in markers],
        },
        "groups": {parent: list(children) for parent, children in groups.items()},
    }


def parse_document(data: Any, workspace_id: str, default_title: str = "Untitled Map") -> ImportedMap:
    """Validate a map document and turn it into markers and groups.

    Nothing is mutated here; the caller replaces its state only after this
    returns.

    Raises:
        ImportFormatError: If the document lacks a view state or a markers
            collection, or a feature is malformed.
    """
    if isinstance(data, (bytes, str)):
        try:
            data = json.loads(data)
        except (ValueError, UnicodeDecodeError) as e:
            raise ImportFormatError(f"Invalid map file format: {e}")
    if not isinstance(data, dict):
        raise ImportFormatError("Invalid map file format")

    view_data = data.get("viewState") or data.get("mapState")
    collection = data.get("markers") or data.get("pins")
    if not isinstance(view_data, dict) or not isinstance(collection, dict):
        raise ImportFormatError("Invalid map file format")
    features = collection.get("features")
    if not isinstance(features, list):
        raise ImportFormatError("Invalid map file format: markers must be a FeatureCollection")

    # Marker ids are global keys, so every imported marker gets a fresh one
    markers: List[Marker] = []
    id_map: Dict[str, str] = {}
    for index, feature in enumerate(features):
        marker, source_id = _feature_to_marker(feature, index, workspace_id)
        id_map.setdefault(source_id, marker.id)
        markers.append(marker)

    groups: Dict[str, List[str]] = {}
    raw_groups = data.get("groups") or {}
    if not isinstance(raw_groups, dict):
        raise ImportFormatError("Invalid map file format: groups must be an object")
    for parent_id, child_ids in raw_groups.items():
        if not isinstance(child_ids, list):
            raise ImportFormatError("Invalid map file format: group children must be a list")
        parent = id_map.get(parent_id)
        children = [id_map[c] for c in child_ids if c in id_map]
        if parent and children:
            groups[parent] = children

    title = data.get("title") or default_title
    return ImportedMap(
        title=str(title),
        view=_parse_view(view_data),
        markers=markers,
        groups=groups,
        last_search=view_data.get("lastSearchLocation") or None,
        id_map=id_map,
    )


def suggested_filename(title: str, now: Optional[datetime] = None,
                       default_title: str = "Untitled Map") -> str:
    """File name for a download: slugged title plus a local timestamp."""
    now = now or datetime.now()
    base = DEFAULT_BASENAME
    if title and title != default_title:
        base = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-") or DEFAULT_BASENAME
    return f"{base}-{now.strftime('%Y-%m-%dT%H%M%S')}.json"


def export_team(team_name: str, workspaces: List[Workspace], fmt: str = "json") -> Tuple[Any, str, str]:
    """Export every map of a team.

    Args:
        team_name: Team name, used in the file name.
        workspaces: The team's maps with their markers.
        fmt: One of ``json``, ``csv`` or ``geojson``.

    Returns:
        Tuple of (content, media type, file name). Content is a dict for the
        JSON formats and a string for CSV.

    Raises:
        ValidationError: On an unknown format.
    """
    if fmt == "csv":
        output = StringIO()
        writer = csv.DictWriter(output, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for workspace in workspaces:
            for marker in workspace.markers:
                writer.writerow({
                    "Map Title": workspace.title,
                    "Marker Label": marker.label,
                    "Latitude": marker.lat,
                    "Longitude": marker.lng,
                    "Type": marker.type,
                    "Zone Number": "" if marker.zone_number is None else marker.zone_number,
                    "Device Icon": marker.device_icon or "",
                    "Asset Icon": marker.asset_icon or "",
                    "Locked": marker.locked,
                    "Parent ID": marker.parent_id or "",
                    "Position": "" if marker.position is None else marker.position,
                    "Child Position": "" if marker.child_position is None else marker.child_position,
                })
        return output.getvalue(), "text/csv", f"scout-{team_name}-export.csv"

    if fmt == "geojson":
        features = []
        for workspace in workspaces:
            for marker in workspace.markers:
                feature = marker_feature(marker)
                feature["properties"].update({
                    "mapTitle": workspace.title,
                    "parentId": marker.parent_id,
                    "position": marker.position,
                    "childPosition": marker.child_position,
                })
                features.append(feature)
        content = {"type": "FeatureCollection", "features": features}
        return content, "application/geo+json", f"scout-{team_name}-export.geojson"

    if fmt == "json":
        content = {
            "teamName": team_name,
            "exportDate": datetime.now().isoformat(),
            "maps": [w.to_dict() for w in workspaces],
        }
        return content, DOCUMENT_MEDIA_TYPE, f"scout-{team_name}-export.json"

    raise ValidationError(f"Unknown export format: {fmt}")


def _feature_to_marker(feature: Any, index: int, workspace_id: str) -> Tuple[Marker, str]:
    if not isinstance(feature, dict):
        raise ImportFormatError(f"Invalid marker at position {index + 1}")
    geometry = feature.get("geometry") or {}
    coordinates = geometry.get("coordinates")
    if geometry.get("type", "Point") != "Point" or not isinstance(coordinates, list) or len(coordinates) < 2:
        raise ImportFormatError(f"Invalid geometry for marker {index + 1}")
    try:
        lat, lng = validate_coordinates(coordinates[1], coordinates[0])
    except ScoutMapError as e:
        raise ImportFormatError(f"Marker {index + 1}: {e.message}")

    props = feature.get("properties") or {}
    marker_type = props.get("type") or LOCATION
    zone_number = props.get("zoneNumber")
    if zone_number not in (None, ""):
        try:
            zone_number = int(zone_number)
        except (TypeError, ValueError):
            raise ImportFormatError(f"Invalid zone number for marker {index + 1}")
    else:
        zone_number = None

    label = str(props.get("label") or "").strip() or default_label(marker_type, zone_number)
    # Files from the static page carry no ids; it numbered pins pin-1, pin-2, ...
    source_id = str(feature.get("id") or props.get("id") or f"pin-{index + 1}")

    marker = Marker(
        id=new_id(),
        workspace_id=workspace_id,
        label=label,
        lat=lat,
        lng=lng,
        type=marker_type,
        zone_number=zone_number,
        device_icon=props.get("deviceIcon") or None,
        asset_icon=props.get("assetIcon") or None,
        category_id=props.get("categoryId") or None,
        category_icon_id=props.get("categoryIconId") or None,
        locked=bool(props.get("locked", False)),
        is_search_result=bool(props.get("isSearchResult", False)),
        position=index,
    )
    return marker, source_id


def _parse_view(view_data: Dict[str, Any]) -> Optional[ViewState]:
    center = view_data.get("center")
    zoom = view_data.get("zoom")
    if not isinstance(center, dict) or zoom is None:
        return None
    try:
        lat, lng = validate_coordinates(center.get("lat"), center.get("lng"))
        zoom = float(zoom)
    except (ScoutMapError, TypeError, ValueError):
        raise ImportFormatError("Invalid map file format: bad view state")
    return ViewState(center_lat=lat, center_lng=lng, zoom=zoom,
                     style=view_data.get("style") or "satellite")
