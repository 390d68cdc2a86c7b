"""
Entity data models.

Markers, workspaces (maps), teams and marker categories as held in memory.
Each mirrors a persisted record and converts to and from the camelCase
dictionaries used by the persistence layer and the browser.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-12
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

LOCATION = "location"
DEVICE = "device"
ASSETS = "assets"
SEARCH_RESULT = "search-result"
CATEGORY = "category"

BUILTIN_TYPES = (LOCATION, DEVICE, ASSETS, SEARCH_RESULT, CATEGORY)


def new_id() -> str:
    """Generate an opaque entity id."""
    return uuid.uuid4().hex


@dataclass
class Marker:
    """
    A single placed point annotation.

    Attributes:
        id: Opaque id, unique within the workspace.
        workspace_id: Owning workspace.
        label: Free text shown in the popup and the marker list.
        lat: WGS84 latitude in degrees.
        lng: WGS84 longitude in degrees.
        type: Category type (location, device, assets, search-result or category).
        zone_number: Per-instance number for location and numbered icons.
        device_icon: Glyph name for device markers.
        asset_icon: Glyph name for asset markers.
        category_id: Team category the marker was placed from.
        category_icon_id: Icon within that category.
        locked: When true the position cannot be changed by dragging.
        parent_id: Parent marker when grouped (single level).
        is_search_result: Placed from a geocoder search.
        position: Order among top-level markers.
        child_position: Order among the parent's children.
    """

    workspace_id: str
    label: str
    lat: float
    lng: float
    type: str = LOCATION
    id: str = field(default_factory=new_id)
    zone_number: Optional[int] = None
    device_icon: Optional[str] = None
    asset_icon: Optional[str] = None
    category_id: Optional[str] = None
    category_icon_id: Optional[str] = None
    locked: bool = False
    parent_id: Optional[str] = None
    is_search_result: bool = False
    position: Optional[int] = None
    child_position: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "mapId": self.workspace_id,
            "label": self.label,
            "lat": self.lat,
            "lng": self.lng,
            "type": self.type,
            "zoneNumber": self.zone_number,
            "deviceIcon": self.device_icon,
            "assetIcon": self.asset_icon,
            "categoryId": self.category_id,
            "categoryIconId": self.category_icon_id,
            "locked": self.locked,
            "parentId": self.parent_id,
            "isSearchResult": self.is_search_result,
            "position": self.position,
            "childPosition": self.child_position,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Marker":
        return cls(
            id=data.get("id") or new_id(),
            workspace_id=data.get("mapId", ""),
            label=data.get("label", ""),
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            type=data.get("type") or LOCATION,
            zone_number=data.get("zoneNumber"),
            device_icon=data.get("deviceIcon"),
            asset_icon=data.get("assetIcon"),
            category_id=data.get("categoryId"),
            category_icon_id=data.get("categoryIconId"),
            locked=bool(data.get("locked", False)),
            parent_id=data.get("parentId"),
            is_search_result=bool(data.get("isSearchResult", False)),
            position=data.get("position"),
            child_position=data.get("childPosition"),
        )


@dataclass
class ViewState:
    """Camera of a map: center, zoom and basemap style key."""

    center_lat: float
    center_lng: float
    zoom: float
    style: str = "satellite"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "center": {"lat": self.center_lat, "lng": self.center_lng},
            "zoom": self.zoom,
            "style": self.style,
        }


@dataclass
class Workspace:
    """A named collection of markers with its own view state."""

    team_id: str
    view: ViewState
    title: str = "Untitled Map"
    id: str = field(default_factory=new_id)
    markers: List[Marker] = field(default_factory=list)
    active: bool = False

    def to_dict(self, include_markers: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "teamId": self.team_id,
            "title": self.title,
            "centerLat": self.view.center_lat,
            "centerLng": self.view.center_lng,
            "zoom": self.view.zoom,
            "style": self.view.style,
            "active": self.active,
        }
        if include_markers:
            data["markers"] = [m.to_dict() for m in self.markers]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workspace":
        workspace = cls(
            id=data.get("id") or new_id(),
            team_id=data.get("teamId", ""),
            title=data.get("title") or "Untitled Map",
            view=ViewState(
                center_lat=float(data.get("centerLat", 40.0)),
                center_lng=float(data.get("centerLng", -74.5)),
                zoom=float(data.get("zoom", 9.0)),
                style=data.get("style") or "satellite",
            ),
        )
        workspace.markers = [
            Marker.from_dict({**m, "mapId": workspace.id})
            for m in data.get("markers", [])
        ]
        return workspace


@dataclass
class CategoryIcon:
    """An icon template inside a marker category."""

    name: str
    icon: str
    id: str = field(default_factory=new_id)
    background_color: str = "light"
    is_numbered: bool = False
    display_order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "backgroundColor": self.background_color,
            "isNumbered": self.is_numbered,
            "displayOrder": self.display_order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryIcon":
        return cls(
            id=data.get("id") or new_id(),
            name=data["name"],
            icon=data["icon"],
            background_color=data.get("backgroundColor") or "light",
            is_numbered=bool(data.get("isNumbered", False)),
            display_order=int(data.get("displayOrder") or 0),
        )


@dataclass
class MarkerCategory:
    """A team-defined marker category with an ordered set of icons."""

    team_id: str
    name: str
    id: str = field(default_factory=new_id)
    icon: Optional[str] = None
    background_color: str = "light"
    display_order: int = 0
    visible: bool = True
    icons: List[CategoryIcon] = field(default_factory=list)

    def ordered_icons(self) -> List[CategoryIcon]:
        return sorted(self.icons, key=lambda i: i.display_order)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "teamId": self.team_id,
            "name": self.name,
            "icon": self.icon,
            "backgroundColor": self.background_color,
            "displayOrder": self.display_order,
            "isVisible": self.visible,
            "icons": [i.to_dict() for i in self.ordered_icons()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarkerCategory":
        return cls(
            id=data.get("id") or new_id(),
            team_id=data.get("teamId", ""),
            name=data["name"],
            icon=data.get("icon"),
            background_color=data.get("backgroundColor") or "light",
            display_order=int(data.get("displayOrder") or 0),
            visible=bool(data.get("isVisible", True)),
            icons=[CategoryIcon.from_dict(i) for i in data.get("icons", [])],
        )


@dataclass
class Team:
    """A tenant: owns workspaces and marker categories."""

    name: str
    display_name: str = ""
    id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "displayName": self.display_name or self.name,
        }
