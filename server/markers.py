"""
Marker endpoints.

This module contains endpoints for placing, editing, moving, locking,
centering and deleting markers, and for the map-wide display toggles
(labels, basemap style, screenshot mode, search recentering).

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-21
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field

from logic.models import LOCATION
from logic.session import MapSession
from server.sessions import get_session

router = APIRouter()


class MarkerPlace(BaseModel):
    lat: float
    lng: float
    type: str = LOCATION
    label: Optional[str] = None
    zone_number: Optional[int] = Field(default=None, alias="zoneNumber")
    device_icon: Optional[str] = Field(default=None, alias="deviceIcon")
    asset_icon: Optional[str] = Field(default=None, alias="assetIcon")
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    category_icon_id: Optional[str] = Field(default=None, alias="categoryIconId")


class MarkerEdit(BaseModel):
    label: str
    coordinates: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class MarkerMove(BaseModel):
    lat: float
    lng: float


class LabelsToggle(BaseModel):
    visible: Optional[bool] = None


class StyleChange(BaseModel):
    style: str


class CameraUpdate(BaseModel):
    lat: float
    lng: float
    zoom: float = Field(..., ge=0, le=24)


@router.get("/api/markers")
async def list_markers(session: MapSession = Depends(get_session)):
    """List the active map's markers in list order (parents followed by children)."""
    return {"markers": session.marker_list(), "groups": session.grouping.groups()}


@router.post("/api/markers")
async def place_marker(payload: MarkerPlace, session: MapSession = Depends(get_session)):
    """Place a marker dropped from the palette or entered by coordinates.

    Args:
        payload: Position, type and decoration. A missing label gets the
            palette default ("Location 3", "Device", ...).

    Returns:
        The created marker.

    Raises:
        ValidationError: On an unknown type or category (HTTP 400).
    """
    marker = session.place_marker(
        payload.lat,
        payload.lng,
        type=payload.type,
        label=payload.label,
        zone_number=payload.zone_number,
        device_icon=payload.device_icon,
        asset_icon=payload.asset_icon,
        category_id=payload.category_id,
        category_icon_id=payload.category_icon_id,
    )
    return {"success": True, "marker": marker.to_dict()}


@router.post("/api/markers/search-result")
async def place_search_result(result: Dict[str, Any] = Body(...), session: MapSession = Depends(get_session)):
    """Place a marker for a geocoder result (Feature or FeatureCollection)."""
    marker = session.place_search_result(result)
    return {
        "success": True,
        "marker": marker.to_dict(),
        "lastSearchLocation": session.last_search,
    }


@router.put("/api/markers/{marker_id}")
async def edit_marker(marker_id: str, payload: MarkerEdit, session: MapSession = Depends(get_session)):
    """Apply the edit dialog to a marker.

    Args:
        marker_id: Marker to edit.
        payload: New label and either "lat, lng" text or separate numbers.

    Returns:
        The updated marker.
    """
    marker = session.on_edit(marker_id, payload.label, coordinates=payload.coordinates,
                             lat=payload.lat, lng=payload.lng)
    return {"success": True, "marker": marker.to_dict()}


@router.post("/api/markers/{marker_id}/move")
async def move_marker(marker_id: str, payload: MarkerMove, session: MapSession = Depends(get_session)):
    """Drag-end of a marker handle.

    A locked marker is snapped back and its position is not changed;
    ``moved`` tells the browser which happened.
    """
    before = session.store.get(marker_id)
    old = (before.lat, before.lng)
    marker = session.move_marker(marker_id, payload.lat, payload.lng)
    return {"success": True, "moved": (marker.lat, marker.lng) != old, "marker": marker.to_dict()}


@router.post("/api/markers/{marker_id}/lock")
async def toggle_lock(marker_id: str, session: MapSession = Depends(get_session)):
    marker = session.on_toggle_lock(marker_id)
    return {"success": True, "locked": marker.locked}


@router.post("/api/markers/{marker_id}/center")
async def center_marker(marker_id: str, session: MapSession = Depends(get_session)):
    view = session.on_center(marker_id)
    return {"success": True, "camera": view.to_dict()}


@router.delete("/api/markers/{marker_id}")
async def delete_marker(marker_id: str, session: MapSession = Depends(get_session)):
    """Delete a marker.

    Deleting a parent dissolves its group; the former children stay on the
    map at top level.
    """
    session.on_delete(marker_id)
    return {"success": True, "groups": session.grouping.groups()}


@router.delete("/api/markers")
async def clear_markers(confirm: bool = False, session: MapSession = Depends(get_session)):
    """Remove every marker from the active map.

    Raises:
        ConfirmationRequired: If markers exist and confirm is not set (HTTP 409).
    """
    removed = session.clear_all(confirmed=confirm)
    return {"success": True, "removed": removed}


@router.post("/api/view/labels")
async def toggle_labels(payload: LabelsToggle, session: MapSession = Depends(get_session)):
    return {"success": True, "labelsVisible": session.toggle_labels(payload.visible)}


@router.post("/api/view/style")
async def set_style(payload: StyleChange, session: MapSession = Depends(get_session)):
    style = session.set_style(payload.style)
    return {"success": True, "style": style, "styleUrl": session.config["styles"][style]}


@router.post("/api/view/camera")
async def update_camera(payload: CameraUpdate, session: MapSession = Depends(get_session)):
    """Record the browser's camera after a pan or zoom."""
    view = session.update_camera(payload.lat, payload.lng, payload.zoom)
    return {"camera": view.to_dict(), "offCenter": session.is_off_center()}


@router.post("/api/view/recenter")
async def recenter(session: MapSession = Depends(get_session)):
    view = session.recenter_to_search()
    return {"success": True, "camera": view.to_dict()}


@router.post("/api/view/screenshot")
async def screenshot_mode(active: bool = True, session: MapSession = Depends(get_session)):
    """Enter or leave screenshot mode (labels forced visible while active)."""
    if active:
        session.enter_screenshot_mode()
    else:
        session.exit_screenshot_mode()
    return {"success": True, "screenshotMode": session.screenshot_mode,
            "labelsVisible": session.labels_visible}
