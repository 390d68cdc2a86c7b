"""
Map session controller.

One ``MapSession`` exists per connected browser. It owns the entity store
of the active map, the grouping engine, the headless map surface and its
render sync, the workspace switcher and the persistence writer, and exposes
the operations the HTTP layer invokes. Every mutation updates local state
first and then submits the persistence write without waiting for it.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-21
"""

import copy
import logging
from concurrent.futures import Executor
from typing import Any, Dict, List, Optional

from .categories import CategoryRegistry, default_categories, default_label
from .config import get_default_config
from .errors import ConfirmationRequired, ValidationError
from .grouping import GroupDrag, GroupingEngine, grouping_fields
from .models import BUILTIN_TYPES, CATEGORY, LOCATION, Marker, Team, ViewState, new_id
from .notices import NoticeBoard
from .persistence import PersistenceAdapter, PersistenceWriter
from .render import MapSurface, MarkerRenderSync
from .store import EntityStore
from .transfer import ImportedMap, export_document, parse_document, suggested_filename
from .validation import (
    format_coordinates,
    parse_coordinates,
    sanitise_int,
    sanitise_label,
    validate_coordinates,
)
from .viewport import default_view, is_off_center, view_for_markers
from .workspaces import WorkspaceSwitcher

logger = logging.getLogger(__name__)

SEARCH_ZOOM = 16
CENTER_POPUP_MS = 3000


class MapSession:
    """Per-session context for one team's maps."""

    def __init__(
        self,
        adapter: PersistenceAdapter,
        team: Team,
        config: Optional[Dict[str, Any]] = None,
        executor: Optional[Executor] = None,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or new_id()
        self.adapter = adapter
        self.team = team
        self.config = config or get_default_config()

        self.notices = NoticeBoard()
        self.writer = PersistenceWriter(adapter, self.notices, executor)
        self.store = EntityStore()
        self.grouping = GroupingEngine(self.store)
        self.drag = GroupDrag(self.grouping)
        self.registry = CategoryRegistry(team.id, self._load_categories())
        self.surface = MapSurface(default_view(self.config))
        self.render = MarkerRenderSync(
            self.surface,
            self.store,
            self.registry,
            on_moved=self._persist_position,
            labels_visible=self.config["labels_visible_default"],
        )
        self.switcher = WorkspaceSwitcher(
            adapter, self.writer, self.store, self.grouping, self.render, self.config
        )
        self.last_search: Optional[Dict[str, float]] = None
        self._labels_before_screenshot: Optional[bool] = None

    @property
    def workspace(self):
        return self.switcher.active

    @property
    def labels_visible(self) -> bool:
        return self.render.labels_visible

    @property
    def screenshot_mode(self) -> bool:
        return self._labels_before_screenshot is not None

    def start(self):
        """Load the team's maps and render the first one."""
        workspace = self.switcher.start(self.team.id)
        logger.info("Session %s started for team %s", self.id, self.team.name)
        return workspace

    def close(self):
        self.writer.flush()
        self.render.teardown()

    # ------------------------------------------------------------------
    # Markers
    # ------------------------------------------------------------------
    def marker_list(self) -> List[Dict[str, Any]]:
        """Markers in list order, each annotated with its group role."""
        items = []
        for marker in self.grouping.ordered_list():
            item = marker.to_dict()
            item["coordinates"] = format_coordinates(marker.lat, marker.lng)
            item["isChild"] = self.grouping.is_child(marker.id)
            item["isParent"] = self.grouping.is_parent(marker.id)
            item["dimmed"] = self.drag.dimmed_id == marker.id
            item["highlighted"] = self.drag.highlighted_id == marker.id
            items.append(item)
        return items

    def place_marker(
        self,
        lat,
        lng,
        type: str = LOCATION,
        label: Optional[str] = None,
        zone_number=None,
        device_icon: Optional[str] = None,
        asset_icon: Optional[str] = None,
        category_id: Optional[str] = None,
        category_icon_id: Optional[str] = None,
        is_search_result: bool = False,
    ) -> Marker:
        """Create a marker at lat/lng, render it and persist it.

        Raises:
            ValidationError: On bad coordinates, type or label.
            NotFoundError: If a category or icon id is unknown.
        """
        lat, lng = validate_coordinates(lat, lng)
        zone_number = sanitise_int(zone_number, allow_none=True)
        if type not in BUILTIN_TYPES:
            raise ValidationError(f"Unknown marker type: {type}")

        icon = None
        if category_id:
            self.registry.get(category_id)
            if category_icon_id:
                icon = self.registry.find_icon(category_id, category_icon_id)
                if icon is None:
                    raise ValidationError("Icon does not belong to this category")
        elif type == CATEGORY:
            raise ValidationError("A category marker needs a category")

        if label is None or not str(label).strip():
            label = default_label(type, zone_number, icon)
        label = sanitise_label(label)

        marker = Marker(
            workspace_id=self._require_workspace().id,
            label=label,
            lat=lat,
            lng=lng,
            type=type,
            zone_number=zone_number,
            device_icon=device_icon,
            asset_icon=asset_icon,
            category_id=category_id,
            category_icon_id=category_icon_id,
            is_search_result=is_search_result,
            position=self.grouping.next_position(),
        )
        self.store.add(marker)
        self.render.render(marker)
        self.writer.submit("create marker", self.adapter.create_marker_from, copy.copy(marker))
        logger.info("Placed %s marker %s at %.6f, %.6f", type, marker.id, lat, lng)
        return marker

    def place_search_result(self, result: Dict[str, Any]) -> Marker:
        """Drop a marker for a geocoder result and fly to it.

        Args:
            result: A GeoJSON Feature or a FeatureCollection (first feature
                is used) as returned by the search box.
        """
        feature = result
        if result.get("type") == "FeatureCollection":
            features = result.get("features") or []
            if not features:
                raise ValidationError("Search returned no results")
            feature = features[0]
        coordinates = (feature.get("geometry") or {}).get("coordinates")
        if not isinstance(coordinates, list) or len(coordinates) < 2:
            raise ValidationError("Could not extract coordinates from search result")

        lat, lng = validate_coordinates(coordinates[1], coordinates[0])
        marker = self.place_marker(
            lat, lng, type=LOCATION, label=place_name(feature.get("properties") or {}, lat, lng),
            is_search_result=True,
        )
        self.last_search = {"lat": lat, "lng": lng, "zoom": SEARCH_ZOOM}
        self.surface.jump_to(ViewState(lat, lng, SEARCH_ZOOM, self.surface.style))
        return marker

    def on_edit(self, marker_id: str, label, coordinates: Optional[str] = None,
                lat=None, lng=None) -> Marker:
        """Apply the edit dialog: new label and optionally new coordinates.

        Coordinates come either as the dialog's "lat, lng" text or as
        separate numbers. Everything is validated before the marker changes.
        """
        marker = self.store.get(marker_id)
        label = sanitise_label(label)
        position = None
        if coordinates is not None and str(coordinates).strip():
            position = parse_coordinates(coordinates)
        elif lat is not None or lng is not None:
            position = validate_coordinates(lat, lng)

        fields: Dict[str, Any] = {"label": label}
        marker.label = label
        if position is not None:
            marker.lat, marker.lng = position
            fields.update(lat=marker.lat, lng=marker.lng)
        self.render.update(marker)
        self.writer.submit("update marker", self.adapter.update_marker, marker.id, fields)
        return marker

    def move_marker(self, marker_id: str, lat, lng) -> Marker:
        """Drag-end reported by the browser for a marker handle."""
        lat, lng = validate_coordinates(lat, lng)
        marker = self.store.get(marker_id)
        handle = self.render.handle_for(marker_id) or self.render.render(marker)
        handle.drag_to(lat, lng)
        return self.store.get(marker_id)

    def on_delete(self, marker_id: str) -> Marker:
        marker = self.store.get(marker_id)
        changed = self.grouping.detach_marker(marker_id)
        self.store.remove(marker_id)
        self.render.remove(marker_id)
        if self.drag.dragged_id == marker_id:
            self.drag.cancel()
        self._persist_grouping(changed)
        self.writer.submit("delete marker", self.adapter.delete_marker, marker_id)
        logger.info("Deleted marker %s", marker_id)
        return marker

    def on_toggle_lock(self, marker_id: str) -> Marker:
        marker = self.store.get(marker_id)
        marker.locked = not marker.locked
        self.render.set_locked(marker)
        self.writer.submit("update marker", self.adapter.update_marker, marker.id, {"locked": marker.locked})
        return marker

    def on_center(self, marker_id: str) -> ViewState:
        """Fly to a marker and flash its label."""
        marker = self.store.get(marker_id)
        zoom = max(self.surface.camera.zoom, self.config["center_min_zoom"])
        view = ViewState(marker.lat, marker.lng, zoom, self.surface.style)
        self.surface.jump_to(view)
        handle = self.render.handle_for(marker_id)
        if handle is not None and handle.popup is not None and not handle.popup.is_open:
            self.surface.emit("popup_flash", {
                "markerId": marker_id, "html": handle.popup.html, "duration": CENTER_POPUP_MS,
            })
        return view

    def clear_all(self, confirmed: bool = False) -> int:
        """Delete every marker of the active map.

        Raises:
            ConfirmationRequired: If there are markers and confirmed is false.
        """
        count = len(self.store)
        if count == 0:
            return 0
        if not confirmed:
            raise ConfirmationRequired(f"Clearing removes all {count} marker(s) from this map")
        self._remove_all_markers()
        logger.info("Cleared %d marker(s) from map %s", count, self.workspace.id)
        return count

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------
    def toggle_labels(self, visible: Optional[bool] = None) -> bool:
        visible = (not self.render.labels_visible) if visible is None else bool(visible)
        self.render.set_labels_visible(visible)
        return visible

    def set_style(self, style: str) -> str:
        if style not in self.config["styles"]:
            raise ValidationError(f"Unknown map style: {style}")
        self.surface.set_style(style)
        workspace = self._require_workspace()
        workspace.view.style = style
        self.writer.submit("update map", self.adapter.update_workspace, workspace.id,
                           view=copy.copy(workspace.view))
        return style

    def enter_screenshot_mode(self) -> bool:
        if self._labels_before_screenshot is None:
            self._labels_before_screenshot = self.render.labels_visible
            self.render.set_labels_visible(True)
            self.surface.emit("screenshot_mode", {"active": True})
        return True

    def exit_screenshot_mode(self) -> bool:
        if self._labels_before_screenshot is not None:
            self.render.set_labels_visible(self._labels_before_screenshot)
            self._labels_before_screenshot = None
            self.surface.emit("screenshot_mode", {"active": False})
        return False

    def update_camera(self, lat, lng, zoom) -> ViewState:
        """Record the camera after the user panned or zoomed in the browser."""
        lat, lng = validate_coordinates(lat, lng)
        try:
            zoom = float(zoom)
        except (TypeError, ValueError):
            raise ValidationError("Invalid zoom level")
        self.surface.camera = ViewState(lat, lng, zoom, self.surface.style)
        return self.surface.camera

    def is_off_center(self) -> bool:
        return is_off_center(self.surface.camera, self.last_search)

    def recenter_to_search(self) -> ViewState:
        if not self.last_search:
            raise ValidationError("No search location to return to")
        view = ViewState(self.last_search["lat"], self.last_search["lng"],
                         self.last_search["zoom"], self.surface.style)
        self.surface.jump_to(view)
        return view

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------
    def drag_start(self, marker_id: str):
        self.drag.start(marker_id)

    def drag_over(self, target_id: str) -> bool:
        return self.drag.over(target_id)

    def drop(self, target_id: str) -> List[str]:
        changed = self.drag.drop(target_id)
        self._persist_grouping(changed)
        return changed

    def drag_end(self) -> List[str]:
        changed = self.drag.end()
        self._persist_grouping(changed)
        return changed

    def group(self, parent_id: str, child_id: str) -> List[str]:
        changed = self.grouping.add_to_group(parent_id, child_id)
        self._persist_grouping(changed)
        return changed

    def ungroup(self, child_id: str) -> List[str]:
        self.store.get(child_id)
        changed = self.grouping.remove_from_group(child_id)
        self._persist_grouping(changed)
        return changed

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------
    def switch_workspace(self, workspace_id: str) -> bool:
        self.drag.cancel()
        return self.switcher.switch_to(workspace_id)

    def create_workspace(self, title: Optional[str] = None):
        self.drag.cancel()
        return self.switcher.create(title)

    def rename_workspace(self, title: str, workspace_id: Optional[str] = None):
        return self.switcher.rename(workspace_id or self._require_workspace().id, title)

    def delete_workspace(self, workspace_id: str, confirmed: bool = False):
        workspace = self.switcher.get(workspace_id)
        if confirmed and workspace is self.switcher.active:
            self.drag.cancel()
        return self.switcher.delete(workspace_id, confirmed)

    # ------------------------------------------------------------------
    # File transfer
    # ------------------------------------------------------------------
    def export_document(self) -> Dict[str, Any]:
        workspace = self._require_workspace()
        return export_document(
            workspace.title,
            self.grouping.ordered_list(),
            self.grouping.groups(),
            self.surface.camera,
            self.last_search,
        )

    def export_filename(self) -> str:
        return suggested_filename(self._require_workspace().title,
                                  default_title=self.config["default_title"])

    def import_document(self, data: Any, confirmed: bool = False) -> ImportedMap:
        """Replace the active map's markers with those of a map document.

        The document is fully validated before anything changes.

        Raises:
            ImportFormatError: If the document is malformed.
            ConfirmationRequired: If markers would be replaced without
                confirmation.
        """
        workspace = self._require_workspace()
        imported = parse_document(data, workspace.id, self.config["default_title"])
        if len(self.store) and not confirmed:
            raise ConfirmationRequired(
                f"Loading replaces the {len(self.store)} marker(s) currently placed"
            )

        self._remove_all_markers()
        for marker in imported.markers:
            self.store.add(marker)
        self.grouping.load_groups(imported.groups)

        workspace.title = imported.title
        style = imported.view.style if imported.view else workspace.view.style
        if style not in self.config["styles"]:
            style = workspace.view.style
        camera = imported.view or view_for_markers(self.store.all(), self.config, style)
        camera.style = style
        workspace.view = copy.copy(camera)
        self.last_search = imported.last_search

        self.render.render_all(self.grouping.ordered_list())
        self.surface.set_style(style)
        self.surface.jump_to(camera)

        self.writer.submit("update map", self.adapter.update_workspace, workspace.id,
                           title=workspace.title, view=copy.copy(camera))
        for marker in self.grouping.ordered_list():
            self.writer.submit("create marker", self.adapter.create_marker_from, copy.copy(marker))
        logger.info("Imported %d marker(s) into map %s", len(self.store), workspace.id)
        return imported

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    def save_category(self, category):
        self.writer.submit("save category", self.adapter.save_category, copy.deepcopy(category))
        self._refresh_category_markers(category.id)
        return category

    def delete_category(self, category_id: str):
        category = self.registry.remove_category(category_id)
        self.writer.submit("delete category", self.adapter.delete_category, category_id)
        self._refresh_category_markers(category_id)
        return category

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _require_workspace(self):
        if self.switcher.active is None:
            raise ValidationError("No map is loaded")
        return self.switcher.active

    def _load_categories(self):
        categories = self.adapter.list_categories(self.team.id)
        if categories:
            return categories
        categories = default_categories(self.team.id)
        for category in categories:
            self.writer.submit("create category", self.adapter.save_category, copy.deepcopy(category))
        return categories

    def _refresh_category_markers(self, category_id: str):
        for marker in self.store:
            if marker.category_id == category_id:
                self.render.update(marker)

    def _remove_all_markers(self):
        self.drag.cancel()
        marker_ids = [m.id for m in self.store]
        self.render.teardown()
        self.store.clear()
        for marker_id in marker_ids:
            self.writer.submit("delete marker", self.adapter.delete_marker, marker_id)

    def _persist_position(self, marker: Marker):
        self.writer.submit("update marker", self.adapter.update_marker, marker.id,
                           {"lat": marker.lat, "lng": marker.lng})

    def _persist_grouping(self, changed: List[str]):
        for marker_id in changed:
            marker = self.store.find(marker_id)
            if marker is None:
                continue
            self.writer.submit("update marker", self.adapter.update_marker, marker_id,
                               grouping_fields(marker))


def place_name(props: Dict[str, Any], lat: float, lng: float) -> str:
    """Human readable name of a geocoder result."""
    if props.get("full_address"):
        return props["full_address"]
    if props.get("place_name"):
        return props["place_name"]
    parts = []
    for key in ("address", "name", "place", "district", "locality", "region", "postcode", "country"):
        value = props.get(key)
        if not value or (key == "name" and value == props.get("address")):
            continue
        parts.append(str(value))
    return ", ".join(parts) if parts else f"{lat:.4f}, {lng:.4f}"

