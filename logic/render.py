"""
Marker render synchronisation.

The map renderer itself is external. ``MapSurface`` is the headless
boundary to it: it holds one visual handle per marker, the popups currently
attached to the map, the basemap style and the camera, and reports every
visual change to its listeners (the SSE broadcaster forwards them to the
browser, which draws them).

``MarkerRenderSync`` keeps that surface consistent with the entity store:
one handle per marker, one label popup per marker shown or hidden by the
workspace-wide labels toggle, and handle draggability following the
marker's lock flag.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-14
"""

import html
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from .categories import CategoryRegistry, marker_element
from .models import Marker, ViewState
from .store import EntityStore

logger = logging.getLogger(__name__)

POPUP_OFFSET = (25, 0)
POPUP_ANCHOR = "left"

Listener = Callable[[str, Dict[str, Any]], None]


class Popup:
    """Label popup bound to a marker handle."""

    def __init__(self, label: str):
        self.label = label
        self.offset = POPUP_OFFSET
        self.anchor = POPUP_ANCHOR
        self.is_open = False

    @property
    def html(self) -> str:
        return f'<div style="font-weight: 500;">{html.escape(self.label)}</div>'


class MarkerHandle:
    """On-screen marker as seen by the renderer."""

    def __init__(self, marker_id: str, lat: float, lng: float, element: Dict[str, Any],
                 draggable: bool = True, popup: Optional[Popup] = None):
        self.marker_id = marker_id
        self.lat = lat
        self.lng = lng
        self.element = element
        self.draggable = draggable
        self.popup = popup
        self.surface: Optional["MapSurface"] = None
        self._dragend_handlers: List[Callable[["MarkerHandle"], None]] = []

    def set_lnglat(self, lng: float, lat: float):
        self.lng = lng
        self.lat = lat
        self._emit("handle_moved", lat=lat, lng=lng)

    def set_draggable(self, draggable: bool):
        self.draggable = draggable
        self._emit("draggable", draggable=draggable)

    def set_element(self, element: Dict[str, Any]):
        self.element = element
        self._emit("element", element=element)

    def on_dragend(self, handler: Callable[["MarkerHandle"], None]):
        self._dragend_handlers.append(handler)

    def drag_to(self, lat: float, lng: float):
        """Simulate the renderer dragging the handle and releasing it."""
        self.lng = lng
        self.lat = lat
        for handler in list(self._dragend_handlers):
            handler(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "markerId": self.marker_id,
            "lat": self.lat,
            "lng": self.lng,
            "draggable": self.draggable,
            "element": self.element,
            "popup": self.popup.html if self.popup else None,
            "popupOpen": bool(self.popup and self.popup.is_open),
        }

    def _emit(self, event: str, **payload):
        if self.surface is not None:
            self.surface.emit(event, {"markerId": self.marker_id, **payload})


class MapSurface:
    """Headless map: handle registry, attached popups, style and camera."""

    def __init__(self, camera: ViewState):
        self.camera = camera
        self.style = camera.style
        self.handles: Dict[str, MarkerHandle] = {}
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener):
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: str, payload: Dict[str, Any]):
        for listener in list(self._listeners):
            listener(event, payload)

    def add_handle(self, handle: MarkerHandle):
        handle.surface = self
        self.handles[handle.marker_id] = handle
        self.emit("handle_added", handle.to_dict())

    def remove_handle(self, marker_id: str):
        handle = self.handles.pop(marker_id, None)
        if handle is None:
            return
        if handle.popup is not None and handle.popup.is_open:
            self.hide_popup(handle)
        handle.surface = None
        self.emit("handle_removed", {"markerId": marker_id})

    def show_popup(self, handle: MarkerHandle):
        if handle.popup is None or handle.popup.is_open:
            return
        handle.popup.is_open = True
        self.emit("popup_shown", {"markerId": handle.marker_id, "html": handle.popup.html})

    def hide_popup(self, handle: MarkerHandle):
        if handle.popup is None or not handle.popup.is_open:
            return
        handle.popup.is_open = False
        self.emit("popup_hidden", {"markerId": handle.marker_id})

    def set_style(self, style: str):
        # Handles are not style layers; they survive the basemap swap untouched
        self.style = style
        self.camera.style = style
        self.emit("style", {"style": style})

    def jump_to(self, view: ViewState):
        self.camera = view
        self.style = view.style
        self.emit("camera", view.to_dict())

    @property
    def open_popups(self) -> List[str]:
        return [h.marker_id for h in self.handles.values() if h.popup and h.popup.is_open]


class MarkerRenderSync:
    """Reconciles entity store mutations with visual marker handles."""

    def __init__(
        self,
        surface: MapSurface,
        store: EntityStore,
        registry: Optional[CategoryRegistry] = None,
        on_moved: Optional[Callable[[Marker], None]] = None,
        labels_visible: bool = False,
    ):
        self.surface = surface
        self.store = store
        self.registry = registry
        self.on_moved = on_moved
        self.labels_visible = labels_visible

    @property
    def handle_count(self) -> int:
        return len(self.surface.handles)

    def handle_for(self, marker_id: str) -> Optional[MarkerHandle]:
        return self.surface.handles.get(marker_id)

    def render(self, marker: Marker) -> MarkerHandle:
        """Create the visual handle and popup for a marker."""
        if marker.id in self.surface.handles:
            self.remove(marker.id)
        handle = MarkerHandle(
            marker.id,
            marker.lat,
            marker.lng,
            element=marker_element(marker, self.registry),
            draggable=not marker.locked,
            popup=Popup(marker.label),
        )
        handle.on_dragend(self._handle_dragend)
        self.surface.add_handle(handle)
        if self.labels_visible:
            self.surface.show_popup(handle)
        return handle

    def render_all(self, markers: Iterable[Marker]):
        for marker in markers:
            self.render(marker)

    def update(self, marker: Marker):
        """Reflect an edited label, position or decoration."""
        handle = self.handle_for(marker.id)
        if handle is None:
            self.render(marker)
            return
        if (handle.lat, handle.lng) != (marker.lat, marker.lng):
            handle.set_lnglat(marker.lng, marker.lat)
        self._replace_popup(handle, marker.label)
        element = marker_element(marker, self.registry)
        if element != handle.element:
            handle.set_element(element)

    def remove(self, marker_id: str):
        self.surface.remove_handle(marker_id)

    def set_locked(self, marker: Marker):
        handle = self.handle_for(marker.id)
        if handle is not None:
            handle.set_draggable(not marker.locked)

    def set_labels_visible(self, visible: bool):
        """Attach or detach every popup; handles are left untouched."""
        self.labels_visible = visible
        for handle in list(self.surface.handles.values()):
            if visible:
                self.surface.show_popup(handle)
            else:
                self.surface.hide_popup(handle)

    def teardown(self):
        """Remove every rendered handle."""
        for marker_id in list(self.surface.handles):
            self.remove(marker_id)

    def _replace_popup(self, handle: MarkerHandle, label: str):
        was_open = handle.popup is not None and handle.popup.is_open
        if was_open:
            self.surface.hide_popup(handle)
        handle.popup = Popup(label)
        self.surface.emit("popup_content", {"markerId": handle.marker_id, "html": handle.popup.html})
        if was_open or self.labels_visible:
            self.surface.show_popup(handle)

    def _handle_dragend(self, handle: MarkerHandle):
        marker = self.store.find(handle.marker_id)
        if marker is None:
            self.remove(handle.marker_id)
            return

        if marker.locked:
            logger.debug("Drag of locked marker %s reverted", marker.id)
            handle.set_lnglat(marker.lng, marker.lat)
            return

        marker.lat = max(-90.0, min(90.0, handle.lat))
        marker.lng = _wrap_lng(handle.lng)
        handle.set_lnglat(marker.lng, marker.lat)
        self._replace_popup(handle, marker.label)
        if self.on_moved is not None:
            self.on_moved(marker)


def _wrap_lng(lng: float) -> float:
    if -180.0 <= lng <= 180.0:
        return lng
    return ((lng + 180.0) % 360.0) - 180.0
