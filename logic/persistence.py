"""
Persistence adapter contract and fire-and-forget writer.

The core never waits on the external store for user-visible changes: local
state is updated first, then the write is submitted to a
``PersistenceWriter``. A failed write is logged and reported as a notice;
local state is not rolled back and the write is not retried.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-16
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future, wait
from typing import Any, Callable, Dict, List, Optional

from .errors import NotFoundError, ScoutMapError
from .models import Marker, MarkerCategory, Team, ViewState, Workspace, new_id
from .notices import NoticeBoard
from .validation import check_marker_fields

logger = logging.getLogger(__name__)


class PersistenceAdapter(ABC):
    """Create/read/update/delete operations offered by the external store."""

    @abstractmethod
    def ensure_team(self, name: str, display_name: str = "") -> Team:
        """Return the team called name, creating it if needed."""

    @abstractmethod
    def get_team(self, name: str) -> Optional[Team]:
        ...

    @abstractmethod
    def list_workspaces(self, team_id: str) -> List[Workspace]:
        """Workspaces of a team, each with its markers, most recently updated first."""

    @abstractmethod
    def create_workspace(self, team_id: str, title: str, center_lat: float, center_lng: float,
                         zoom: float, style: str, workspace_id: Optional[str] = None) -> Workspace:
        ...

    @abstractmethod
    def update_workspace(self, workspace_id: str, title: Optional[str] = None,
                         view: Optional[ViewState] = None) -> Workspace:
        ...

    @abstractmethod
    def delete_workspace(self, workspace_id: str) -> None:
        """Delete a workspace and, by cascade, its markers."""

    @abstractmethod
    def create_marker(self, workspace_id: str, label: str, lat: float, lng: float, type: str,
                      zone_number: Optional[int] = None, device_icon: Optional[str] = None,
                      asset_icon: Optional[str] = None, parent_id: Optional[str] = None,
                      **extra) -> Marker:
        """Create a marker. ``extra`` may carry marker_id, category ids,
        locked, is_search_result, position and child_position."""

    @abstractmethod
    def update_marker(self, marker_id: str, fields: Dict[str, Any]) -> Marker:
        ...

    @abstractmethod
    def delete_marker(self, marker_id: str) -> None:
        ...

    @abstractmethod
    def list_categories(self, team_id: str) -> List[MarkerCategory]:
        ...

    @abstractmethod
    def save_category(self, category: MarkerCategory) -> MarkerCategory:
        """Insert or replace a category together with its icons."""

    @abstractmethod
    def delete_category(self, category_id: str) -> None:
        ...

    def create_marker_from(self, marker: Marker) -> Marker:
        """Persist a locally created marker under its local id."""
        return self.create_marker(
            marker.workspace_id, marker.label, marker.lat, marker.lng, marker.type,
            zone_number=marker.zone_number, device_icon=marker.device_icon,
            asset_icon=marker.asset_icon, parent_id=marker.parent_id,
            marker_id=marker.id, category_id=marker.category_id,
            category_icon_id=marker.category_icon_id, locked=marker.locked,
            is_search_result=marker.is_search_result, position=marker.position,
            child_position=marker.child_position,
        )


class InMemoryPersistence(PersistenceAdapter):
    """Dictionary-backed store, used offline and in tests."""

    def __init__(self):
        self.teams: Dict[str, Team] = {}
        self.workspaces: Dict[str, Workspace] = {}
        self.markers: Dict[str, Marker] = {}
        self.categories: Dict[str, MarkerCategory] = {}
        self._touch = 0
        self._updated: Dict[str, int] = {}

    def _bump(self, workspace_id: str):
        self._touch += 1
        self._updated[workspace_id] = self._touch

    def ensure_team(self, name: str, display_name: str = "") -> Team:
        team = self.get_team(name)
        if team is None:
            team = Team(name=name, display_name=display_name or name)
            self.teams[team.id] = team
        return team

    def get_team(self, name: str) -> Optional[Team]:
        return next((t for t in self.teams.values() if t.name == name), None)

    def list_workspaces(self, team_id: str) -> List[Workspace]:
        result = []
        for workspace in self.workspaces.values():
            if workspace.team_id != team_id:
                continue
            copy_ws = Workspace(team_id=team_id, view=copy.copy(workspace.view),
                                title=workspace.title, id=workspace.id)
            copy_ws.markers = [copy.copy(m) for m in self.markers.values()
                               if m.workspace_id == workspace.id]
            result.append(copy_ws)
        result.sort(key=lambda w: self._updated.get(w.id, 0), reverse=True)
        return result

    def create_workspace(self, team_id, title, center_lat, center_lng, zoom, style,
                         workspace_id=None) -> Workspace:
        workspace = Workspace(
            team_id=team_id, title=title, id=workspace_id or new_id(),
            view=ViewState(center_lat=center_lat, center_lng=center_lng, zoom=zoom, style=style),
        )
        self.workspaces[workspace.id] = workspace
        self._bump(workspace.id)
        return _detached(workspace)

    def _workspace(self, workspace_id: str) -> Workspace:
        workspace = self.workspaces.get(workspace_id)
        if workspace is None:
            raise NotFoundError("map", workspace_id)
        return workspace

    def update_workspace(self, workspace_id, title=None, view=None) -> Workspace:
        workspace = self._workspace(workspace_id)
        if title is not None:
            workspace.title = title
        if view is not None:
            workspace.view = copy.copy(view)
        self._bump(workspace_id)
        return _detached(workspace)

    def delete_workspace(self, workspace_id) -> None:
        self._workspace(workspace_id)
        del self.workspaces[workspace_id]
        for marker_id in [m.id for m in self.markers.values() if m.workspace_id == workspace_id]:
            del self.markers[marker_id]

    def create_marker(self, workspace_id, label, lat, lng, type, zone_number=None,
                      device_icon=None, asset_icon=None, parent_id=None, **extra) -> Marker:
        self._workspace(workspace_id)
        marker = Marker(
            id=extra.pop("marker_id", None) or new_id(), workspace_id=workspace_id,
            label=label, lat=lat, lng=lng, type=type, zone_number=zone_number,
            device_icon=device_icon, asset_icon=asset_icon, parent_id=parent_id, **extra,
        )
        self.markers[marker.id] = marker
        self._bump(workspace_id)
        return copy.copy(marker)

    def update_marker(self, marker_id, fields) -> Marker:
        marker = self.markers.get(marker_id)
        if marker is None:
            raise NotFoundError("marker", marker_id)
        for key, value in check_marker_fields(fields).items():
            setattr(marker, key, value)
        self._bump(marker.workspace_id)
        return copy.copy(marker)

    def delete_marker(self, marker_id) -> None:
        marker = self.markers.pop(marker_id, None)
        if marker is None:
            raise NotFoundError("marker", marker_id)
        for other in self.markers.values():
            if other.parent_id == marker_id:
                other.parent_id = None
        self._bump(marker.workspace_id)

    def list_categories(self, team_id) -> List[MarkerCategory]:
        return sorted(
            (copy.deepcopy(c) for c in self.categories.values() if c.team_id == team_id),
            key=lambda c: c.display_order,
        )

    def save_category(self, category) -> MarkerCategory:
        self.categories[category.id] = copy.deepcopy(category)
        return category

    def delete_category(self, category_id) -> None:
        if self.categories.pop(category_id, None) is None:
            raise NotFoundError("category", category_id)


def _detached(workspace: Workspace) -> Workspace:
    return Workspace(team_id=workspace.team_id, view=copy.copy(workspace.view),
                     title=workspace.title, id=workspace.id)


class PersistenceWriter:
    """Submits writes without making the caller wait for them.

    With an executor (a single worker keeps writes in submission order) the
    write runs in the background; without one it runs inline. Either way a
    failure never propagates to the caller.
    """

    def __init__(self, adapter: PersistenceAdapter, notices: Optional[NoticeBoard] = None,
                 executor: Optional[Executor] = None):
        self.adapter = adapter
        self.notices = notices or NoticeBoard()
        self.executor = executor
        self._pending: List[Future] = []
        # flush() may run on a request thread while the event loop submits
        self._pending_lock = threading.Lock()

    def submit(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Optional[Future]:
        """Run fn(*args, **kwargs) against the external store.

        Args:
            operation: Short name used in logs and notices, e.g. "update marker".
            fn: Adapter method to call.

        Returns:
            The future when running on an executor, else None.
        """
        if self.executor is None:
            self._run(operation, fn, *args, **kwargs)
            return None

        future = self.executor.submit(self._run, operation, fn, *args, **kwargs)
        with self._pending_lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    def flush(self, timeout: Optional[float] = None):
        """Wait for writes submitted so far.

        Blocks the calling thread; endpoints that flush are plain ``def``
        handlers so they run in the threadpool.
        """
        with self._pending_lock:
            pending, self._pending = self._pending, []
        if pending:
            wait(pending, timeout=timeout)

    def _run(self, operation: str, fn: Callable[..., Any], *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ScoutMapError as e:
            logger.error("Failed to %s: %s", operation, e.message)
            self.notices.add(f"Failed to {operation}: {e.message}", operation=operation)
        except Exception as e:
            logger.exception("Failed to %s", operation)
            self.notices.add(f"Failed to {operation}: {e}", operation=operation)
        return None
