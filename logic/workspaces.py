"""
Map/workspace switcher.

Each team owns several named maps; exactly one is active per session. The
switcher loads the team's maps on session start, swaps the full marker set
when the active map changes (complete teardown and re-render, no diffing),
and refits the camera to the new marker set.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-20
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import ConfirmationRequired, NotFoundError
from .grouping import GroupingEngine, grouping_fields
from .models import Workspace
from .persistence import PersistenceAdapter, PersistenceWriter
from .render import MarkerRenderSync
from .store import EntityStore
from .validation import sanitise_title
from .viewport import default_view, view_for_markers

logger = logging.getLogger(__name__)

NO_WORKSPACE = "no_workspace"
ACTIVE = "active"


class WorkspaceSwitcher:
    """State machine over a team's workspaces."""

    def __init__(
        self,
        adapter: PersistenceAdapter,
        writer: PersistenceWriter,
        store: EntityStore,
        grouping: GroupingEngine,
        render: MarkerRenderSync,
        config: Dict[str, Any],
    ):
        self.adapter = adapter
        self.writer = writer
        self.store = store
        self.grouping = grouping
        self.render = render
        self.config = config
        self.team_id: Optional[str] = None
        self.workspaces: List[Workspace] = []
        self.active: Optional[Workspace] = None

    @property
    def state(self) -> str:
        return ACTIVE if self.active is not None else NO_WORKSPACE

    def get(self, workspace_id: str) -> Workspace:
        workspace = next((w for w in self.workspaces if w.id == workspace_id), None)
        if workspace is None:
            raise NotFoundError("map", workspace_id)
        return workspace

    def start(self, team_id: str) -> Workspace:
        """Load the team's workspaces and activate the first one.

        A team without any workspace gets a fresh default one.
        """
        self.team_id = team_id
        self.workspaces = self.adapter.list_workspaces(team_id)
        self.active = None
        logger.info("Loaded %d map(s) for team %s", len(self.workspaces), team_id)
        if not self.workspaces:
            return self.create()
        self._activate(self.workspaces[0])
        return self.active

    def switch_to(self, workspace_id: str) -> bool:
        """Make workspace_id the active map; returns False if it already is."""
        if self.active is not None and self.active.id == workspace_id:
            return False
        target = self.get(workspace_id)
        self._activate(target)
        return True

    def create(self, title: Optional[str] = None) -> Workspace:
        """Create an empty map, append it and make it active."""
        title = sanitise_title(title) if title is not None else self.config["default_title"]
        style = self.active.view.style if self.active is not None else self.config["default_style"]
        workspace = Workspace(team_id=self.team_id, view=default_view(self.config, style), title=title)
        self.workspaces.append(workspace)
        self.writer.submit(
            "create map", self.adapter.create_workspace,
            self.team_id, workspace.title, workspace.view.center_lat, workspace.view.center_lng,
            workspace.view.zoom, workspace.view.style, workspace_id=workspace.id,
        )
        logger.info("Created map %s (%s)", workspace.id, workspace.title)
        self._activate(workspace)
        return workspace

    def rename(self, workspace_id: str, title: str) -> Workspace:
        workspace = self.get(workspace_id)
        workspace.title = sanitise_title(title)
        self.writer.submit("rename map", self.adapter.update_workspace, workspace.id, title=workspace.title)
        return workspace

    def delete(self, workspace_id: str, confirmed: bool = False) -> Workspace:
        """Delete a map and its markers.

        Raises:
            ConfirmationRequired: Unless confirmed is true.
            NotFoundError: If the map does not exist.
        """
        workspace = self.get(workspace_id)
        if not confirmed:
            raise ConfirmationRequired(
                f"Deleting '{workspace.title}' removes its {self._marker_count(workspace)} marker(s)"
            )

        self.workspaces.remove(workspace)
        self.writer.submit("delete map", self.adapter.delete_workspace, workspace.id)
        logger.info("Deleted map %s", workspace.id)

        if self.active is workspace:
            self.render.teardown()
            self.store.clear()
            self.active = None
            if self.workspaces:
                self._activate(self.workspaces[0])
            else:
                self.create()
        return workspace

    def sync_active(self):
        """Copy the live marker set back onto the active workspace."""
        if self.active is not None:
            self.active.markers = self.store.all()

    def _marker_count(self, workspace: Workspace) -> int:
        if workspace is self.active:
            return len(self.store)
        return len(workspace.markers)

    def _activate(self, workspace: Workspace):
        self.sync_active()
        self.render.teardown()

        for other in self.workspaces:
            other.active = other is workspace
        self.active = workspace

        self.store.load(workspace.markers)
        for marker_id in self.grouping.normalize():
            logger.info("Repaired group reference of marker %s", marker_id)
            self.writer.submit("update marker", self.adapter.update_marker, marker_id,
                               grouping_fields(self.store.get(marker_id)))
        self.render.render_all(self.grouping.ordered_list())

        view = view_for_markers(self.store.all(), self.config, workspace.view.style)
        self.render.surface.set_style(view.style)
        self.render.surface.jump_to(view)
        logger.info("Switched to map %s with %d marker(s)", workspace.id, len(self.store))
