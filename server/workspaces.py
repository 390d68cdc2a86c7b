"""
Session and map (workspace) endpoints.

This module opens and closes map sessions and lets a session list, create,
switch, rename and delete its team's maps.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-21
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from logic.session import MapSession
from server.sessions import close_session, create_session, get_session, session_state
from user_context import get_session_id

router = APIRouter()


class SessionStart(BaseModel):
    team: str = Field(..., min_length=1, max_length=64)
    display_name: Optional[str] = Field(default=None, alias="displayName", max_length=200)


class MapCreate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=120)


class MapRename(BaseModel):
    title: str = Field(..., max_length=120)


@router.post("/api/session/start")
def start_session(payload: SessionStart):
    """Open a map session for a team.

    Loads the team's maps, creating a default map for a team without any,
    and renders the first one. Runs in the threadpool since loading hits
    the database.

    Args:
        payload: Team name and optional display name.

    Returns:
        Full session state including the new session id.
    """
    session = create_session(payload.team, payload.display_name or "")
    return session_state(session)


@router.post("/api/session/close")
def end_session(session_id: str = Depends(get_session_id)):
    """Close a session after flushing its pending writes (threadpool)."""
    return {"success": close_session(session_id)}


@router.get("/api/session/state")
async def get_state(session: MapSession = Depends(get_session)):
    return session_state(session)


@router.get("/api/maps")
async def list_maps(session: MapSession = Depends(get_session)):
    """List the team's maps, the active one flagged."""
    return {
        "maps": [w.to_dict(include_markers=False) for w in session.switcher.workspaces],
        "activeMapId": session.workspace.id if session.workspace else None,
    }


@router.post("/api/maps")
async def create_map(payload: MapCreate, session: MapSession = Depends(get_session)):
    """Create an empty map and make it active.

    Args:
        payload: Optional title; the configured default title otherwise.

    Returns:
        The new map and the refreshed session state.
    """
    workspace = session.create_workspace(payload.title)
    return {"success": True, "map": workspace.to_dict(include_markers=False), "state": session_state(session)}


@router.post("/api/maps/{map_id}/switch")
async def switch_map(map_id: str, session: MapSession = Depends(get_session)):
    """Make map_id the active map.

    Switching to the map that is already active changes nothing.

    Raises:
        NotFoundError: If the map does not belong to the session's team.
    """
    switched = session.switch_workspace(map_id)
    return {"success": True, "switched": switched, "state": session_state(session)}


@router.put("/api/maps/{map_id}")
async def rename_map(map_id: str, payload: MapRename, session: MapSession = Depends(get_session)):
    workspace = session.rename_workspace(payload.title, map_id)
    return {"success": True, "map": workspace.to_dict(include_markers=False)}


@router.delete("/api/maps/{map_id}")
async def delete_map(map_id: str, confirm: bool = False, session: MapSession = Depends(get_session)):
    """Delete a map and all of its markers.

    Args:
        map_id: Map to delete.
        confirm: Must be true; the deletion cannot be undone.

    Returns:
        The refreshed session state.

    Raises:
        ConfirmationRequired: If confirm is not set (HTTP 409).
    """
    session.delete_workspace(map_id, confirmed=confirm)
    return {"success": True, "state": session_state(session)}
