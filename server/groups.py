"""
Intent handlers for marker grouping.

This module contains the drag-and-drop endpoints of the marker list
(drag-start, drag-over, drop, drag-end) and the direct group/ungroup
operations. Every response carries the ids whose grouping changed and the
resulting group index so the browser can re-render the list.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-21
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from logic.session import MapSession
from server.sessions import get_session

router = APIRouter()


def _require(data: Dict[str, Any], *fields: str):
    missing = [f for f in fields if not data.get(f)]
    if missing:
        raise HTTPException(400, f"Missing required fields: {', '.join(missing)}")


def _result(session: MapSession, changed=None, **extra) -> Dict[str, Any]:
    result = {
        "success": True,
        "groups": session.grouping.groups(),
        "markers": session.marker_list(),
        **extra,
    }
    if changed is not None:
        result["changed"] = changed
    return result


@router.get("/api/groups")
async def list_groups(session: MapSession = Depends(get_session)):
    """Return the adjacency map ``{parent_id: [child_id, ...]}``."""
    return {"groups": session.grouping.groups()}


@router.post("/api/intent/drag_start")
async def drag_start(data: Dict[str, Any] = Body(...), session: MapSession = Depends(get_session)):
    """Start dragging a list item; the item is shown dimmed until the drag ends.

    Args:
        data: Dictionary with 'id' (dragged marker ID).

    Raises:
        HTTPException: If the id is missing.
        NotFoundError: If the marker does not exist.
    """
    _require(data, "id")
    session.drag_start(data["id"])
    return {"success": True, "dimmed": session.drag.dimmed_id}


@router.post("/api/intent/drag_over")
async def drag_over(data: Dict[str, Any] = Body(...), session: MapSession = Depends(get_session)):
    """Highlight a candidate drop target (never the dragged item itself)."""
    _require(data, "target")
    highlighted = session.drag_over(data["target"])
    return {"success": True, "highlighted": session.drag.highlighted_id if highlighted else None}


@router.post("/api/intent/drop")
async def drop(data: Dict[str, Any] = Body(...), session: MapSession = Depends(get_session)):
    """Drop the dragged item on a target.

    Dropping on a child groups under that child's parent instead, so groups
    stay one level deep.

    Args:
        data: Dictionary with 'target' (drop target marker ID).

    Returns:
        Changed ids and the updated group index.
    """
    _require(data, "target")
    if session.drag.dragged_id is None:
        raise HTTPException(400, "No drag in progress")
    changed = session.drop(data["target"])
    return _result(session, changed)


@router.post("/api/intent/drag_end")
async def drag_end(session: MapSession = Depends(get_session)):
    """Finish the drag; a child released outside any target leaves its group."""
    changed = session.drag_end()
    return _result(session, changed)


@router.post("/api/intent/group")
async def group(data: Dict[str, Any] = Body(...), session: MapSession = Depends(get_session)):
    """Group a marker under a parent without a drag gesture.

    Args:
        data: Dictionary with 'parent' and 'child' marker IDs.
    """
    _require(data, "parent", "child")
    changed = session.group(data["parent"], data["child"])
    return _result(session, changed)


@router.post("/api/intent/ungroup")
async def ungroup(data: Dict[str, Any] = Body(...), session: MapSession = Depends(get_session)):
    _require(data, "child")
    changed = session.ungroup(data["child"])
    return _result(session, changed)
