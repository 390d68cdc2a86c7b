"""
Map file and team export endpoints.

This module provides endpoints for downloading the active map as a
self-describing JSON document, loading such a document back into the
active map, and exporting every map of the team as JSON, CSV or GeoJSON.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-22
"""

import json
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import Response

from logic.session import MapSession
from logic.transfer import export_team
from server.sessions import get_session, session_state

router = APIRouter()

FLUSH_TIMEOUT = 10.0


def _attachment(content: str, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/api/transfer/export")
async def export_map(session: MapSession = Depends(get_session)):
    """Download the active map as a JSON document.

    Returns:
        The document as an attachment named after the map title and the
        current time.
    """
    document = session.export_document()
    return _attachment(json.dumps(document, indent=2), "application/json", session.export_filename())


@router.post("/api/transfer/import")
async def import_map(document: Dict[str, Any] = Body(...), confirm: bool = False,
                     session: MapSession = Depends(get_session)):
    """Replace the active map's markers with those of an uploaded document.

    Args:
        document: A map document (the older mapState/pins layout is accepted).
        confirm: Required when the active map already has markers.

    Returns:
        The imported count, the document id -> new marker id map and the
        refreshed session state.

    Raises:
        ImportFormatError: If the document is not a map export (HTTP 400).
        ConfirmationRequired: If markers would be replaced unconfirmed (HTTP 409).
    """
    imported = session.import_document(document, confirmed=confirm)
    return {
        "success": True,
        "imported": len(imported.markers),
        "idMap": imported.id_map,
        "state": session_state(session),
    }


@router.get("/api/teams/export")
def export_team_data(format: str = "json", session: MapSession = Depends(get_session)):
    """Export all of the team's maps and markers.

    Pending writes of this session are flushed first so the export reflects
    them. A plain def handler, so the flush and the query run in the
    threadpool.

    Args:
        format: One of json, csv or geojson.
    """
    session.writer.flush(timeout=FLUSH_TIMEOUT)
    workspaces = session.adapter.list_workspaces(session.team.id)
    content, media_type, filename = export_team(session.team.name, workspaces, format)
    if not isinstance(content, str):
        content = json.dumps(content, indent=2)
    return _attachment(content, media_type, filename)
