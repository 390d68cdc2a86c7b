"""
Map session registry.

Holds the live ``MapSession`` of every connected browser, the persistence
adapter they share and the single background writer thread that keeps
persistence writes in submission order.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-21
"""

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException

from logic.config import load_config, style_url
from logic.persistence import PersistenceAdapter
from logic.session import MapSession
from logic.validation import sanitise_name
from server.broadcast import drop_session, notice_listener, surface_listener
from user_context import get_session_id

logger = logging.getLogger(__name__)

sessions: Dict[str, MapSession] = {}
_lock = threading.Lock()
_settings: Dict[str, Any] = {"adapter": None, "executor": None, "config": None}


def configure(adapter: PersistenceAdapter, executor: Optional[Executor] = None,
              config: Optional[Dict[str, Any]] = None):
    """Set the adapter, writer executor and settings used for new sessions."""
    _settings.update(adapter=adapter, executor=executor, config=config)


def default_executor() -> Executor:
    # One worker keeps writes FIFO
    return ThreadPoolExecutor(max_workers=1, thread_name_prefix="persistence")


def get_adapter() -> PersistenceAdapter:
    adapter = _settings["adapter"]
    if adapter is None:
        from persistence_service import SqlPersistence

        adapter = SqlPersistence()
        _settings["adapter"] = adapter
    return adapter


def get_config() -> Dict[str, Any]:
    if _settings["config"] is None:
        _settings["config"] = load_config()
    return _settings["config"]


def create_session(team_name: str, display_name: str = "") -> MapSession:
    """Open a session for a team, creating the team on first use."""
    team_name = sanitise_name(team_name, "Team name").lower()
    adapter = get_adapter()
    team = adapter.ensure_team(team_name, display_name)
    session = MapSession(adapter, team, config=get_config(), executor=_settings["executor"])
    session.surface.subscribe(surface_listener(session.id))
    session.notices.subscribe(notice_listener(session.id))
    session.start()
    with _lock:
        sessions[session.id] = session
    logger.info("Opened session %s for team %s", session.id, team.name)
    return session


def close_session(session_id: str) -> bool:
    """Unregister a session, wait for its pending writes and tear it down.

    The session leaves the registry before the wait, so no later request
    can reach it while it closes.
    """
    with _lock:
        session = sessions.pop(session_id, None)
    if session is None:
        return False
    session.close()
    drop_session(session_id)
    logger.info("Closed session %s", session_id)
    return True


def get_session(session_id: str = Depends(get_session_id)) -> MapSession:
    """Dependency resolving the request's map session.

    Raises:
        HTTPException: If the session is unknown or was closed.
    """
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(404, "Session not found; start a new session")
    return session


def session_state(session: MapSession) -> Dict[str, Any]:
    """Everything the browser needs to redraw a session from scratch."""
    workspace = session.workspace
    camera = session.surface.camera
    return {
        "session": session.id,
        "team": session.team.to_dict(),
        "activeMapId": workspace.id if workspace else None,
        "maps": [w.to_dict(include_markers=False) for w in session.switcher.workspaces],
        "markers": session.marker_list(),
        "groups": session.grouping.groups(),
        "handles": [h.to_dict() for h in session.surface.handles.values()],
        "camera": camera.to_dict(),
        "styleUrl": style_url(session.config, camera.style),
        "labelsVisible": session.labels_visible,
        "screenshotMode": session.screenshot_mode,
        "lastSearchLocation": session.last_search,
        "offCenter": session.is_off_center(),
        "notices": [n.to_dict() for n in session.notices.latest()],
    }


def is_configured() -> bool:
    return _settings["adapter"] is not None


def close_all_sessions():
    for session_id in list(sessions):
        close_session(session_id)
    executor = _settings["executor"]
    if executor is not None:
        executor.shutdown(wait=True)
        _settings["executor"] = None
