"""Session context for map requests.

This module identifies which map session a request belongs to. The browser
receives a session id from ``POST /api/session/start`` and sends it back on
every request, either in the X-Session-ID header or, for EventSource
connections that cannot set headers, in the ``session`` query parameter.
"""

from typing import Optional

from fastapi import Header, HTTPException, Query


def get_session_id(
    x_session_id: Optional[str] = Header(None, alias="X-Session-ID"),
    session: Optional[str] = Query(None),
) -> str:
    """Get the session identifier from the request.

    Args:
        x_session_id: Session ID from the X-Session-ID header.
        session: Session ID from the query string.

    Returns:
        Session identifier string.

    Raises:
        HTTPException: If no session id was sent.
    """
    # Try header first
    if x_session_id:
        return x_session_id
    if session:
        return session
    raise HTTPException(401, "Missing session id; call /api/session/start first")
