"""
Server-sent events (SSE) broadcasting module.

This module handles real-time updates via Server-Sent Events. Each map
session has its own subscribers; every visual change on the session's map
surface and every user-facing notice is pushed to them.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-12
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

# Session id -> {queue: event loop the queue belongs to}
subscribers: Dict[str, Dict[asyncio.Queue, asyncio.AbstractEventLoop]] = {}


def subscribe(session_id: str) -> asyncio.Queue:
    """Register a new SSE subscriber for a session.

    Must be called from the event loop serving the stream.
    """
    queue: asyncio.Queue = asyncio.Queue()
    subscribers.setdefault(session_id, {})[queue] = asyncio.get_running_loop()
    return queue


def unsubscribe(session_id: str, queue: asyncio.Queue):
    queues = subscribers.get(session_id)
    if queues is None:
        return
    queues.pop(queue, None)
    if not queues:
        subscribers.pop(session_id, None)


def drop_session(session_id: str):
    subscribers.pop(session_id, None)


async def event_generator(session_id: str, queue: asyncio.Queue):
    """Generate SSE events from the queue.

    Args:
        session_id: Session the queue belongs to.
        queue: Async queue to read events from.

    Yields:
        SSE formatted event strings.
    """
    try:
        yield f"data: {json.dumps({'type': 'connected', 'session': session_id})}\n\n"
        while True:
            data = await queue.get()
            yield f"data: {json.dumps(data)}\n\n"
    except asyncio.CancelledError:
        pass
    finally:
        unsubscribe(session_id, queue)


def publish(session_id: str, payload: Dict[str, Any]):
    """Queue payload for every subscriber of a session.

    Safe to call from any thread; persistence failures are reported from
    the writer thread.
    """
    for queue, loop in list(subscribers.get(session_id, {}).items()):
        try:
            loop.call_soon_threadsafe(queue.put_nowait, payload)
        except RuntimeError:
            logger.debug("Dropping subscriber of session %s: event loop closed", session_id)
            unsubscribe(session_id, queue)


def surface_listener(session_id: str) -> Callable[[str, Dict[str, Any]], None]:
    """Forward map surface events of a session to its subscribers."""

    def listener(event: str, payload: Dict[str, Any]):
        publish(session_id, {
            "type": event,
            "time": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            **payload,
        })

    return listener


def notice_listener(session_id: str):
    """Forward notices of a session to its subscribers."""

    def listener(notice):
        publish(session_id, {"type": "notice", **notice.to_dict()})

    return listener
