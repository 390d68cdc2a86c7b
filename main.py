"""
Scout Map FastAPI Application

Main entry point for the Scout Map application, serving the REST API and
the per-session event stream of the team map annotation interface.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-12
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

# Load environment variables before modules that read them
load_dotenv()

from database import init_db  # noqa: E402
from logic.config import load_config  # noqa: E402
from logic.errors import ScoutMapError  # noqa: E402
from persistence_service import SqlPersistence  # noqa: E402
from server.broadcast import event_generator, subscribe  # noqa: E402
from server.categories import router as categories_router  # noqa: E402
from server.groups import router as groups_router  # noqa: E402
from server.markers import router as markers_router  # noqa: E402
from server.sessions import (  # noqa: E402
    close_all_sessions,
    configure,
    default_executor,
    get_session,
    is_configured,
)
from server.transfer import router as transfer_router  # noqa: E402
from server.workspaces import router as workspaces_router  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the shared persistence writer; flush on shutdown."""
    if not is_configured():
        init_db()
        configure(SqlPersistence(), executor=default_executor(), config=load_config())
        logger.info("Database initialized")
    yield
    close_all_sessions()
    logger.info("Sessions closed")


app = FastAPI(title="Scout Map", lifespan=lifespan)

# Include all routers
app.include_router(workspaces_router)
app.include_router(markers_router)
app.include_router(groups_router)
app.include_router(categories_router)
app.include_router(transfer_router)


@app.exception_handler(ScoutMapError)
async def scout_map_error_handler(request: Request, exc: ScoutMapError):
    """Translate map errors into JSON responses with their status code."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ============================================================
# SSE Endpoint
# ============================================================


@app.get("/api/stream")
async def stream(session=Depends(get_session)):
    """Server-Sent Events (SSE) endpoint for real-time updates.

    The browser connects with its session id and receives every change to
    its map surface (handles, popups, style, camera) and every notice,
    such as a persistence write that failed.

    Args:
        session: The map session resolved from header or query string.

    Returns:
        StreamingResponse with text/event-stream content type.
    """
    queue = subscribe(session.id)
    return StreamingResponse(event_generator(session.id, queue), media_type="text/event-stream")


@app.get("/api/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)), log_level="info")
