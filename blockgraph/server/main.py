"""
FastAPI + Socket.IO server for the block editor.

Start with:
    blockgraph serve

Or via uvicorn directly:
    uvicorn blockgraph.server.main:socket_app --port 3001 --reload
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import LOG_DATEFMT, LOG_FORMAT
from .events.socket_server import create_socket_app
from .routes.flow_routes import router
from .state import get_session

# No-op when the CLI has already configured logging.
logging.basicConfig(level=get_session().settings.log_level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)

# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(title="blockgraph API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Wrap with Socket.IO ASGI layer
# ---------------------------------------------------------------------------

# socket_app is the top-level ASGI app passed to uvicorn.
# Socket.IO connections are handled at the root; all other requests are
# forwarded to the inner FastAPI app.
socket_app = create_socket_app(app, get_session().store)

# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    from ..cli import main

    main(["serve"])
