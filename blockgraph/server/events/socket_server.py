"""
Socket.IO bridge — pushes GraphStore events to connected editors.

Uses python-socketio in ASGI mode so it can wrap FastAPI.
`create_socket_app(fastapi_app, store)` returns the composite ASGI
application to pass to uvicorn.
"""
from __future__ import annotations

import asyncio
from logging import getLogger
from typing import Any, Callable, Dict, Optional

import socketio

from ...core.GraphStore import GraphStore

logger = getLogger(__name__)

# ---------------------------------------------------------------------------
# Socket.IO instance (async, ASGI mode)
# ---------------------------------------------------------------------------

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*",
    logger=False,
    engineio_logger=False,
)

_unsubscribe: Optional[Callable[[], None]] = None


# ---------------------------------------------------------------------------
# Store fan-out: GraphStore.events → Socket.IO emit
# ---------------------------------------------------------------------------

def _on_store_event(event: Dict[str, Any]) -> None:
    """
    Called synchronously by EventBus.fire().
    We schedule an async emit on the running event loop.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # Mutations made outside the server loop (CLI, tests) have no clients.
        return
    loop.create_task(sio.emit("store", event))


def attach_store(store: GraphStore) -> None:
    """Forward every event of *store*; replaces any previously attached store."""
    global _unsubscribe
    if _unsubscribe is not None:
        _unsubscribe()
    _unsubscribe = store.events.subscribe(_on_store_event)


# ---------------------------------------------------------------------------
# Socket.IO lifecycle events
# ---------------------------------------------------------------------------

@sio.event
async def connect(sid: str, environ: dict) -> None:
    logger.debug("editor connected: %s", sid)


@sio.event
async def disconnect(sid: str) -> None:
    logger.debug("editor disconnected: %s", sid)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_socket_app(fastapi_app: Any, store: GraphStore) -> socketio.ASGIApp:
    """Wrap *fastapi_app* inside a Socket.IO ASGI application."""
    attach_store(store)
    return socketio.ASGIApp(sio, other_asgi_app=fastapi_app)
