"""
EventBus — fan-out of GraphStore events to subscribers.

Rendering layers (the Socket.IO bridge, the editor session log, tests)
register a callback and receive every event the store fires. Nodes never
carry behaviour of their own; everything that reacts to a mutation
subscribes here.
"""
from __future__ import annotations

import time
from logging import getLogger
from typing import Any, Callable, Dict, List

logger = getLogger(__name__)

StoreEvent = Dict[str, Any]
Listener = Callable[[StoreEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register *callback*; the returned function unsubscribes it."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Emit
    # ------------------------------------------------------------------

    def fire(self, payload: StoreEvent) -> None:
        """Stamp the payload with a millisecond timestamp and broadcast it."""
        if "ts" not in payload:
            payload["ts"] = _now_ms()
        for cb in list(self._listeners):
            try:
                cb(payload)
            except Exception:
                # A failing subscriber must not undo a completed mutation.
                logger.exception("store listener failed on %s", payload.get("type"))


def _now_ms() -> int:
    return int(time.time() * 1000)
