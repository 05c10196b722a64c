"""
ContainmentResolver — decides which container (if any) owns a node after it
has been dragged, and converts its position between the relative and the
absolute canvas frame.

Containers are scanned in document order and the first whose bounding box
``[x, x + width) × [y, y + height)`` holds the node's absolute position wins.
Overlapping containers are not disambiguated further.
"""
from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Optional, Set, Tuple

from .Errors import InvalidReferenceError, PropertyValidationError
from .Types import Position
from ..registry.PluginRegistry import DEFAULT_CONTAINER_HEIGHT, DEFAULT_CONTAINER_WIDTH

if TYPE_CHECKING:
    from .GraphPrimitives import FlowNode
    from .GraphStore import GraphStore

logger = getLogger(__name__)


class ContainmentResolver:
    def __init__(self, store: "GraphStore"):
        self.store = store

    # ── Geometry ───────────────────────────────────────────────────────────

    def absolute_position(self, node_id: str) -> Position:
        node = self._require(node_id)
        position = node.position
        seen: Set[str] = {node.id}
        parent_id = node.parent_id
        while parent_id is not None:
            if parent_id in seen:
                raise InvalidReferenceError(f"Parent cycle through node '{parent_id}'")
            seen.add(parent_id)
            parent = self._require(parent_id)
            position = position + parent.position
            parent_id = parent.parent_id
        return position

    def to_relative(self, absolute: Position, parent_id: str) -> Position:
        return absolute - self.absolute_position(parent_id)

    def to_absolute(self, relative: Position, parent_id: Optional[str]) -> Position:
        if parent_id is None:
            return relative
        return relative + self.absolute_position(parent_id)

    def bounds(self, container_id: str) -> Tuple[Position, float, float]:
        container = self._require(container_id)
        width = container.properties.get("width", DEFAULT_CONTAINER_WIDTH)
        height = container.properties.get("height", DEFAULT_CONTAINER_HEIGHT)
        try:
            width, height = float(width), float(height)
        except (TypeError, ValueError):
            raise PropertyValidationError(
                f"Container '{container_id}' has an invalid size {width!r} x {height!r}"
            ) from None
        return self.absolute_position(container_id), width, height

    def contains(self, container_id: str, point: Position) -> bool:
        origin, width, height = self.bounds(container_id)
        return (
            origin.x <= point.x < origin.x + width
            and origin.y <= point.y < origin.y + height
        )

    def container_at(self, point: Position, exclude: Optional[str] = None) -> Optional["FlowNode"]:
        """First container, in document order, whose bounding box holds *point*."""
        for candidate in self.store.nodes:
            if candidate.id == exclude or not self.store.is_container(candidate.id):
                continue
            if self.contains(candidate.id, point):
                return candidate
        return None

    # ── Reconciliation ─────────────────────────────────────────────────────

    def resolve(self, node_id: str) -> bool:
        """
        Reconcile the parent of *node_id* with its current canvas location.

        Returns True when the parent (and therefore the stored position)
        changed. Running it again without moving the node is a no-op.
        """
        node = self._require(node_id)

        # Containers stay top-level: nesting is one level deep.
        if self.store.is_container(node.id):
            return False

        absolute = self.absolute_position(node.id)
        candidate = self.container_at(absolute, exclude=node.id)

        if candidate is not None:
            if candidate.id == node.parent_id:
                return False
            logger.debug("containment: %s enters %s", node.id, candidate.id)
            self.store.reparent(node.id, candidate.id)
            return True

        if node.parent_id is not None:
            logger.debug("containment: %s leaves %s", node.id, node.parent_id)
            self.store.reparent(node.id, None)
            return True

        return False

    def _require(self, node_id: str) -> "FlowNode":
        node = self.store.get_node(node_id)
        if node is None:
            raise InvalidReferenceError(f"Node with id '{node_id}' does not exist")
        return node
